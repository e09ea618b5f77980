from __future__ import annotations

import shutil
from pathlib import Path

from repo_provisioner.domain.ports import FileSystemPort


class LocalFileSystemAdapter(FileSystemPort):
    def ensure_directory(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def path_exists(self, path: Path) -> bool:
        return path.exists()

    def is_empty_directory(self, path: Path) -> bool:
        if not path.is_dir():
            return False
        return next(path.iterdir(), None) is None

    def remove_tree(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
