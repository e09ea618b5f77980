from __future__ import annotations
"""Hexagonal architecture port interfaces.

The provisioner depends only on these abstractions. Adapters provide concrete
implementations for git commands and the local filesystem.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from repo_provisioner.domain.credentials import Credentials


class VcsBackendPort(ABC):
    """Version-control operations over a working directory.

    Operations are expected to be idempotent when re-run against an
    already-correct state. Operational failures raise `BackendError`;
    authentication demands raise `AuthenticationRequiredError`.
    """

    @abstractmethod
    def clone(
        self,
        url: str,
        target: Path,
        *,
        branch: str | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        """Clone `url` into `target` (missing or empty directory)."""
        raise NotImplementedError

    @abstractmethod
    def fetch(
        self,
        target: Path,
        *,
        branch: str | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        """Fetch the latest remote state into an existing checkout."""
        raise NotImplementedError

    @abstractmethod
    def checkout(
        self,
        target: Path,
        *,
        branch: str | None = None,
        commit_sha: str | None = None,
    ) -> None:
        """Move the working tree to `commit_sha`, else `branch` tip, else the default branch."""
        raise NotImplementedError

    @abstractmethod
    def sync_submodules(self, target: Path, *, credentials: Credentials | None = None) -> None:
        """Recursively sync, initialize and update nested submodules."""
        raise NotImplementedError

    @abstractmethod
    def set_identity(self, target: Path, name: str, email: str | None = None) -> None:
        """Configure the committer identity of the checkout."""
        raise NotImplementedError

    @abstractmethod
    def remote_url(self, target: Path) -> str | None:
        """Return the origin URL of the checkout, or `None` when `target` is not one."""
        raise NotImplementedError


class FileSystemPort(ABC):
    """Filesystem operations abstracted for testability and portability."""

    @abstractmethod
    def ensure_directory(self, path: Path) -> None:
        """Ensure target directory exists (create recursively if needed)."""
        raise NotImplementedError

    @abstractmethod
    def path_exists(self, path: Path) -> bool:
        """Return whether a path exists."""
        raise NotImplementedError

    @abstractmethod
    def is_empty_directory(self, path: Path) -> bool:
        """Return whether `path` is a directory without any entries."""
        raise NotImplementedError

    @abstractmethod
    def remove_tree(self, path: Path) -> None:
        """Recursively delete `path`."""
        raise NotImplementedError
