from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from repo_provisioner.catalog import ARCHIVE_PRESETS, DEFAULT_ARCHIVE


@dataclass(slots=True)
class AppConfig:
    projects_dir: str
    catalog_path: Path | None
    archive: str
    repositories: tuple[str, ...]
    keep_going: bool
    overwrite: bool
    dry_run: bool
    git_timeout_seconds: float
    commit_user: str | None
    commit_email: str | None
    branch: str | None


def load_config(args, env: Mapping[str, str], *, cwd: Path | None = None) -> AppConfig:
    projects_raw = _normalize_empty(args.projects_dir) or _normalize_empty(env.get("PROJECTS_DIR"))
    catalog_raw = _normalize_empty(args.catalog) or _normalize_empty(env.get("REPO_CATALOG"))
    archive = _normalize_empty(args.archive) or _normalize_empty(env.get("REPO_ARCHIVE_TYPE")) or DEFAULT_ARCHIVE
    commit_user = _normalize_empty(args.commit_user) or _normalize_empty(env.get("GIT_COMMIT_USER"))
    commit_email = _normalize_empty(args.commit_email) or _normalize_empty(env.get("GIT_COMMIT_EMAIL"))
    branch = _normalize_empty(args.branch) or _normalize_empty(env.get("GIT_BRANCH"))
    raw_timeout = _normalize_empty(str(args.git_timeout) if args.git_timeout is not None else None) or _normalize_empty(
        env.get("GIT_TIMEOUT_SECONDS")
    )

    if archive not in ARCHIVE_PRESETS:
        valid = ", ".join(sorted(ARCHIVE_PRESETS))
        raise ValueError(f"Unsupported archive type '{archive}'. Allowed values: {valid}")

    keep_going = args.keep_going or _parse_bool(env.get("REPO_KEEP_GOING"), "REPO_KEEP_GOING")
    overwrite = args.overwrite or _parse_bool(env.get("REPO_OVERWRITE"), "REPO_OVERWRITE")

    git_timeout_seconds = 300.0
    if raw_timeout is not None:
        try:
            git_timeout_seconds = float(raw_timeout)
        except ValueError as error:
            raise ValueError("GIT_TIMEOUT_SECONDS/--git-timeout must be a number") from error
        if git_timeout_seconds <= 0:
            raise ValueError("GIT_TIMEOUT_SECONDS/--git-timeout must be greater than 0")

    if commit_email and not commit_user:
        raise ValueError("GIT_COMMIT_EMAIL/--commit-email requires GIT_COMMIT_USER/--commit-user")

    if projects_raw is None:
        projects_dir = f"{(cwd or Path.cwd()).as_posix().rstrip('/')}/projects/"
    else:
        projects_dir = Path(projects_raw).expanduser().as_posix().rstrip("/") + "/"

    return AppConfig(
        projects_dir=projects_dir,
        catalog_path=Path(catalog_raw).expanduser() if catalog_raw else None,
        archive=archive,
        repositories=tuple(args.repositories or ()),
        keep_going=keep_going,
        overwrite=overwrite,
        dry_run=args.dry_run,
        git_timeout_seconds=git_timeout_seconds,
        commit_user=commit_user,
        commit_email=commit_email,
        branch=branch,
    )


def _parse_bool(value: str | None, name: str) -> bool:
    normalized = _normalize_empty(value)
    if normalized is None:
        return False
    normalized = normalized.lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false)")


def _normalize_empty(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None
