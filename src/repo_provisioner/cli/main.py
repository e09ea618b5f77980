from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from typing import TextIO

from repo_provisioner.adapters.credentials import ask_user_password
from repo_provisioner.adapters.filesystem.local_filesystem import LocalFileSystemAdapter
from repo_provisioner.application.use_cases.batch_provisioner import BatchProvisioner
from repo_provisioner.application.use_cases.repo_provisioner import RepoProvisioner
from repo_provisioner.catalog import ARCHIVE_PRESETS, load_catalog
from repo_provisioner.cli.config import AppConfig, load_config
from repo_provisioner.domain.entities import BatchSummary, RepositoryDescriptor
from repo_provisioner.domain.errors import MalformedInputError
from repo_provisioner.factory import create_repo
from repo_provisioner.logging_utils import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flying-start",
        description="Clone or update catalog repositories below a projects directory.",
    )

    parser.add_argument(
        "repositories",
        nargs="*",
        help="Repository names to provision (local or remote name). Empty or 'all' selects the whole catalog.",
    )
    parser.add_argument(
        "--projects-dir",
        required=False,
        help="Projects directory; must end with '/projects/'. Falls back to PROJECTS_DIR, then ./projects/.",
    )
    parser.add_argument("--catalog", required=False, help="JSON repository catalog. Falls back to REPO_CATALOG.")
    parser.add_argument(
        "--archive",
        choices=sorted(ARCHIVE_PRESETS),
        required=False,
        help="Archive preset filling host settings of catalog entries. Falls back to REPO_ARCHIVE_TYPE.",
    )
    parser.add_argument("--branch", required=False, help="Branch to check out. Falls back to GIT_BRANCH.")
    parser.add_argument("--commit-user", required=False, help="Committer name to configure. Falls back to GIT_COMMIT_USER.")
    parser.add_argument(
        "--commit-email",
        required=False,
        help="Committer e-mail to configure. Falls back to GIT_COMMIT_EMAIL.",
    )
    parser.add_argument(
        "--git-timeout",
        type=float,
        required=False,
        help="Timeout in seconds per git command. Falls back to GIT_TIMEOUT_SECONDS.",
    )
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Continue with the next repository after a failure. Falls back to REPO_KEEP_GOING.",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace directories that are not checkouts of the expected remote. Falls back to REPO_OVERWRITE.",
    )
    parser.add_argument("--dry-run", action="store_true")

    return parser


def flying_start(
    repositories: Sequence[RepositoryDescriptor] | None,
    argv: Sequence[str] | None = None,
    *,
    provisioner: RepoProvisioner | None = None,
    env: Mapping[str, str] | None = None,
    output: TextIO | None = None,
    input: TextIO | None = None,
) -> int:
    """Provision the repositories selected by `argv` from `repositories`.

    `argv` is a full argument vector: `argv[0]` is the program name. When
    `repositories` is `None` the catalog is read from `--catalog`/`REPO_CATALOG`.

    Returns:
        0 when every selected repository was provisioned, 1 otherwise. Usage
        errors exit through `argparse` with status 2.
    """
    logger = logging.getLogger(__name__)
    argv = list(sys.argv if argv is None else argv)
    env = os.environ if env is None else env
    output = sys.stdout if output is None else output
    input = sys.stdin if input is None else input

    parser = build_parser()
    args = parser.parse_args(argv[1:])
    try:
        config = load_config(args=args, env=env)
        if repositories is None:
            repositories = _load_repositories(config)
    except ValueError as error:
        parser.error(str(error))

    logger.info(
        "cli configuration resolved",
        extra={
            "event": "cli.config.resolved",
            "projects_dir": config.projects_dir,
            "catalog": str(config.catalog_path) if config.catalog_path else None,
            "archive": config.archive,
            "repositories": list(config.repositories),
            "keep_going": config.keep_going,
            "overwrite": config.overwrite,
            "dry_run": config.dry_run,
        },
    )

    if provisioner is None:
        provisioner = create_repo(
            output,
            input,
            ask_user_password,
            git_timeout_seconds=config.git_timeout_seconds,
        )
    batch = BatchProvisioner(provisioner=provisioner, filesystem=LocalFileSystemAdapter())

    try:
        summary = batch.execute(
            repositories,
            config.projects_dir,
            selected_names=config.repositories,
            stop_on_error=not config.keep_going,
            overwrite=config.overwrite,
            dry_run=config.dry_run,
            reference_overrides={
                "branch": config.branch,
                "commit_user": config.commit_user,
                "commit_email": config.commit_email,
            },
        )
    except MalformedInputError as error:
        logger.exception("cli execution failed", extra={"event": "cli.execution.failed"})
        parser.error(str(error))

    _print_summary(summary, output)
    return 0 if summary.failed_repositories == 0 else 1


def main() -> int:
    try:
        configure_logging(os.environ.get("LOG_LEVEL", "INFO"), os.environ.get("LOG_FORMAT", "json"))
    except ValueError as error:
        print(f"flying-start: error: {error}", file=sys.stderr)
        return 2
    return flying_start(None, sys.argv)


def _load_repositories(config: AppConfig) -> list[RepositoryDescriptor]:
    if config.catalog_path is None:
        raise ValueError("Missing repository catalog. Use --catalog or set REPO_CATALOG")
    return load_catalog(config.catalog_path, archive=config.archive)


def _print_summary(summary: BatchSummary, output: TextIO) -> None:
    mode = "DRY-RUN" if summary.dry_run else "RUN"
    print(f"[{mode}] Projects directory: {summary.projects_dir}", file=output)
    print(f"Repositories selected: {len(summary.selected)}", file=output)
    print(f"Successful repositories: {summary.successful_repositories}", file=output)
    print(f"Failed repositories: {summary.failed_repositories}", file=output)
    if summary.aborted:
        print("Batch aborted after first failure (use --keep-going to continue)", file=output)

    for item in summary.outcomes:
        status = "ok" if item.success else "failed"
        operation = item.operation or (item.failure_kind.value if item.failure_kind else "unknown")
        print(f"- {item.local_name}: {operation} -> {item.local_path} [{status}]", file=output)
        if item.error:
            print(f"  error: {item.error}", file=output)
        for warning in item.warnings:
            print(f"  warning: {warning}", file=output)
    for name in summary.skipped:
        print(f"- {name}: not attempted [skipped]", file=output)


if __name__ == "__main__":
    sys.exit(main())
