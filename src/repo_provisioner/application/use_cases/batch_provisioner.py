from __future__ import annotations
"""Application use case provisioning a selection of catalog repositories in order."""

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from repo_provisioner.application.use_cases.repo_provisioner import RepoProvisioner
from repo_provisioner.domain.entities import (
    BatchSummary,
    RepositoryDescriptor,
    RepositoryOutcome,
    build_reference,
)
from repo_provisioner.domain.errors import MalformedInputError, ProvisioningError
from repo_provisioner.domain.ports import FileSystemPort


LOGGER = logging.getLogger(__name__)

SELECT_ALL = "all"


def select_repositories(
    repositories: Sequence[RepositoryDescriptor],
    names: Iterable[str] = (),
) -> list[RepositoryDescriptor]:
    """Select catalog entries by local or remote name.

    No names, or the single name `all`, selects the whole catalog. The result
    always follows catalog order, whatever order the names were given in.

    Raises:
        MalformedInputError: A name matches no catalog entry.
    """
    wanted = [name.strip() for name in names if name.strip()]
    if not wanted or wanted == [SELECT_ALL]:
        return list(repositories)

    known = {item.local_name for item in repositories} | {item.remote_name for item in repositories}
    unknown = [name for name in wanted if name not in known]
    if unknown:
        raise MalformedInputError(f"Unknown repositories: {', '.join(unknown)}")

    wanted_set = set(wanted)
    return [item for item in repositories if item.local_name in wanted_set or item.remote_name in wanted_set]


@dataclass(slots=True)
class BatchProvisioner:
    """Core batch orchestration.

    Responsibilities:
    - select catalog entries
    - build the reference variant for each entry
    - provision entries strictly sequentially through `RepoProvisioner.get`
    - abort on the first failure unless asked to keep going
    - support dry-run planning with no side effects
    """

    provisioner: RepoProvisioner
    filesystem: FileSystemPort

    def execute(
        self,
        repositories: Sequence[RepositoryDescriptor],
        projects_dir: str | os.PathLike[str],
        *,
        selected_names: Iterable[str] = (),
        stop_on_error: bool = True,
        overwrite: bool = False,
        dry_run: bool = False,
        reference_overrides: Mapping[str, Any] | None = None,
    ) -> BatchSummary:
        """Provision the selected repositories below `projects_dir`.

        Args:
            repositories: Full catalog.
            projects_dir: Projects directory (must follow the projects suffix).
            selected_names: Names picked by the caller; empty selects all.
            stop_on_error: Abort the batch after the first failed repository.
            overwrite: Passed to `RepoProvisioner.get`.
            dry_run: Plan clone/update per repository without touching anything.
            reference_overrides: Extra reference fields (branch, commit_user, ...).

        Returns:
            `BatchSummary`; repositories never attempted because the batch was
            aborted are listed in `skipped`.
        """
        selected = select_repositories(repositories, selected_names)
        overrides = dict(reference_overrides or {})
        projects_path = os.fspath(projects_dir)
        LOGGER.info(
            "repositories selected",
            extra={
                "event": "batch.repositories.selected",
                "projects_dir": projects_path,
                "catalog_count": len(repositories),
                "count": len(selected),
            },
        )

        outcomes: list[RepositoryOutcome] = []
        aborted = False

        for index, descriptor in enumerate(selected):
            local_path = Path(projects_path) / descriptor.local_name
            LOGGER.info(
                "repository processing started",
                extra={
                    "event": "batch.repository.start",
                    "local_name": descriptor.local_name,
                    "remote_name": descriptor.remote_name,
                    "host_type": descriptor.host_type.value,
                    "local_path": str(local_path),
                    "dry_run": dry_run,
                },
            )

            try:
                if dry_run:
                    self.provisioner.check_projects_path(projects_path)
                    operation = self._plan(local_path)
                else:
                    reference = build_reference(descriptor, **overrides)
                    result = self.provisioner.get(reference, projects_path, overwrite=overwrite)
            except ProvisioningError as error:
                LOGGER.error(
                    "repository processing failed",
                    extra={
                        "event": "batch.repository.failed",
                        "local_name": descriptor.local_name,
                        "failure_kind": error.kind.value,
                        "error": str(error),
                    },
                )
                outcomes.append(
                    RepositoryOutcome(
                        local_name=descriptor.local_name,
                        remote_name=descriptor.remote_name,
                        local_path=local_path,
                        success=False,
                        failure_kind=error.kind,
                        error=str(error),
                    )
                )
                if stop_on_error:
                    aborted = True
                    LOGGER.error(
                        "stop_on_error triggered after repository failure",
                        extra={
                            "event": "batch.stop_on_error.triggered",
                            "local_name": descriptor.local_name,
                            "remaining": len(selected) - index - 1,
                        },
                    )
                    break
                continue

            if dry_run:
                outcomes.append(
                    RepositoryOutcome(
                        local_name=descriptor.local_name,
                        remote_name=descriptor.remote_name,
                        local_path=local_path,
                        success=True,
                        operation=operation,
                    )
                )
                continue

            outcomes.append(
                RepositoryOutcome(
                    local_name=descriptor.local_name,
                    remote_name=descriptor.remote_name,
                    local_path=result.local_path,
                    success=True,
                    operation=result.operation.value,
                    warnings=result.warnings,
                )
            )

        attempted = len(outcomes)
        summary = BatchSummary(
            projects_dir=projects_path,
            selected=tuple(item.local_name for item in selected),
            outcomes=tuple(outcomes),
            aborted=aborted,
            dry_run=dry_run,
            skipped=tuple(item.local_name for item in selected[attempted:]),
        )

        LOGGER.info(
            "batch execution completed",
            extra={
                "event": "batch.completed",
                "dry_run": dry_run,
                "aborted": aborted,
                "successful_repositories": summary.successful_repositories,
                "failed_repositories": summary.failed_repositories,
                "skipped_repositories": len(summary.skipped),
            },
        )
        return summary

    def _plan(self, local_path: Path) -> str:
        if not self.filesystem.path_exists(local_path) or self.filesystem.is_empty_directory(local_path):
            return "clone"
        return "update"
