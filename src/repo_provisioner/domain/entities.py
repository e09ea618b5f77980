from __future__ import annotations
"""Catalog entries and provisioning results shared by use cases and the CLI.

These data models are framework-agnostic and can be reused across adapters
(CLI, tests, other front ends).
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from repo_provisioner.domain.errors import FailureKind
from repo_provisioner.domain.references import GitFileRepoRef, GitHttpsRepoRef, GitRepoRef, GitSshRepoRef


class HostType(str, Enum):
    HTTPS = "https"
    FILE = "file"
    SSH = "ssh"


_VARIANT_BY_HOST_TYPE: dict[HostType, type[GitRepoRef]] = {
    HostType.HTTPS: GitHttpsRepoRef,
    HostType.FILE: GitFileRepoRef,
    HostType.SSH: GitSshRepoRef,
}


@dataclass(frozen=True, slots=True)
class RepositoryDescriptor:
    """Flat catalog entry from which a reference is built at dispatch time.

    Attributes:
        local_name: Directory name under the projects directory.
        remote_name: Remote identity, joined to `subdir` to form the remote path.
        host_type: Transport kind selecting the reference variant.
        host: Network host or filesystem root.
        subdir: Path prefix under host.
    """

    local_name: str
    remote_name: str
    host_type: HostType
    host: str
    subdir: str = ""


def build_reference(descriptor: RepositoryDescriptor, **overrides: Any) -> GitRepoRef:
    """Build the reference variant matching `descriptor.host_type`.

    `overrides` carries the optional reference fields a catalog entry does not
    hold (branch, commit_sha, commit_user, commit_email, extension, and
    ssh_user for SSH). `None` values are dropped.
    """
    variant = _VARIANT_BY_HOST_TYPE[HostType(descriptor.host_type)]
    extra = {key: value for key, value in overrides.items() if value is not None}
    if variant is not GitSshRepoRef:
        extra.pop("ssh_user", None)
    return variant(
        remote_name=descriptor.remote_name,
        local_name=descriptor.local_name,
        host=descriptor.host,
        subdir=descriptor.subdir,
        **extra,
    )


class SyncOperation(str, Enum):
    CLONE = "clone"
    UPDATE = "update"


@dataclass(slots=True)
class ProvisionResult:
    """Successful outcome of `RepoProvisioner.get`.

    Attributes:
        reference: Reference that was provisioned.
        local_path: Checkout directory.
        operation: Whether the checkout was cloned or updated.
        clone_url: Transport URL used for the remote.
        warnings: Non-fatal problems, e.g. identity configuration failures.
    """

    reference: GitRepoRef
    local_path: Path
    operation: SyncOperation
    clone_url: str
    warnings: tuple[str, ...] = ()
    success: bool = True

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


@dataclass(slots=True)
class RepositoryOutcome:
    """Per-repository snapshot recorded by `BatchProvisioner`."""

    local_name: str
    remote_name: str
    local_path: Path
    success: bool
    operation: str | None = None
    failure_kind: FailureKind | None = None
    error: str | None = None
    warnings: tuple[str, ...] = ()


@dataclass(slots=True)
class BatchSummary:
    """Batch-level summary for one `BatchProvisioner.execute` run."""

    projects_dir: str
    selected: tuple[str, ...]
    outcomes: tuple[RepositoryOutcome, ...]
    aborted: bool
    dry_run: bool = False
    skipped: tuple[str, ...] = field(default_factory=tuple)

    @property
    def failed_repositories(self) -> int:
        return sum(1 for item in self.outcomes if not item.success)

    @property
    def successful_repositories(self) -> int:
        return len(self.outcomes) - self.failed_repositories
