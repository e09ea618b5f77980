from __future__ import annotations
"""Repository references: what repository, from where, at what state.

References describe intent only. They are immutable and never validated on
construction; `RepoProvisioner.get` checks them at call time so that invalid
references can still be built and inspected (e.g. for catalog diagnostics).

The transport variants form a closed set: `GitHttpsRepoRef`, `GitFileRepoRef`
and `GitSshRepoRef`. `GitRepoRef` itself is only their shared shape.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar


DEFAULT_EXTENSION = ".git"
DEFAULT_SSH_USER = "git"


@dataclass(frozen=True, slots=True)
class RepoRef:
    """A named remote tied to a local directory name.

    Attributes:
        remote_name: Canonical remote identity, e.g. `"libgit2/libgit2"`.
        local_name: Directory name to check out into. `None` derives it from
            `remote_name` (see `default_local_name`).
    """

    remote_name: str | None = None
    local_name: str | None = None

    @property
    def default_local_name(self) -> str | None:
        """Final path component of `remote_name` without archive extension."""
        if not self.remote_name:
            return None
        last = self.remote_name.rstrip("/").rsplit("/", 1)[-1]
        if last.endswith(DEFAULT_EXTENSION) and last != DEFAULT_EXTENSION:
            last = last[: -len(DEFAULT_EXTENSION)]
        return last or None


@dataclass(frozen=True, slots=True)
class GitRepoRef(RepoRef):
    """Shared shape of the git transport variants.

    Attributes:
        host: Network host (e.g. `github.com`) or filesystem root for local
            archives.
        subdir: Path prefix under host, e.g. `"kubicas/"`.
        extension: Archive suffix; `None` means `".git"`.
        branch: Branch to update to; `None` means the remote's primary branch.
        commit_sha: Commit to pin to; `None` means the branch tip. Wins over
            `branch` when both are set.
        commit_user: Committer name configured in the checkout.
        commit_email: Committer e-mail configured together with `commit_user`.
    """

    requires_authentication: ClassVar[bool] = False

    host: str | None = None
    subdir: str | None = None
    extension: str | None = None
    branch: str | None = None
    commit_sha: str | None = None
    commit_user: str | None = None
    commit_email: str | None = None

    @property
    def has_commit_user(self) -> bool:
        return bool(self.commit_user)

    @property
    def remote_path(self) -> str:
        """`subdir + remote_name + extension` with separators normalized."""
        subdir = (self.subdir or "").strip("/")
        remote = (self.remote_name or "").strip("/")
        extension = DEFAULT_EXTENSION if self.extension is None else self.extension
        if extension and remote.endswith(extension):
            extension = ""
        return f"{subdir}/{remote}{extension}" if subdir else f"{remote}{extension}"

    def clone_url(self) -> str:
        raise NotImplementedError(f"{type(self).__name__} is not a concrete transport variant")


@dataclass(frozen=True, slots=True)
class GitHttpsRepoRef(GitRepoRef):
    """Remote served over HTTPS; authenticates through the credential callback."""

    requires_authentication: ClassVar[bool] = True

    def clone_url(self) -> str:
        host = (self.host or "").rstrip("/")
        return f"https://{host}/{self.remote_path}"


@dataclass(frozen=True, slots=True)
class GitFileRepoRef(GitRepoRef):
    """Remote stored on a local filesystem (e.g. a USB archive); no authentication."""

    def clone_url(self) -> str:
        root = Path(self.host or "").expanduser()
        return (root / self.remote_path).resolve().as_posix()


@dataclass(frozen=True, slots=True)
class GitSshRepoRef(GitRepoRef):
    """Remote reached over SSH as `ssh_user` (default `git`)."""

    requires_authentication: ClassVar[bool] = True

    ssh_user: str | None = None

    @property
    def effective_ssh_user(self) -> str:
        return self.ssh_user or DEFAULT_SSH_USER

    def clone_url(self) -> str:
        return f"{self.effective_ssh_user}@{self.host}:{self.remote_path}"


TRANSPORT_VARIANTS: tuple[type[GitRepoRef], ...] = (GitHttpsRepoRef, GitFileRepoRef, GitSshRepoRef)


def is_transport_variant(repo_ref: RepoRef) -> bool:
    return type(repo_ref) in TRANSPORT_VARIANTS
