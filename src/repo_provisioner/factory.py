from __future__ import annotations
"""Default wiring of `RepoProvisioner` with the shell git and local filesystem adapters."""

from typing import TextIO

from repo_provisioner.adapters.filesystem.local_filesystem import LocalFileSystemAdapter
from repo_provisioner.adapters.git_client.shell_git_client import ShellGitClientAdapter
from repo_provisioner.application.use_cases.repo_provisioner import PROJECTS_SUFFIX, RepoProvisioner
from repo_provisioner.domain.credentials import AskUserPassword
from repo_provisioner.domain.ports import FileSystemPort, VcsBackendPort


def create_repo(
    output: TextIO,
    input: TextIO,
    ask_user_password: AskUserPassword | None = None,
    *,
    backend: VcsBackendPort | None = None,
    filesystem: FileSystemPort | None = None,
    projects_suffix: str = PROJECTS_SUFFIX,
    git_timeout_seconds: float = 300.0,
) -> RepoProvisioner:
    """Create a provisioner.

    Args:
        output: Stream receiving status text and credential prompts.
        input: Stream handed to `ask_user_password` for answers.
        ask_user_password: Credential callback; `None` disables interactive
            authentication entirely.
        backend: VCS backend; defaults to `ShellGitClientAdapter`.
        filesystem: Filesystem adapter; defaults to `LocalFileSystemAdapter`.
        projects_suffix: Required trailing segment of projects paths.
        git_timeout_seconds: Per-command timeout of the default backend.
    """
    return RepoProvisioner(
        output,
        input,
        ask_user_password,
        backend=backend or ShellGitClientAdapter(timeout_seconds=git_timeout_seconds),
        filesystem=filesystem or LocalFileSystemAdapter(),
        projects_suffix=projects_suffix,
    )
