from __future__ import annotations
"""Application use case: clone-or-update of a single repository checkout."""

import logging
import os
from pathlib import Path
from typing import Callable, TextIO, TypeVar

from repo_provisioner.domain.credentials import AskUserPassword, Credentials, credential_scope
from repo_provisioner.domain.entities import ProvisionResult, SyncOperation
from repo_provisioner.domain.errors import (
    AlreadyExistsConflictError,
    AuthenticationError,
    AuthenticationRequiredError,
    BackendError,
    CloneError,
    MalformedInputError,
    PathConventionError,
    ProvisioningError,
    UpdateError,
)
from repo_provisioner.domain.ports import FileSystemPort, VcsBackendPort
from repo_provisioner.domain.references import DEFAULT_EXTENSION, GitRepoRef, RepoRef, is_transport_variant
from repo_provisioner.logging_utils import redact_url


LOGGER = logging.getLogger(__name__)

PROJECTS_SUFFIX = "/projects/"

T = TypeVar("T")


class RepoProvisioner:
    """Clone-or-update a repository checkout below a projects directory.

    One instance serves many `get` calls. It holds the status output stream,
    the input stream handed to the credential callback, and the callback
    itself; it owns no repository state. Not safe for concurrent use.
    """

    def __init__(
        self,
        output: TextIO,
        input: TextIO,
        ask_user_password: AskUserPassword | None,
        *,
        backend: VcsBackendPort,
        filesystem: FileSystemPort,
        projects_suffix: str = PROJECTS_SUFFIX,
    ) -> None:
        self._output = output
        self._input = input
        self._ask_user_password = ask_user_password
        self._backend = backend
        self._filesystem = filesystem
        self._projects_suffix = projects_suffix
        self._last_had_commit_user = False

    def has_commit_user(self) -> bool:
        """Whether the most recently validated reference carried a `commit_user`."""
        return self._last_had_commit_user

    def get(
        self,
        repo_ref: RepoRef,
        path: str | os.PathLike[str] | None,
        dirname: str | None = None,
        *,
        overwrite: bool = False,
    ) -> ProvisionResult:
        """Clone or update `repo_ref` into `path/dirname`.

        Args:
            repo_ref: One of the transport reference variants.
            path: Projects directory; must end with the projects suffix
                (`"/projects/"` by default).
            dirname: Checkout directory name. `None` uses the reference's
                `local_name`, else the last component of `remote_name`.
            overwrite: Replace a directory that is not a checkout of the
                expected remote instead of failing.

        Returns:
            `ProvisionResult`; identity configuration problems are attached
            as warnings.

        Raises:
            MalformedInputError: Invalid arguments (nothing was touched).
            PathConventionError: `path` does not follow the projects suffix.
            AlreadyExistsConflictError: Target holds something else.
            CloneError / UpdateError: Backend reported an operational failure.
            AuthenticationError: Credentials needed but unavailable or rejected.
        """
        git_ref, projects_dir, name = self._validate(repo_ref, path, dirname)
        self._last_had_commit_user = git_ref.has_commit_user

        target = projects_dir / name
        url = git_ref.clone_url()
        credentials: dict[str, Credentials] = {}

        LOGGER.info(
            "repository provisioning started",
            extra={
                "event": "provisioner.get.start",
                "remote_name": git_ref.remote_name,
                "transport": type(git_ref).__name__,
                "clone_url": redact_url(url),
                "local_path": str(target),
            },
        )

        operation = self._decide(url, target, overwrite)

        if operation is SyncOperation.CLONE:
            self._clone(git_ref, url, projects_dir, target, credentials)
        else:
            self._update(git_ref, url, target, credentials)

        warnings: list[str] = []
        if git_ref.commit_user:
            warning = self._configure_identity(git_ref, target)
            if warning:
                warnings.append(warning)

        LOGGER.info(
            "repository provisioning completed",
            extra={
                "event": "provisioner.get.success",
                "local_path": str(target),
                "operation": operation.value,
                "warnings": len(warnings),
            },
        )
        return ProvisionResult(
            reference=git_ref,
            local_path=target,
            operation=operation,
            clone_url=url,
            warnings=tuple(warnings),
        )

    def check_projects_path(self, path: str | os.PathLike[str] | None) -> Path:
        """Validate `path` against the projects suffix convention.

        Raises:
            MalformedInputError: `path` is None.
            PathConventionError: `path` does not end with the projects suffix.
        """
        if path is None:
            raise MalformedInputError("Projects path must not be None")
        raw_path = os.fspath(path)
        if not raw_path.endswith(self._projects_suffix):
            raise PathConventionError(
                f"Projects path must end with '{self._projects_suffix}': {raw_path!r}",
                local_path=Path(raw_path),
            )
        return Path(raw_path)

    def _validate(
        self,
        repo_ref: RepoRef,
        path: str | os.PathLike[str] | None,
        dirname: str | None,
    ) -> tuple[GitRepoRef, Path, str]:
        projects_dir = self.check_projects_path(path)
        if not repo_ref.remote_name:
            raise MalformedInputError("Repository reference has no remote_name")
        if not isinstance(repo_ref, GitRepoRef) or not is_transport_variant(repo_ref):
            raise MalformedInputError(
                f"Unsupported repository reference type {type(repo_ref).__name__}; "
                "use GitHttpsRepoRef, GitFileRepoRef or GitSshRepoRef"
            )
        if not repo_ref.host:
            raise MalformedInputError(f"Repository reference '{repo_ref.remote_name}' has no host")
        if dirname is not None and not dirname:
            raise MalformedInputError("dirname must not be an empty string")
        if repo_ref.local_name is not None and not repo_ref.local_name:
            raise MalformedInputError(f"Repository reference '{repo_ref.remote_name}' has an empty local_name")

        name = dirname or repo_ref.local_name or repo_ref.default_local_name
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            raise MalformedInputError(f"Invalid checkout directory name: {name!r}")
        return repo_ref, projects_dir, name

    def _decide(self, url: str, target: Path, overwrite: bool) -> SyncOperation:
        try:
            if not self._filesystem.path_exists(target) or self._filesystem.is_empty_directory(target):
                return SyncOperation.CLONE
            existing_url = self._backend.remote_url(target)
        except (BackendError, OSError) as error:
            self._log_backend_failure("inspect", url, target, error)
            raise UpdateError(
                f"Inspecting existing {target} failed: {error}",
                remote=url,
                local_path=target,
            ) from error

        if existing_url is not None and _same_remote(existing_url, url):
            return SyncOperation.UPDATE

        existing_remote = redact_url(existing_url) if existing_url else None
        if not overwrite:
            LOGGER.error(
                "target directory holds a different repository",
                extra={
                    "event": "provisioner.conflict",
                    "local_path": str(target),
                    "existing_remote": existing_remote,
                    "expected_remote": redact_url(url),
                },
            )
            found = f"a checkout of {existing_url}" if existing_url else "no checkout"
            raise AlreadyExistsConflictError(
                f"{target} already exists and holds {found}, expected {url}; "
                "remove it or request overwrite",
                remote=url,
                local_path=target,
            )

        self._write(f"replacing {target}: not a checkout of {url}")
        LOGGER.warning(
            "existing directory replaced",
            extra={"event": "provisioner.overwrite", "local_path": str(target), "existing_remote": existing_remote},
        )
        try:
            self._filesystem.remove_tree(target)
        except OSError as error:
            self._log_backend_failure("clone", url, target, error)
            raise CloneError(
                f"Removing {target} before cloning {redact_url(url)} failed: {error}",
                remote=url,
                local_path=target,
            ) from error
        return SyncOperation.CLONE

    def _clone(
        self,
        git_ref: GitRepoRef,
        url: str,
        projects_dir: Path,
        target: Path,
        credentials: dict[str, Credentials],
    ) -> None:
        self._write(f"cloning {redact_url(url)} into {target}")
        try:
            self._filesystem.ensure_directory(projects_dir)
            self._authenticated(
                git_ref,
                url,
                credentials,
                lambda creds: self._backend.clone(url, target, branch=git_ref.branch, credentials=creds),
            )
            if git_ref.commit_sha:
                self._backend.checkout(target, branch=git_ref.branch, commit_sha=git_ref.commit_sha)
            self._authenticated(
                git_ref,
                url,
                credentials,
                lambda creds: self._backend.sync_submodules(target, credentials=creds),
            )
        except ProvisioningError:
            raise
        except (BackendError, OSError) as error:
            self._log_backend_failure("clone", url, target, error)
            raise CloneError(
                f"Cloning {redact_url(url)} into {target} failed: {error}",
                remote=url,
                local_path=target,
            ) from error

    def _update(self, git_ref: GitRepoRef, url: str, target: Path, credentials: dict[str, Credentials]) -> None:
        self._write(f"updating {target}")
        try:
            self._authenticated(
                git_ref,
                url,
                credentials,
                lambda creds: self._backend.fetch(target, branch=git_ref.branch, credentials=creds),
            )
            self._backend.checkout(target, branch=git_ref.branch, commit_sha=git_ref.commit_sha)
            self._authenticated(
                git_ref,
                url,
                credentials,
                lambda creds: self._backend.sync_submodules(target, credentials=creds),
            )
        except ProvisioningError:
            raise
        except (BackendError, OSError) as error:
            self._log_backend_failure("update", url, target, error)
            raise UpdateError(
                f"Updating {target} from {redact_url(url)} failed: {error}",
                remote=url,
                local_path=target,
            ) from error

    def _authenticated(
        self,
        git_ref: GitRepoRef,
        url: str,
        credentials: dict[str, Credentials],
        operation: Callable[[Credentials | None], T],
    ) -> T:
        """Run `operation`, asking for credentials once per scheme and host."""
        current = next(iter(credentials.values()), None)
        while True:
            try:
                return operation(current)
            except AuthenticationRequiredError as error:
                current = self._credentials_for(git_ref, url, error, credentials)

    def _credentials_for(
        self,
        git_ref: GitRepoRef,
        url: str,
        error: AuthenticationRequiredError,
        credentials: dict[str, Credentials],
    ) -> Credentials:
        prompt_url = error.url or url
        scope = credential_scope(prompt_url)

        def fail(reason: str) -> AuthenticationError:
            LOGGER.error(
                "authentication failed",
                extra={"event": "provisioner.auth.failed", "prompt_url": redact_url(prompt_url), "reason": reason},
            )
            return AuthenticationError(
                f"Authentication for {redact_url(prompt_url)} failed: {reason}",
                remote=url,
            )

        if not git_ref.requires_authentication:
            raise fail("local archives do not support authentication") from error
        if scope in credentials:
            raise fail("credentials were rejected") from error
        if self._ask_user_password is None:
            raise fail("authentication required but no prompt available") from error

        LOGGER.info(
            "asking for credentials",
            extra={"event": "provisioner.auth.prompt", "prompt_url": redact_url(prompt_url)},
        )
        try:
            answer = self._ask_user_password(self._output, self._input, prompt_url)
        except (OSError, EOFError, ValueError, RuntimeError) as prompt_error:
            raise fail(f"credential prompt failed: {prompt_error}") from prompt_error
        if answer is None or answer.is_empty:
            raise fail("no credentials supplied") from error

        credentials[scope] = answer
        return answer

    def _configure_identity(self, git_ref: GitRepoRef, target: Path) -> str | None:
        identity = git_ref.commit_user if not git_ref.commit_email else f"{git_ref.commit_user} <{git_ref.commit_email}>"
        self._write(f"configuring commit user {identity} in {target}")
        try:
            self._backend.set_identity(target, git_ref.commit_user, git_ref.commit_email)
        except BackendError as error:
            warning = f"Configuring commit user in {target} failed: {error}"
            self._write(f"warning: {warning}")
            LOGGER.warning(
                "identity configuration failed",
                extra={"event": "provisioner.identity.failed", "local_path": str(target), "error": str(error)},
            )
            return warning
        return None

    def _log_backend_failure(self, operation: str, url: str, target: Path, error: Exception) -> None:
        LOGGER.error(
            "repository %s failed",
            operation,
            extra={
                "event": f"provisioner.{operation}.failed",
                "clone_url": redact_url(url),
                "local_path": str(target),
                "error": str(error),
            },
        )

    def _write(self, line: str) -> None:
        self._output.write(f"{line}\n")
        self._output.flush()


def _same_remote(left: str, right: str) -> bool:
    return _normalize_remote(left) == _normalize_remote(right)


def _normalize_remote(url: str) -> str:
    value = url.strip().rstrip("/")
    if value.endswith(DEFAULT_EXTENSION):
        value = value[: -len(DEFAULT_EXTENSION)]
    return value
