from __future__ import annotations

import logging
import os
import re
import stat
import subprocess
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Sequence

from repo_provisioner.domain.credentials import Credentials, credential_host
from repo_provisioner.domain.errors import AuthenticationRequiredError, BackendError
from repo_provisioner.domain.ports import VcsBackendPort
from repo_provisioner.logging_utils import redact_url


_USERNAME_ENV = "REPO_PROVISIONER_USERNAME"
_PASSWORD_ENV = "REPO_PROVISIONER_PASSWORD"
_HOST_ENV = "REPO_PROVISIONER_HOST"
_SSH_HOST_ENV = "REPO_PROVISIONER_SSH_HOST"

# git feeds `key=value` lines on stdin; answer only `get` requests for the expected host.
_CREDENTIAL_HELPER = (
    '!f() { test "$1" = get || return 0; host=; '
    "while IFS='=' read -r key value; do test \"$key\" = host && host=\"$value\"; done; "
    f'test -n "$host" && test "$host" = "${{{_HOST_ENV}}}" || return 0; '
    f'echo "username=${{{_USERNAME_ENV}}}"; echo "password=${{{_PASSWORD_ENV}}}"; }}; f'
)
_ASKPASS_SCRIPT = (
    "#!/bin/sh\n"
    'case "$1" in\n'
    f'  *"@${{{_SSH_HOST_ENV}}}\'s password"*|*"passphrase for key"*) echo "${{{_PASSWORD_ENV}}}" ;;\n'
    "esac\n"
)

_AUTH_MARKERS = (
    "could not read username",
    "could not read password",
    "authentication failed",
    "terminal prompts disabled",
    "permission denied (publickey",
    "permission denied, please try again",
    "host key verification failed",
    "requested url returned error: 401",
    "requested url returned error: 403",
    "invalid username or password",
)
_PROMPT_URL_RE = re.compile(r"for '([^']+)'")


class ShellGitClientAdapter(VcsBackendPort):
    def __init__(
        self,
        *,
        git_executable: str = "git",
        timeout_seconds: float = 300.0,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._git_executable = git_executable
        self._timeout_seconds = timeout_seconds
        self._runner = runner
        self._base_env = dict(os.environ if env is None else env)
        self._logger = logging.getLogger(__name__)

    def clone(
        self,
        url: str,
        target: Path,
        *,
        branch: str | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise BackendError(f"Cannot create parent directory of {target}: {error}") from error
        self._logger.info(
            "cloning repository",
            extra={
                "event": "git.clone.start",
                "clone_url": redact_url(url),
                "local_path": str(target),
                "branch": branch,
            },
        )
        args = ["clone"]
        if branch:
            args.extend(["--branch", branch])
        args.extend([url, str(target)])
        self._run_git(args, cwd=target.parent, auth_url=url, credentials=credentials)
        self._logger.info(
            "clone completed",
            extra={"event": "git.clone.success", "local_path": str(target)},
        )

    def fetch(
        self,
        target: Path,
        *,
        branch: str | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        self._require_checkout(target, "fetch")
        auth_url = self.remote_url(target) or str(target)
        self._logger.info(
            "fetching repository",
            extra={"event": "git.fetch.start", "local_path": str(target), "branch": branch},
        )
        self._run_git(["fetch", "--prune", "--tags", "origin"], cwd=target, auth_url=auth_url, credentials=credentials)
        self._refresh_remote_head(target, auth_url=auth_url, credentials=credentials)

    def checkout(
        self,
        target: Path,
        *,
        branch: str | None = None,
        commit_sha: str | None = None,
    ) -> None:
        self._require_checkout(target, "checkout")

        if commit_sha:
            self._logger.info(
                "checking out pinned commit",
                extra={"event": "git.checkout.commit", "local_path": str(target), "commit_sha": commit_sha},
            )
            self._run_git(["checkout", "--force", "--detach", commit_sha], cwd=target)
            return

        resolved_branch = branch or self._resolve_primary_branch(target)
        if not resolved_branch:
            raise BackendError(f"Cannot update repository: no resolvable remote default branch: {target}")
        if not self._remote_branch_exists(target, resolved_branch):
            raise BackendError(f"Cannot update repository: remote branch 'origin/{resolved_branch}' not found: {target}")

        self._logger.info(
            "checking out branch tip",
            extra={"event": "git.checkout.branch", "local_path": str(target), "branch": resolved_branch},
        )
        self._checkout_branch(target, resolved_branch)

    def sync_submodules(self, target: Path, *, credentials: Credentials | None = None) -> None:
        if not (target / ".gitmodules").exists():
            return
        auth_url = self.remote_url(target) or str(target)
        self._logger.info(
            "synchronizing submodules",
            extra={"event": "git.submodules.start", "local_path": str(target)},
        )
        self._run_git(["submodule", "sync", "--recursive"], cwd=target)
        self._run_git(
            ["submodule", "update", "--init", "--recursive", "--force"],
            cwd=target,
            auth_url=auth_url,
            credentials=credentials,
        )

    def set_identity(self, target: Path, name: str, email: str | None = None) -> None:
        self._require_checkout(target, "configure identity of")
        self._run_git(["config", "user.name", name], cwd=target)
        if email:
            self._run_git(["config", "user.email", email], cwd=target)

    def remote_url(self, target: Path) -> str | None:
        if not (target / ".git").exists():
            return None
        result = self._run_git_allow_fail(["config", "--get", "remote.origin.url"], cwd=target)
        if result.returncode != 0:
            return None
        value = (result.stdout or "").strip()
        return value or None

    def _require_checkout(self, target: Path, verb: str) -> None:
        if not target.exists():
            raise BackendError(f"Cannot {verb} repository: path does not exist: {target}")
        if not (target / ".git").exists():
            raise BackendError(f"Cannot {verb} repository: not a git repository: {target}")

    def _get_default_remote_branch(self, cwd: Path) -> str | None:
        result = self._run_git_allow_fail(["symbolic-ref", "--short", "refs/remotes/origin/HEAD"], cwd=cwd)
        if result.returncode != 0:
            return None
        value = (result.stdout or "").strip()
        if value.startswith("origin/"):
            return value.split("/", 1)[1]
        return None

    def _refresh_remote_head(self, cwd: Path, *, auth_url: str, credentials: Credentials | None) -> None:
        with self._credential_environment(credentials, auth_url) as (config_args, env):
            result = self._run_git_allow_fail([*config_args, "remote", "set-head", "origin", "-a"], cwd=cwd, env=env)
        if result.returncode != 0:
            self._logger.info(
                "unable to refresh origin HEAD; continuing with current refs",
                extra={
                    "event": "git.remote_head.refresh.failed",
                    "cwd": str(cwd),
                    "remote": redact_url(auth_url),
                },
            )

    def _remote_branch_exists(self, cwd: Path, branch: str) -> bool:
        result = self._run_git_allow_fail(["show-ref", "--verify", f"refs/remotes/origin/{branch}"], cwd=cwd)
        return result.returncode == 0

    def _local_branch_exists(self, cwd: Path, branch: str) -> bool:
        result = self._run_git_allow_fail(["show-ref", "--verify", f"refs/heads/{branch}"], cwd=cwd)
        return result.returncode == 0

    def _resolve_primary_branch(self, cwd: Path) -> str | None:
        candidates: list[str] = []
        default_branch = self._get_default_remote_branch(cwd)
        if default_branch:
            candidates.append(default_branch)
        candidates.extend(["main", "master"])

        seen: set[str] = set()
        for branch in candidates:
            if branch in seen:
                continue
            seen.add(branch)
            if self._remote_branch_exists(cwd, branch):
                return branch
        return None

    def _checkout_branch(self, cwd: Path, branch: str) -> None:
        if self._local_branch_exists(cwd, branch):
            self._run_git(["checkout", "--force", branch], cwd=cwd)
            self._run_git(["reset", "--hard", f"origin/{branch}"], cwd=cwd)
            return
        self._run_git(["checkout", "--force", "-b", branch, "--track", f"origin/{branch}"], cwd=cwd)

    @contextmanager
    def _credential_environment(
        self, credentials: Credentials | None, auth_url: str | None
    ) -> Iterator[tuple[list[str], dict[str, str]]]:
        env = dict(self._base_env)
        env["GIT_TERMINAL_PROMPT"] = "0"
        host = credential_host(auth_url) if auth_url else None
        if credentials is None or host is None:
            env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")
            yield [], env
            return

        env[_USERNAME_ENV] = credentials.username
        env[_PASSWORD_ENV] = credentials.password
        env[_HOST_ENV] = host
        env[_SSH_HOST_ENV] = _host_name(host)
        with tempfile.TemporaryDirectory(prefix="repo-provisioner-") as tmp_dir:
            askpass = Path(tmp_dir) / "askpass.sh"
            askpass.write_text(_ASKPASS_SCRIPT, encoding="utf-8")
            askpass.chmod(stat.S_IRWXU)
            env["SSH_ASKPASS"] = str(askpass)
            env["SSH_ASKPASS_REQUIRE"] = "force"
            yield ["-c", "credential.helper=", "-c", f"credential.helper={_CREDENTIAL_HELPER}"], env

    def _run_git_allow_fail(
        self, args: Sequence[str], cwd: Path, *, env: Mapping[str, str] | None = None
    ) -> subprocess.CompletedProcess[str]:
        command = [self._git_executable, *args]
        try:
            return self._runner(
                command,
                cwd=str(cwd),
                check=False,
                text=True,
                capture_output=True,
                timeout=self._timeout_seconds,
                env=dict(env) if env is not None else self._quiet_env(),
            )
        except FileNotFoundError as error:
            raise BackendError(
                f"Git executable '{self._git_executable}' was not found in PATH"
            ) from error
        except subprocess.TimeoutExpired as error:
            raise BackendError(
                f"Git command timed out after {self._timeout_seconds}s: {self._describe(command)}"
            ) from error

    def _run_git(
        self,
        args: Sequence[str],
        cwd: Path,
        *,
        auth_url: str | None = None,
        credentials: Credentials | None = None,
    ) -> subprocess.CompletedProcess[str]:
        with self._credential_environment(credentials, auth_url) as (config_args, env):
            command = [self._git_executable, *config_args, *args]
            try:
                return self._runner(
                    command,
                    cwd=str(cwd),
                    check=True,
                    text=True,
                    capture_output=True,
                    timeout=self._timeout_seconds,
                    env=env,
                )
            except FileNotFoundError as error:
                raise BackendError(
                    f"Git executable '{self._git_executable}' was not found in PATH"
                ) from error
            except subprocess.TimeoutExpired as error:
                raise BackendError(
                    f"Git command timed out after {self._timeout_seconds}s: {self._describe(command)}"
                ) from error
            except subprocess.CalledProcessError as error:
                stderr = (error.stderr or "").strip()
                stdout = (error.stdout or "").strip()
                details = stderr or stdout or "No command output"
                self._logger.error(
                    "git command failed",
                    extra={
                        "event": "git.command.error",
                        "command": self._describe(command),
                        "cwd": str(cwd),
                        "return_code": error.returncode,
                        "details": details,
                    },
                )
                if auth_url is not None and _is_authentication_failure(details):
                    prompt_url = _PROMPT_URL_RE.search(details)
                    raise AuthenticationRequiredError(
                        prompt_url.group(1) if prompt_url else auth_url,
                        f"Authentication required for {redact_url(auth_url)}: {details}",
                    ) from error
                raise BackendError(
                    f"Git command failed ({error.returncode}): {self._describe(command)}\n{details}"
                ) from error

    def _quiet_env(self) -> dict[str, str]:
        env = dict(self._base_env)
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    @staticmethod
    def _describe(command: Sequence[str]) -> str:
        parts: list[str] = []
        for part in command:
            if part.startswith("credential.helper="):
                if parts and parts[-1] == "-c":
                    parts.pop()
                continue
            parts.append(redact_url(part))
        return " ".join(parts)


def _is_authentication_failure(details: str) -> bool:
    lowered = details.lower()
    return any(marker in lowered for marker in _AUTH_MARKERS)


def _host_name(host: str) -> str:
    if host.startswith("["):
        return host[1 : host.find("]")]
    return host.split(":", 1)[0]
