"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from repo_provisioner.adapters.filesystem.local_filesystem import LocalFileSystemAdapter
from repo_provisioner.application.use_cases.repo_provisioner import RepoProvisioner
from repo_provisioner.domain.credentials import Credentials
from repo_provisioner.domain.errors import AuthenticationRequiredError
from repo_provisioner.domain.ports import VcsBackendPort


class FakeVcsBackend(VcsBackendPort):
    """Recording backend double.

    `clone` materializes a directory with a `.git` folder and remembers its
    origin URL so later `remote_url` queries see a checkout.

    Attributes:
        calls: Every call as a tuple `(operation, *arguments)`.
        failures: Operation name -> exception raised by that operation. A URL
            key (e.g. `"clone:<url>"`) fails only for that remote.
        auth_required: Operations demanding `accepted_credentials`.
        accepted_credentials: Credentials the fake remote accepts.
    """

    QUERY_OPERATIONS = {"remote_url"}

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.remotes: dict[Path, str] = {}
        self.failures: dict[str, Exception] = {}
        self.auth_required: set[str] = set()
        self.accepted_credentials: Credentials | None = None

    @property
    def mutating_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] not in self.QUERY_OPERATIONS]

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls if call[0] not in self.QUERY_OPERATIONS]

    def clone(self, url, target, *, branch=None, credentials=None):
        self.calls.append(("clone", url, target, branch, credentials))
        self._maybe_fail("clone", url, credentials)
        target.mkdir(parents=True, exist_ok=True)
        (target / ".git").mkdir(exist_ok=True)
        self.remotes[target] = url

    def fetch(self, target, *, branch=None, credentials=None):
        self.calls.append(("fetch", target, branch, credentials))
        self._maybe_fail("fetch", self.remotes.get(target, str(target)), credentials)

    def checkout(self, target, *, branch=None, commit_sha=None):
        self.calls.append(("checkout", target, branch, commit_sha))
        self._maybe_fail("checkout", self.remotes.get(target, str(target)), None, authenticated=False)

    def sync_submodules(self, target, *, credentials=None):
        self.calls.append(("sync_submodules", target, credentials))
        self._maybe_fail("sync_submodules", self.remotes.get(target, str(target)), credentials)

    def set_identity(self, target, name, email=None):
        self.calls.append(("set_identity", target, name, email))
        self._maybe_fail("set_identity", self.remotes.get(target, str(target)), None, authenticated=False)

    def remote_url(self, target):
        self.calls.append(("remote_url", target))
        self._maybe_fail("remote_url", str(target), None, authenticated=False)
        return self.remotes.get(target)

    def _maybe_fail(self, operation, url, credentials, *, authenticated=True):
        error = self.failures.get(f"{operation}:{url}") or self.failures.get(operation)
        if error is not None:
            raise error
        if authenticated and operation in self.auth_required and (credentials is None or credentials != self.accepted_credentials):
            raise AuthenticationRequiredError(url)


class RecordingPrompt:
    """Credential callback double returning scripted answers."""

    def __init__(self, *answers: Credentials | None) -> None:
        self._answers = list(answers)
        self.urls: list[str] = []

    def __call__(self, output, input, url):
        self.urls.append(url)
        if not self._answers:
            return None
        return self._answers.pop(0)


@pytest.fixture
def fake_backend() -> FakeVcsBackend:
    return FakeVcsBackend()


@pytest.fixture
def filesystem() -> LocalFileSystemAdapter:
    return LocalFileSystemAdapter()


@pytest.fixture
def projects_dir(tmp_path: Path) -> str:
    """Projects directory following the `/projects/` convention."""
    return f"{tmp_path.as_posix()}/projects/"


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def make_provisioner(fake_backend: FakeVcsBackend, filesystem: LocalFileSystemAdapter, output: io.StringIO):
    """Factory building a `RepoProvisioner` on the fake backend."""

    def _make(ask_user_password=None) -> RepoProvisioner:
        return RepoProvisioner(
            output,
            io.StringIO(),
            ask_user_password,
            backend=fake_backend,
            filesystem=filesystem,
        )

    return _make


@pytest.fixture
def make_prompt():
    return RecordingPrompt
