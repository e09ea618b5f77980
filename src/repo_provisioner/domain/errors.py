from __future__ import annotations
"""Failure taxonomy raised by the provisioner and the VCS backend port.

Provisioning failures fall in two families: malformed input (a programming or
configuration error knowable before any I/O, subclasses of `ValueError`) and
operational failures (subclasses of `RuntimeError`). Each carries a
`FailureKind` so that batch summaries can report the class of failure without
inspecting exception types.
"""

from enum import Enum
from pathlib import Path


class FailureKind(str, Enum):
    MALFORMED_INPUT = "malformed-input"
    PATH_CONVENTION = "path-convention"
    ALREADY_EXISTS_CONFLICT = "already-exists-conflict"
    CLONE_FAILURE = "clone-failure"
    UPDATE_FAILURE = "update-failure"
    AUTHENTICATION_FAILURE = "authentication-failure"


class ProvisioningError(Exception):
    """Base class of every failure surfaced by `RepoProvisioner.get`."""

    kind: FailureKind

    def __init__(
        self,
        message: str,
        *,
        remote: str | None = None,
        local_path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.remote = remote
        self.local_path = local_path


class MalformedInputError(ProvisioningError, ValueError):
    """Violated precondition; never retried."""

    kind = FailureKind.MALFORMED_INPUT


class PathConventionError(MalformedInputError):
    """Projects path does not end with the reserved projects suffix."""

    kind = FailureKind.PATH_CONVENTION


class AlreadyExistsConflictError(ProvisioningError, RuntimeError):
    """Target directory holds something other than a checkout of the expected remote."""

    kind = FailureKind.ALREADY_EXISTS_CONFLICT


class CloneError(ProvisioningError, RuntimeError):
    kind = FailureKind.CLONE_FAILURE


class UpdateError(ProvisioningError, RuntimeError):
    kind = FailureKind.UPDATE_FAILURE


class AuthenticationError(ProvisioningError, RuntimeError):
    """Credentials were required but unavailable, declined or rejected."""

    kind = FailureKind.AUTHENTICATION_FAILURE


class BackendError(RuntimeError):
    """Operational failure reported by a `VcsBackendPort` implementation."""


class AuthenticationRequiredError(BackendError):
    """Backend needs (other) credentials for `url` before it can proceed."""

    def __init__(self, url: str, message: str | None = None) -> None:
        super().__init__(message or f"Authentication required for {url}")
        self.url = url
