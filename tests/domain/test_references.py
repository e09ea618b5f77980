"""Tests for repository references and catalog descriptors."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from repo_provisioner.domain.credentials import Credentials, credential_host, credential_scope
from repo_provisioner.domain.entities import (
    BatchSummary,
    HostType,
    RepositoryDescriptor,
    RepositoryOutcome,
    build_reference,
)
from repo_provisioner.domain.errors import (
    AlreadyExistsConflictError,
    AuthenticationError,
    CloneError,
    FailureKind,
    MalformedInputError,
    PathConventionError,
    UpdateError,
)
from repo_provisioner.domain.references import (
    GitFileRepoRef,
    GitHttpsRepoRef,
    GitRepoRef,
    GitSshRepoRef,
    RepoRef,
    is_transport_variant,
)


class TestRepoRef:
    """Tests for the base reference shape."""

    def test_immutable(self) -> None:
        """Test references cannot be mutated after construction."""
        reference = GitHttpsRepoRef(remote_name="libgit2", host="github.com")

        with pytest.raises(dataclasses.FrozenInstanceError):
            reference.remote_name = "other"  # type: ignore[misc]

    def test_construction_does_not_validate(self) -> None:
        """Test invalid references can still be built and inspected."""
        reference = GitSshRepoRef(branch="main", commit_sha="deadbeef")

        assert reference.remote_name is None
        assert reference.host is None
        assert reference.default_local_name is None

    @pytest.mark.parametrize(
        ("remote_name", "expected"),
        [
            ("libgit2/libgit2", "libgit2"),
            ("org/project/", "project"),
            ("tools.git", "tools"),
            ("plain", "plain"),
        ],
    )
    def test_default_local_name(self, remote_name, expected) -> None:
        """Test the default directory name is the last remote component."""
        assert RepoRef(remote_name=remote_name).default_local_name == expected


class TestTransportUrls:
    """Tests for per-variant URL construction."""

    def test_https_url(self) -> None:
        """Test HTTPS URLs join host, subdir, remote name and extension."""
        reference = GitHttpsRepoRef(remote_name="libgit2", host="github.com", subdir="libgit2/")

        assert reference.clone_url() == "https://github.com/libgit2/libgit2.git"

    def test_https_url_without_subdir(self) -> None:
        """Test remote names may carry the full path themselves."""
        reference = GitHttpsRepoRef(remote_name="org/project", host="github.com/")

        assert reference.clone_url() == "https://github.com/org/project.git"

    def test_extension_override(self) -> None:
        """Test the archive extension can be replaced or dropped."""
        custom = GitHttpsRepoRef(remote_name="project", host="example.com", subdir="git", extension=".repo")
        bare = GitHttpsRepoRef(remote_name="project", host="example.com", extension="")

        assert custom.clone_url() == "https://example.com/git/project.repo"
        assert bare.clone_url() == "https://example.com/project"

    def test_ssh_url_default_user(self) -> None:
        """Test SSH URLs use the 'git' user by default."""
        reference = GitSshRepoRef(remote_name="libgit2", host="github.com", subdir="libgit2/")

        assert reference.effective_ssh_user == "git"
        assert reference.clone_url() == "git@github.com:libgit2/libgit2.git"

    def test_ssh_url_custom_user(self) -> None:
        """Test a custom SSH user replaces the default."""
        reference = GitSshRepoRef(remote_name="project", host="10.0.0.5", ssh_user="builder")

        assert reference.clone_url() == "builder@10.0.0.5:project.git"

    def test_file_url(self, tmp_path: Path) -> None:
        """Test local archives resolve to an absolute filesystem path."""
        reference = GitFileRepoRef(remote_name="project", host=str(tmp_path), subdir="git/")

        assert reference.clone_url() == (tmp_path / "git" / "project.git").resolve().as_posix()

    def test_base_shape_has_no_url(self) -> None:
        """Test the shared base is not a concrete transport."""
        with pytest.raises(NotImplementedError):
            GitRepoRef(remote_name="project", host="github.com").clone_url()

    def test_authentication_shape(self) -> None:
        """Test which variants may prompt for credentials."""
        assert GitHttpsRepoRef.requires_authentication is True
        assert GitSshRepoRef.requires_authentication is True
        assert GitFileRepoRef.requires_authentication is False

    def test_closed_variant_set(self) -> None:
        """Test only the three concrete variants count as transports."""
        assert is_transport_variant(GitHttpsRepoRef())
        assert is_transport_variant(GitFileRepoRef())
        assert is_transport_variant(GitSshRepoRef())
        assert not is_transport_variant(GitRepoRef())
        assert not is_transport_variant(RepoRef())

    def test_has_commit_user(self) -> None:
        """Test commit user presence reporting."""
        assert GitHttpsRepoRef(commit_user="Alice").has_commit_user is True
        assert GitHttpsRepoRef(commit_user="").has_commit_user is False
        assert GitHttpsRepoRef().has_commit_user is False


class TestBuildReference:
    """Tests for building references from catalog descriptors."""

    @pytest.mark.parametrize(
        ("host_type", "variant"),
        [(HostType.HTTPS, GitHttpsRepoRef), (HostType.FILE, GitFileRepoRef), (HostType.SSH, GitSshRepoRef)],
    )
    def test_variant_per_host_type(self, host_type, variant) -> None:
        """Test each transport kind maps to its reference variant."""
        descriptor = RepositoryDescriptor("local", "remote", host_type, "github.com", "kubicas/")

        reference = build_reference(descriptor)

        assert type(reference) is variant
        assert reference.local_name == "local"
        assert reference.remote_name == "remote"
        assert reference.host == "github.com"
        assert reference.subdir == "kubicas/"

    def test_overrides(self) -> None:
        """Test optional fields come from overrides and ssh_user only applies to SSH."""
        https = RepositoryDescriptor("a", "a", HostType.HTTPS, "github.com")
        ssh = RepositoryDescriptor("b", "b", HostType.SSH, "github.com")

        https_ref = build_reference(https, branch="develop", commit_user=None, ssh_user="builder")
        ssh_ref = build_reference(ssh, ssh_user="builder")

        assert https_ref.branch == "develop"
        assert https_ref.commit_user is None
        assert not hasattr(https_ref, "ssh_user")
        assert ssh_ref.ssh_user == "builder"

    def test_host_type_from_string(self) -> None:
        """Test host types given as plain strings are accepted."""
        descriptor = RepositoryDescriptor("a", "a", "ssh", "github.com")  # type: ignore[arg-type]

        assert isinstance(build_reference(descriptor), GitSshRepoRef)


class TestResultsAndErrors:
    """Tests for batch summaries, credentials and failure kinds."""

    def test_summary_counts(self) -> None:
        """Test summary counters derive from outcomes."""
        summary = BatchSummary(
            projects_dir="/x/projects/",
            selected=("a", "b", "c"),
            outcomes=(
                RepositoryOutcome("a", "a", Path("/x/projects/a"), success=True, operation="clone"),
                RepositoryOutcome("b", "b", Path("/x/projects/b"), success=False, failure_kind=FailureKind.CLONE_FAILURE),
            ),
            aborted=True,
            skipped=("c",),
        )

        assert summary.successful_repositories == 1
        assert summary.failed_repositories == 1

    def test_credentials_repr_hides_password(self) -> None:
        """Test passwords never appear in the representation."""
        credentials = Credentials("alice", "s3cret")

        assert "s3cret" not in repr(credentials)
        assert credentials.is_empty is False
        assert Credentials("", "").is_empty is True

    @pytest.mark.parametrize(
        ("error_type", "kind", "base"),
        [
            (MalformedInputError, FailureKind.MALFORMED_INPUT, ValueError),
            (PathConventionError, FailureKind.PATH_CONVENTION, ValueError),
            (AlreadyExistsConflictError, FailureKind.ALREADY_EXISTS_CONFLICT, RuntimeError),
            (CloneError, FailureKind.CLONE_FAILURE, RuntimeError),
            (UpdateError, FailureKind.UPDATE_FAILURE, RuntimeError),
            (AuthenticationError, FailureKind.AUTHENTICATION_FAILURE, RuntimeError),
        ],
    )
    def test_failure_kinds(self, error_type, kind, base) -> None:
        """Test each failure class carries its kind and standard base."""
        error = error_type("boom", remote="https://example.com/x.git", local_path=Path("/x/projects/x"))

        assert error.kind == kind
        assert isinstance(error, base)
        assert error.remote == "https://example.com/x.git"
        assert str(error) == "boom"


class TestCredentialScope:
    """Tests for the host a URL authenticates against."""

    @pytest.mark.parametrize(
        ("url", "host", "scope"),
        [
            ("https://github.com", "github.com", "https://github.com"),
            ("https://github.com/kubicas/x.git/", "github.com", "https://github.com"),
            ("https://alice@GitHub.com:8443/x.git", "GitHub.com:8443", "https://github.com:8443"),
            ("git@github.com:kubicas/x.git", "github.com", "ssh://github.com"),
            ("ssh://git@github.com/kubicas/x.git", "github.com", "ssh://github.com"),
            ("/srv/archive/x.git", None, "/srv/archive/x.git"),
            ("file:///srv/archive/x.git", None, "file:///srv/archive/x.git"),
        ],
    )
    def test_host_and_scope(self, url: str, host: str | None, scope: str) -> None:
        """Test URLs of the same host share one credential scope."""
        assert credential_host(url) == host
        assert credential_scope(url) == scope
