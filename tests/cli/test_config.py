"""Tests for CLI configuration resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from repo_provisioner.cli.config import load_config
from repo_provisioner.cli.main import build_parser


def parse(*argv: str):
    return build_parser().parse_args(list(argv))


class TestLoadConfig:
    """Tests for flag, environment and default precedence."""

    def test_defaults(self, tmp_path: Path) -> None:
        """Test defaults when nothing is configured."""
        config = load_config(parse(), {}, cwd=tmp_path)

        assert config.projects_dir == f"{tmp_path.as_posix()}/projects/"
        assert config.catalog_path is None
        assert config.archive == "github-https"
        assert config.repositories == ()
        assert config.keep_going is False
        assert config.overwrite is False
        assert config.dry_run is False
        assert config.git_timeout_seconds == 300.0
        assert config.commit_user is None
        assert config.branch is None

    def test_flags_win_over_environment(self) -> None:
        """Test command-line flags take precedence over environment variables."""
        env = {"PROJECTS_DIR": "/env/projects", "REPO_ARCHIVE_TYPE": "github-https", "GIT_COMMIT_USER": "Env"}

        config = load_config(
            parse("--projects-dir", "/cli/projects", "--archive", "usb", "--commit-user", "Cli", "alpha", "beta"),
            env,
        )

        assert config.projects_dir == "/cli/projects/"
        assert config.archive == "usb"
        assert config.commit_user == "Cli"
        assert config.repositories == ("alpha", "beta")

    def test_environment_fallbacks(self) -> None:
        """Test environment variables fill unset flags; blank values count as unset."""
        env = {
            "PROJECTS_DIR": "/env/projects/",
            "REPO_CATALOG": "/env/catalog.json",
            "REPO_KEEP_GOING": "yes",
            "REPO_OVERWRITE": "0",
            "GIT_TIMEOUT_SECONDS": "42",
            "GIT_COMMIT_USER": "Alice",
            "GIT_COMMIT_EMAIL": "alice@example.com",
            "GIT_BRANCH": "  ",
        }

        config = load_config(parse(), env)

        assert config.projects_dir == "/env/projects/"
        assert config.catalog_path == Path("/env/catalog.json")
        assert config.keep_going is True
        assert config.overwrite is False
        assert config.git_timeout_seconds == 42.0
        assert config.commit_email == "alice@example.com"
        assert config.branch is None

    @pytest.mark.parametrize(
        ("argv", "env", "message"),
        [
            ((), {"REPO_ARCHIVE_TYPE": "floppy"}, "Unsupported archive type"),
            ((), {"REPO_KEEP_GOING": "maybe"}, "REPO_KEEP_GOING must be a boolean"),
            ((), {"GIT_TIMEOUT_SECONDS": "soon"}, "must be a number"),
            (("--git-timeout", "0"), {}, "must be greater than 0"),
            (("--commit-email", "a@example.com"), {}, "requires GIT_COMMIT_USER"),
        ],
    )
    def test_invalid_values(self, argv, env, message) -> None:
        """Test invalid settings raise ValueError naming the setting."""
        with pytest.raises(ValueError, match=message):
            load_config(parse(*argv), env)
