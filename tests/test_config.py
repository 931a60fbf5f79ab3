"""Tests for build configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from relobuild import launcher
from relobuild.config import (
    BUNDLED_REPO_OVERRIDE,
    BuildConfig,
    ConfigOverride,
    default_overrides,
    dump_config,
    load_config,
)
from relobuild.errors import ConfigurationError


class TestBuildConfig:
    """Test the BuildConfig defaults and derived values."""

    def test_defaults(self):
        """Test that BuildConfig has the expected defaults."""
        config = BuildConfig()

        assert config.tool == "git"
        assert config.version == "2.45.3"
        assert config.destination == Path("/share/Public/toolchain/git")
        assert config.image == "sdhuang32/c7-systemd"
        assert config.overwrite_existing is True
        assert config.tolerate_build_failures is True
        assert config.launcher_source == Path(launcher.__file__)
        assert config.profile_file is None

    def test_derived_values(self):
        """Test derived names and paths."""
        config = BuildConfig(tool="git", version="2.44.0", destination=Path("/opt/git"))

        assert config.environment_name == "git-builder"
        assert config.binary_path == Path("/opt/git/bin/git")
        assert config.launcher_path == Path("/opt/git/git")
        assert config.parameters.as_args() == ["2.44.0", "/opt/git"]
        assert config.source_url() == "https://mirrors.edge.kernel.org/pub/software/scm/git/git-2.44.0.tar.gz"

    def test_explicit_container_name(self):
        """Test that an explicit container name wins over the derived one."""
        assert BuildConfig(container_name="ci-git").environment_name == "ci-git"


class TestLoadConfig:
    """Test loading configuration from files and environment."""

    def test_defaults_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Test that no file and no environment yields defaults plus the bundled repository override."""
        monkeypatch.chdir(tmp_path)

        config = load_config(environ={})

        assert config._replace(config_overrides=()) == BuildConfig()
        assert config.config_overrides == (ConfigOverride(BUNDLED_REPO_OVERRIDE, "/etc/yum.repos.d/CentOS-Base.repo"),)

    def test_bundled_repo_override_exists(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Test that the default override points at a file shipped with the package."""
        monkeypatch.chdir(tmp_path)

        (override,) = load_config(environ={}).config_overrides

        assert override.source.is_file()
        assert "vault.centos.org" in override.source.read_text()

    def test_bundled_repo_used_beside_bare_config(self, tmp_path: Path):
        """Test that a config without a repository file next to it still gets the bundled override."""
        config_file = tmp_path / "build.toml"
        config_file.write_text('version = "2.44.0"\n')

        (override,) = load_config(config_file, environ={}).config_overrides

        assert override.source == BUNDLED_REPO_OVERRIDE

    def test_empty_override_list_disables_default(self, tmp_path: Path):
        """Test that an explicit empty override list turns the repository override off."""
        config_file = tmp_path / "build.toml"
        config_file.write_text("[relobuild]\nconfig_overrides = []\n")

        assert load_config(config_file, environ={}).config_overrides == ()

    def test_relobuild_table(self, tmp_path: Path):
        """Test loading a [relobuild] table with relative paths."""
        config_file = tmp_path / "build.toml"
        config_file.write_text(
            "[relobuild]\n"
            'version = "2.44.0"\n'
            'destination = "toolchain/git"\n'
            'build_packages = ["gcc", "make"]\n'
            "overwrite_existing = false\n"
            "\n"
            "[[relobuild.config_overrides]]\n"
            'source = "repos/base.repo"\n'
            'target = "/etc/yum.repos.d/base.repo"\n'
        )

        config = load_config(config_file, environ={})

        assert config.version == "2.44.0"
        assert config.destination == tmp_path.resolve() / "toolchain" / "git"
        assert config.build_packages == ("gcc", "make")
        assert config.overwrite_existing is False
        assert config.config_overrides == (
            ConfigOverride(tmp_path.resolve() / "repos" / "base.repo", "/etc/yum.repos.d/base.repo"),
        )

    def test_pyproject_table(self, tmp_path: Path):
        """Test loading settings from a [tool.relobuild] table."""
        config_file = tmp_path / "pyproject.toml"
        config_file.write_text('[project]\nname = "x"\n\n[tool.relobuild]\nimage = "centos:7"\n')

        assert load_config(config_file, environ={}).image == "centos:7"

    def test_environment_overrides(self, tmp_path: Path):
        """Test that environment variables override file values."""
        config_file = tmp_path / "build.toml"
        config_file.write_text('version = "2.40.0"\n')
        environ = {
            "RELOBUILD_VERSION": "2.45.1",
            "RELOBUILD_DESTINATION": "/opt/git",
            "RELOBUILD_IMAGE": "centos:7",
        }

        config = load_config(config_file, environ=environ)

        assert config.version == "2.45.1"
        assert config.destination == Path("/opt/git")
        assert config.image == "centos:7"

    def test_missing_file(self, tmp_path: Path):
        """Test that a missing configuration file is a configuration error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "missing.toml", environ={})

    def test_invalid_toml(self, tmp_path: Path):
        """Test that malformed TOML is a configuration error."""
        config_file = tmp_path / "build.toml"
        config_file.write_text("version = \n")

        with pytest.raises(ConfigurationError, match="Could not parse"):
            load_config(config_file, environ={})

    def test_unknown_key(self, tmp_path: Path):
        """Test that unknown keys are rejected."""
        config_file = tmp_path / "build.toml"
        config_file.write_text('[relobuild]\nflavour = "vanilla"\n')

        with pytest.raises(ConfigurationError, match="flavour"):
            load_config(config_file, environ={})

    def test_non_boolean_flag(self, tmp_path: Path):
        """Test that boolean settings must be booleans."""
        config_file = tmp_path / "build.toml"
        config_file.write_text('[relobuild]\ntolerate_build_failures = "yes"\n')

        with pytest.raises(ConfigurationError, match="true or false"):
            load_config(config_file, environ={})

    def test_bad_override_entry(self, tmp_path: Path):
        """Test that override entries need a source and a target."""
        config_file = tmp_path / "build.toml"
        config_file.write_text('[[relobuild.config_overrides]]\nsource = "a.repo"\n')

        with pytest.raises(ConfigurationError, match="'source' and 'target'"):
            load_config(config_file, environ={})

    def test_repo_override_picked_up(self, tmp_path: Path):
        """Test that a repository file next to the config becomes an override."""
        (tmp_path / "CentOS-Base.repo").write_text("[base]\n")
        config_file = tmp_path / "build.toml"
        config_file.write_text("")

        config = load_config(config_file, environ={})

        assert config.config_overrides == default_overrides(tmp_path.resolve())
        assert config.config_overrides[0].target == "/etc/yum.repos.d/CentOS-Base.repo"

    def test_dump_reloads_equal(self, tmp_path: Path):
        """Test that a dumped configuration loads back unchanged."""
        repo = tmp_path / "base.repo"
        original = BuildConfig(
            version="2.44.0",
            destination=tmp_path / "git",
            config_overrides=(ConfigOverride(repo, "/etc/yum.repos.d/base.repo"),),
            profile_file=tmp_path / "profile",
            tolerate_build_failures=False,
        )
        config_file = tmp_path / "dumped.toml"
        config_file.write_text(dump_config(original))

        assert load_config(config_file, environ={}) == original
