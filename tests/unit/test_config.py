"""Tests for entry-file and flag configuration."""

from pathlib import Path

import pytest
import tomli

from dircli.config import (
    MUTUALLY_EXCLUSIVE_MESSAGE,
    BuildConfig,
    load_entry_config,
    resolve_build_config,
    write_entry_config,
)
from dircli.errors import LoadError, UsageError


class TestBuildConfig:
    """Tests for BuildConfig.from_dict / to_dict."""

    def test_defaults(self):
        config = BuildConfig.from_dict({"base_dir": "src"})

        assert config.base_dir == Path("src")
        assert config.name == "cli"

    def test_camel_case_alias(self, tmp_path):
        config = BuildConfig.from_dict({"baseDir": "src", "name": "mycli"}, root=tmp_path)

        assert config.base_dir == tmp_path / "src"
        assert config.name == "mycli"

    def test_absolute_base_dir_is_kept(self, tmp_path):
        config = BuildConfig.from_dict({"base_dir": str(tmp_path)}, root=Path("/elsewhere"))

        assert config.base_dir == tmp_path

    @pytest.mark.parametrize(
        "data,message",
        [
            ({"base_dir": "src", "extra": "x"}, "Unknown configuration key"),
            ({"base_dir": 3}, "must be a non-empty string"),
            ({"base_dir": ""}, "must be a non-empty string"),
            ({"name": "x"}, "missing required key: base_dir"),
        ],
    )
    def test_invalid(self, data, message):
        with pytest.raises(LoadError, match=message):
            BuildConfig.from_dict(data)

    def test_to_dict(self):
        assert BuildConfig(Path("src"), "mycli").to_dict() == {"base_dir": "src", "name": "mycli"}


class TestLoadEntryConfig:
    """Tests for load_entry_config."""

    def test_dircli_toml(self, tmp_path):
        entry = tmp_path / "dircli.toml"
        entry.write_text('base_dir = "src"\nname = "mycli"\n')

        config = load_entry_config(entry)

        assert config.base_dir == tmp_path.resolve() / "src"
        assert config.name == "mycli"

    def test_pyproject_tool_table(self, tmp_path):
        entry = tmp_path / "pyproject.toml"
        entry.write_text('[project]\nname = "x"\n\n[tool.dircli]\nbaseDir = "cmds"\n')

        config = load_entry_config(entry)

        assert config.base_dir == tmp_path.resolve() / "cmds"

    def test_pyproject_without_table(self, tmp_path):
        entry = tmp_path / "pyproject.toml"
        entry.write_text('[project]\nname = "x"\n')

        with pytest.raises(LoadError, match=r"No \[tool.dircli\] table"):
            load_entry_config(entry)

    def test_missing_file(self, tmp_path):
        with pytest.raises(LoadError, match="Entry file not found"):
            load_entry_config(tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path):
        entry = tmp_path / "dircli.toml"
        entry.write_text("base_dir = \n")

        with pytest.raises(LoadError, match="Invalid TOML"):
            load_entry_config(entry)


class TestResolveBuildConfig:
    """Tests for resolve_build_config."""

    def test_entry_with_flags_is_rejected(self, tmp_path):
        with pytest.raises(UsageError) as exc_info:
            resolve_build_config("dircli.toml", base_dir="src", cwd=tmp_path)

        assert str(exc_info.value) == MUTUALLY_EXCLUSIVE_MESSAGE

    def test_entry_with_name_is_rejected(self, tmp_path):
        with pytest.raises(UsageError):
            resolve_build_config("dircli.toml", name="x", cwd=tmp_path)

    def test_flags(self, tmp_path):
        config = resolve_build_config(base_dir="src", name="mycli", cwd=tmp_path)

        assert config == BuildConfig(tmp_path / "src", "mycli")

    def test_entry_relative_to_cwd(self, tmp_path):
        (tmp_path / "conf").mkdir()
        (tmp_path / "conf" / "cli.toml").write_text('base_dir = "../src"\n')

        config = resolve_build_config("conf/cli.toml", cwd=tmp_path)

        assert config.base_dir == tmp_path.resolve() / "conf" / ".." / "src"

    def test_default_entry_file(self, tmp_path):
        (tmp_path / "dircli.toml").write_text('base_dir = "src"\n')

        config = resolve_build_config(cwd=tmp_path)

        assert config.base_dir == tmp_path.resolve() / "src"

    def test_default_pyproject(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text('[tool.dircli]\nbase_dir = "lib"\nname = "t"\n')

        config = resolve_build_config(cwd=tmp_path)

        assert config.base_dir == tmp_path.resolve() / "lib"
        assert config.name == "t"

    def test_nothing_configured(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')

        with pytest.raises(UsageError, match="No base directory given"):
            resolve_build_config(cwd=tmp_path)


class TestWriteEntryConfig:
    """Tests for write_entry_config."""

    def test_writes_loadable_file(self, tmp_path):
        path = write_entry_config(tmp_path / "dircli.toml", BuildConfig(Path("src"), "mycli"))

        text = path.read_text()
        assert text.startswith("# dircli build configuration")
        assert tomli.loads(text) == {"base_dir": "src", "name": "mycli"}
        assert load_entry_config(path).base_dir == tmp_path.resolve() / "src"

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "dircli.toml"
        path.write_text("keep")

        with pytest.raises(UsageError, match="already exists"):
            write_entry_config(path, BuildConfig(Path("src")))

        assert path.read_text() == "keep"

    def test_force_overwrites(self, tmp_path):
        path = tmp_path / "dircli.toml"
        path.write_text("old")

        write_entry_config(path, BuildConfig(Path("src")), force=True)

        assert tomli.loads(path.read_text())["base_dir"] == "src"
