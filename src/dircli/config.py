"""Build configuration: entry files and command-line flags.

An entry file is a small TOML record, read with tomli and never executed:

    base_dir = "src"   # required ("baseDir" is accepted too)
    name = "mycli"     # optional, default "cli"

The same keys may live under ``[tool.dircli]`` in a pyproject.toml.
Entry files and the ``--baseDir``/``--name`` flags are mutually exclusive.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomli
import tomlkit

from dircli.errors import LoadError, UsageError

logger = logging.getLogger(__name__)

DEFAULT_ENTRY = "dircli.toml"
PYPROJECT = "pyproject.toml"
DEFAULT_NAME = "cli"

MUTUALLY_EXCLUSIVE_MESSAGE = (
    "Cannot use flags (--baseDir, --name) when an entry file is provided.\n"
    "Please either configure via the entry file OR use flags directly."
)

_KEY_ALIASES = {"base_dir": "base_dir", "baseDir": "base_dir", "name": "name"}


@dataclass
class BuildConfig:
    """Resolved inputs of one build."""

    base_dir: Path
    name: str = DEFAULT_NAME

    def to_dict(self) -> dict[str, Any]:
        """Convert to a TOML-friendly dictionary."""
        return {"base_dir": self.base_dir.as_posix(), "name": self.name}

    @classmethod
    def from_dict(cls, data: dict[str, Any], root: Path | None = None) -> "BuildConfig":
        """Create from entry-file keys, resolving base_dir against ``root``.

        Raises:
            LoadError: On unknown keys, non-string values or a missing base_dir
        """
        values: dict[str, str] = {}
        for key, value in data.items():
            canonical = _KEY_ALIASES.get(key)
            if canonical is None:
                raise LoadError(f"Unknown configuration key: {key}")
            if not isinstance(value, str) or not value:
                raise LoadError(f"Configuration key '{key}' must be a non-empty string")
            values[canonical] = value

        if "base_dir" not in values:
            raise LoadError("Configuration is missing required key: base_dir")

        base_dir = Path(values["base_dir"]).expanduser()
        if root is not None and not base_dir.is_absolute():
            base_dir = root / base_dir
        return cls(base_dir=base_dir, name=values.get("name", DEFAULT_NAME))


def load_entry_config(entry: Path | str) -> BuildConfig:
    """Load a build configuration from an entry file.

    Args:
        entry: dircli.toml-style file, or a pyproject.toml with [tool.dircli]

    Returns:
        BuildConfig with base_dir relative to the entry file's directory

    Raises:
        LoadError: If the file is unreadable, malformed or incomplete
    """
    path = Path(entry).expanduser().resolve()
    try:
        with open(path, "rb") as f:
            data = tomli.load(f)
    except FileNotFoundError as e:
        raise LoadError(f"Entry file not found: {path}") from e
    except OSError as e:
        raise LoadError(f"Cannot read entry file {path}: {e}") from e
    except tomli.TOMLDecodeError as e:
        raise LoadError(f"Invalid TOML in {path}: {e}") from e

    if path.name == PYPROJECT or "tool" in data:
        section = data.get("tool", {}).get("dircli")
        if not isinstance(section, dict):
            raise LoadError(f"No [tool.dircli] table in {path}")
        data = section

    config = BuildConfig.from_dict(data, root=path.parent)
    logger.debug(f"Loaded config from {path}: {config.to_dict()}")
    return config


def _has_tool_table(path: Path) -> bool:
    try:
        with open(path, "rb") as f:
            data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError):
        return False
    return isinstance(data.get("tool", {}).get("dircli"), dict)


def resolve_build_config(
    entry: str | None = None,
    base_dir: str | None = None,
    name: str | None = None,
    cwd: Path | None = None,
) -> BuildConfig:
    """Resolve the build configuration from an entry file or flags.

    Args:
        entry: Entry file path (positional argument)
        base_dir: ``--baseDir`` flag value
        name: ``--name`` flag value
        cwd: Directory relative paths are resolved against

    Returns:
        Resolved BuildConfig

    Raises:
        UsageError: If an entry file is mixed with flags, or nothing names a base directory
        LoadError: If the entry file is invalid
    """
    cwd = Path(cwd or Path.cwd())

    if entry is not None:
        if base_dir is not None or name is not None:
            raise UsageError(MUTUALLY_EXCLUSIVE_MESSAGE)
        return load_entry_config(cwd / entry)

    if base_dir is not None:
        path = Path(base_dir).expanduser()
        if not path.is_absolute():
            path = cwd / path
        return BuildConfig(base_dir=path, name=name or DEFAULT_NAME)

    default_entry = cwd / DEFAULT_ENTRY
    if default_entry.is_file():
        config = load_entry_config(default_entry)
    elif (cwd / PYPROJECT).is_file() and _has_tool_table(cwd / PYPROJECT):
        config = load_entry_config(cwd / PYPROJECT)
    else:
        raise UsageError(
            f"No base directory given. Pass --baseDir, an entry file, or create {DEFAULT_ENTRY}."
        )

    if name is not None:
        config.name = name
    return config


def write_entry_config(path: Path | str, config: BuildConfig, force: bool = False) -> Path:
    """Write a starter entry file.

    Args:
        path: Destination file
        config: Values to write (base_dir is written as given)
        force: Overwrite an existing file

    Returns:
        The written path

    Raises:
        UsageError: If the file exists and force is False
        LoadError: If the file cannot be written
    """
    target = Path(path).expanduser()
    if target.exists() and not force:
        raise UsageError(f"{target} already exists (use --force to overwrite)")

    doc = tomlkit.document()
    doc.add(tomlkit.comment("dircli build configuration"))
    doc.add(tomlkit.comment("base_dir: directory whose Python modules become commands"))
    doc.add(tomlkit.comment("name: program and executable name"))
    for key, value in config.to_dict().items():
        doc[key] = value

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w") as f:
            tomlkit.dump(doc, f)
    except OSError as e:
        raise LoadError(f"Failed to write {target}: {e}") from e

    logger.debug(f"Wrote entry file: {target}")
    return target


__all__ = [
    "DEFAULT_ENTRY",
    "MUTUALLY_EXCLUSIVE_MESSAGE",
    "BuildConfig",
    "load_entry_config",
    "resolve_build_config",
    "write_entry_config",
]
