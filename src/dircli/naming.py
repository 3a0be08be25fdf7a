"""Naming transform from identifiers and file paths to command tokens.

Pure and stateless. ``PascalCase``, ``camelCase`` and ``snake_case``
spellings all become hyphen-separated lowercase tokens; already hyphenated
spellings are left unchanged.

Public API (the "studs"):
    to_command_token: identifier -> command token
    to_flag_name: record field -> ``--long-option``
    split_module_path: "db/seed/index.py" -> (["db", "seed"], "index")
    module_import_name: "db/seed/index.py" -> "db.seed.index"
"""

import re

SOURCE_EXTENSIONS = (".py",)
INDEX_SENTINEL = "index"

_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def strip_extension(path: str) -> str:
    """Strip one trailing recognized source extension."""
    for extension in SOURCE_EXTENSIONS:
        if path.endswith(extension):
            return path[: -len(extension)]
    return path


def to_command_token(identifier: str) -> str:
    """Transform an identifier into its canonical command token.

    Examples:
        >>> to_command_token("PascalCaseFile")
        'pascal-case-file'
        >>> to_command_token("camelCaseFile")
        'camel-case-file'
        >>> to_command_token("insert_user")
        'insert-user'
        >>> to_command_token("kebab-case-file")
        'kebab-case-file'
    """
    token = _CASE_BOUNDARY.sub(r"\1-\2", identifier).lower()
    return token.replace("_", "-").strip("-")


def to_flag_name(field_name: str) -> str:
    """Long option spelling for a record field (``dry_run`` -> ``--dry-run``)."""
    return f"--{to_command_token(field_name)}"


def is_index(stem: str) -> bool:
    """True for the stem that configures its containing directory."""
    return stem == INDEX_SENTINEL


def split_module_path(path: str) -> tuple[list[str], str]:
    """Split a module path into raw directory segments and the file stem."""
    parts = strip_extension(path).split("/")
    return parts[:-1], parts[-1]


def module_import_name(path: str) -> str:
    """Dotted import name of a module path relative to the base directory."""
    return strip_extension(path).replace("/", ".")


__all__ = [
    "INDEX_SENTINEL",
    "SOURCE_EXTENSIONS",
    "is_index",
    "module_import_name",
    "split_module_path",
    "strip_extension",
    "to_command_token",
    "to_flag_name",
]
