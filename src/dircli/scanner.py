"""Candidate module discovery under a base directory."""

import logging
from pathlib import Path

from dircli.errors import ScanError
from dircli.naming import SOURCE_EXTENSIONS

logger = logging.getLogger(__name__)


def is_candidate(relative_path: str) -> bool:
    """True unless the file stem or any ancestor directory starts with ``_``."""
    return not any(part.startswith("_") for part in relative_path.split("/"))


def scan_modules(base_dir: Path) -> list[str]:
    """Find every candidate module under ``base_dir``, recursively.

    Args:
        base_dir: Directory holding the command modules

    Returns:
        Lexicographically sorted slash-separated paths relative to base_dir

    Raises:
        ScanError: If base_dir is missing or unreadable
    """
    if not base_dir.is_dir():
        raise ScanError(f"Base directory not found: {base_dir}")
    try:
        next(base_dir.iterdir(), None)
    except OSError as e:
        raise ScanError(f"Cannot read base directory {base_dir}: {e}") from e

    found: list[str] = []
    for extension in SOURCE_EXTENSIONS:
        for path in base_dir.rglob(f"*{extension}"):
            if not path.is_file():
                continue
            relative = path.relative_to(base_dir).as_posix()
            if is_candidate(relative):
                found.append(relative)
            else:
                logger.debug(f"Skipping private module: {relative}")

    found.sort()
    if not found:
        logger.warning(f"No command modules found under {base_dir}")
    else:
        logger.debug(f"Found {len(found)} command module(s) under {base_dir}")
    return found


__all__ = ["is_candidate", "scan_modules"]
