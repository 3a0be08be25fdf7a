"""Error taxonomy for dircli.

Every error that reaches the top level of a dircli command is a
DircliError; the CLI prints it as ``Error: <message>`` and exits with
``exit_code``.
"""

from pathlib import Path


class DircliError(Exception):
    """Base exception for dircli errors."""

    exit_code = 1


class UsageError(DircliError):
    """Raised for invalid invocations (mixed entry/flags, missing base dir)."""

    pass


class LoadError(DircliError):
    """Raised when an entry file cannot be read or declares no valid config."""

    pass


class ScanError(DircliError):
    """Raised when the base directory cannot be scanned."""

    pass


class ParseError(DircliError):
    """Raised when a candidate module fails static extraction.

    Fatal for the whole compilation; there is no per-file recovery.
    """

    def __init__(self, path: str | Path, message: str, lineno: int | None = None):
        self.path = str(path)
        self.lineno = lineno
        location = f"{self.path}:{lineno}" if lineno else self.path
        super().__init__(f"Failed to parse {location}: {message}")


class BuildError(DircliError):
    """Raised when the bundler fails to produce an executable."""

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message)


__all__ = [
    "BuildError",
    "DircliError",
    "LoadError",
    "ParseError",
    "ScanError",
    "UsageError",
]
