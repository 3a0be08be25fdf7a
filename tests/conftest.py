"""
Shared test fixtures and configuration for dircli tests.

This module provides common fixtures used across all test types:
- Paths to the fixture module trees under tests/fixtures
- In-process loading of generated programs (no bundler involved)
- Isolation of sys.path / sys.modules between generated programs
- A click CliRunner
"""

import sys
from collections.abc import Callable
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from dircli.compiler import compile_directory
from dircli.emitter import render_program

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# ============================================================================
# DIRECTORY FIXTURES
# ============================================================================


@pytest.fixture
def fixtures_dir() -> Path:
    """Root of the fixture module trees (args, base, casing, description, flags)."""
    return FIXTURES_DIR


@pytest.fixture
def module_tree(tmp_path):
    """Factory writing a module tree from a {relative path: source} mapping.

    Returns the base directory.
    """

    def _write(files: dict[str, str]) -> Path:
        base = tmp_path / "src"
        base.mkdir(exist_ok=True)
        for relative, source in files.items():
            path = base / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source)
        return base

    return _write


# ============================================================================
# GENERATED PROGRAM FIXTURES
# ============================================================================


@pytest.fixture
def isolated_imports():
    """Restore sys.path and sys.modules after loading user modules.

    Every generated program mounts its base directory as the same commands
    package, so every test that loads one must leave no trace behind.
    """
    saved_path = list(sys.path)
    saved_modules = set(sys.modules)
    yield
    sys.path[:] = saved_path
    for name in set(sys.modules) - saved_modules:
        del sys.modules[name]


@pytest.fixture
def load_program(isolated_imports) -> Callable[..., click.Group]:
    """Compile, render and execute a program in-process.

    Returns a function ``(base_dir, name="cli") -> root click group``.
    """

    def _load(base_dir: Path, name: str = "cli") -> click.Group:
        source = render_program(compile_directory(base_dir, name))
        namespace: dict = {"__name__": f"dircli_generated_{name.replace('-', '_')}"}
        exec(compile(source, f"<{name}>", "exec"), namespace)
        return namespace["cli"]

    return _load


@pytest.fixture
def runner() -> CliRunner:
    """Click test runner."""
    return CliRunner()
