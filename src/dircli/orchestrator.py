"""Build orchestration: render the program and bundle it with PyInstaller.

Every build writes the rendered program to its own temporary unit in the
system temp directory and stages a copy of the base directory as the
commands package in a scratch directory. The bundler runs against the unit
with the standard streams inherited; the unit and the scratch directory are
removed afterwards, on success or failure.
"""

import dataclasses
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path

from rich.console import Console

from dircli.compiler import compile_directory
from dircli.config import BuildConfig
from dircli.emitter import render_program
from dircli.errors import BuildError
from dircli.runtime import COMMANDS_PACKAGE
from dircli.synthesizer import ProgramSpec

logger = logging.getLogger(__name__)

UNIT_PREFIX = ".dircli-entry-"
RUNTIME_MODULE = "dircli.runtime"


class BuildOrchestrator:
    """Turn a ProgramSpec into a single-file executable.

    Args:
        cwd: Directory the executable is written to
        console: Console for progress lines
    """

    def __init__(self, cwd: Path | str | None = None, console: Console | None = None):
        self.cwd = Path(cwd or Path.cwd())
        self.console = console or Console()

    def stage_package(self, program: ProgramSpec, workdir: Path) -> Path:
        """Copy the base directory into ``workdir`` as the commands package.

        Every staged directory gets an ``__init__.py`` so the bundler can
        collect it. Returns the directory to add to the bundler's search path.

        Raises:
            BuildError: If the base directory cannot be copied
        """
        search_root = workdir / "src"
        package = search_root / COMMANDS_PACKAGE
        try:
            shutil.copytree(
                program.base_dir,
                package,
                ignore=shutil.ignore_patterns("__pycache__", "*.pyc", f"{UNIT_PREFIX}*"),
            )
            for directory in [package, *(p for p in package.rglob("*") if p.is_dir())]:
                (directory / "__init__.py").touch(exist_ok=True)
        except OSError as e:
            raise BuildError(f"Failed to stage {program.base_dir}: {e}") from e
        return search_root

    def bundler_command(self, program: ProgramSpec, unit: Path, workdir: Path) -> list[str]:
        """PyInstaller invocation for one temporary unit."""
        command = [
            sys.executable,
            "-m",
            "PyInstaller",
            "--onefile",
            "--noconfirm",
            "--log-level",
            "WARN",
            "--name",
            program.name,
            "--distpath",
            str(self.cwd),
            "--workpath",
            str(workdir / "build"),
            "--specpath",
            str(workdir),
            "--paths",
            str(workdir / "src"),
        ]
        for module in [*program.hidden_imports, RUNTIME_MODULE]:
            command += ["--hidden-import", module]
        command.append(str(unit))
        return command

    def build(self, program: ProgramSpec, output_name: str | None = None) -> Path:
        """Render, bundle and clean up.

        Args:
            program: Synthesized program
            output_name: Executable name (defaults to the program name)

        Returns:
            Path of the produced executable

        Raises:
            BuildError: If the bundler cannot be started or exits non-zero
        """
        if output_name is not None:
            program = dataclasses.replace(program, name=output_name)
        source = render_program(program)

        fd, unit_name = tempfile.mkstemp(prefix=UNIT_PREFIX, suffix=".py")
        unit = Path(unit_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(source)
            with tempfile.TemporaryDirectory(prefix="dircli-build-") as workdir:
                self.stage_package(program, Path(workdir))
                command = self.bundler_command(program, unit, Path(workdir))
                logger.debug(f"Running bundler: {' '.join(command)}")
                self.console.print("Compiling...")
                try:
                    result = subprocess.run(command, cwd=self.cwd)
                except FileNotFoundError as e:
                    raise BuildError(f"Bundler could not be started: {e}") from e
                if result.returncode != 0:
                    raise BuildError(
                        f"Bundler exited with code {result.returncode}",
                        returncode=result.returncode,
                    )
        finally:
            self._remove_unit(unit)

        executable = self.cwd / (program.name + (".exe" if os.name == "nt" else ""))
        self.console.print(f"[green]Successfully built {executable}[/green]")
        return executable

    @staticmethod
    def _remove_unit(unit: Path) -> None:
        try:
            unit.unlink()
        except FileNotFoundError:
            logger.debug(f"Temporary unit already removed: {unit}")


def build_executable(
    config: BuildConfig, cwd: Path | str | None = None, console: Console | None = None
) -> Path:
    """Compile ``config.base_dir`` and bundle it into ``cwd``.

    Raises:
        DircliError: Any scan, parse or build failure
    """
    orchestrator = BuildOrchestrator(cwd, console=console)
    orchestrator.console.print(f"Building CLI from {config.base_dir}")
    program = compile_directory(config.base_dir, config.name)
    return orchestrator.build(program, config.name)


__all__ = ["UNIT_PREFIX", "BuildOrchestrator", "build_executable"]
