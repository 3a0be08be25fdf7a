"""Compilation pipeline: base directory -> ProgramSpec.

scan -> extract -> build tree -> synthesize. Nothing here imports or runs
user code; every module is read and parsed statically.
"""

import logging
from pathlib import Path

from dircli.errors import ParseError
from dircli.extractor import extract_module_metadata
from dircli.models import ModuleMetadata
from dircli.scanner import scan_modules
from dircli.synthesizer import ProgramSpec, synthesize_program
from dircli.tree_builder import build_command_tree

logger = logging.getLogger(__name__)


def read_module(base_dir: Path, path: str) -> ModuleMetadata:
    """Read and extract one module.

    Raises:
        ParseError: If the file cannot be read, decoded or parsed
    """
    try:
        source = (base_dir / path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(path, f"not valid UTF-8 ({e.reason})") from e
    except OSError as e:
        raise ParseError(path, str(e)) from e

    metadata = extract_module_metadata(source, path)
    logger.debug(f"Extracted {path}: {sorted(metadata.functions) or 'no exports'}")
    return metadata


def compile_directory(base_dir: Path | str, name: str = "cli") -> ProgramSpec:
    """Compile every candidate module under ``base_dir`` into a program description.

    Args:
        base_dir: Directory holding the command modules
        name: Program name

    Returns:
        ProgramSpec for ``dircli.emitter.render_program``

    Raises:
        ScanError: If the directory cannot be scanned
        ParseError: If any candidate module fails extraction
    """
    base = Path(base_dir).resolve()
    modules = [(path, read_module(base, path)) for path in scan_modules(base)]
    tree = build_command_tree(modules, program_name=name)
    return synthesize_program(tree, name, base)


__all__ = ["compile_directory", "read_module"]
