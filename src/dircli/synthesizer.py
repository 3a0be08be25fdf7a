"""Program synthesis: command tree -> ProgramSpec.

The first of two phases. ``synthesize_program`` describes the program to
generate as plain data (modules to import, click registrations in
execution order, their argument grammar, options and handler bindings);
``dircli.emitter`` renders that description as Python source.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from dircli.models import CommandNode, FlagDescriptor, ParameterDescriptor, ParamKind, RecordDescriptor
from dircli.naming import module_import_name, to_flag_name
from dircli.runtime import COMMANDS_PACKAGE
from dircli.tree_builder import CommandTree

logger = logging.getLogger(__name__)

ROOT_VAR = "cli"


@dataclass
class ArgumentSpec:
    """Positional slot of a command.

    Attributes:
        name: Declared parameter name
        kind: Declared kind
        required: Whether the slot must be supplied
        item_kinds: Element kinds of an array or tuple
        has_default: The handler supplies its own default
        variadic: Handler takes ``*args``
    """

    name: str
    kind: ParamKind
    required: bool
    item_kinds: tuple[ParamKind, ...] = ()
    has_default: bool = False
    variadic: bool = False

    @classmethod
    def from_descriptor(cls, descriptor: ParameterDescriptor) -> "ArgumentSpec":
        """Create from an extracted ParameterDescriptor (array slots are always optional)."""
        return cls(
            name=descriptor.name,
            kind=descriptor.kind,
            required=descriptor.required and descriptor.kind != ParamKind.ARRAY,
            item_kinds=descriptor.item_kinds,
            has_default=descriptor.has_default,
            variadic=descriptor.variadic,
        )

    @property
    def nargs(self) -> int:
        if self.kind == ParamKind.ARRAY:
            return -1
        if self.kind == ParamKind.TUPLE:
            return max(len(self.item_kinds), 1)
        return 1

    @property
    def grammar(self) -> str:
        """Usage spelling: ``<name>``, ``[name]`` or ``[args...]``."""
        if self.kind == ParamKind.ARRAY:
            return "[args...]"
        if self.kind == ParamKind.TUPLE and self.nargs > 1:
            slots = [f"{self.name}[{index}]" for index in range(self.nargs)]
            if self.required:
                return " ".join(f"<{slot}>" for slot in slots)
            return "[" + " ".join(slots) + "]"
        return f"<{self.name}>" if self.required else f"[{self.name}]"


@dataclass
class OptionSpec:
    """Named flag of a command."""

    flag: str
    dest: str
    kind: ParamKind
    help: str = ""

    @classmethod
    def from_descriptor(cls, descriptor: FlagDescriptor) -> "OptionSpec":
        """Create from an extracted FlagDescriptor."""
        return cls(
            flag=to_flag_name(descriptor.name),
            dest=descriptor.name,
            kind=descriptor.kind,
            help=descriptor.description,
        )

    @property
    def is_switch(self) -> bool:
        """Boolean flags are presence-only switches."""
        return self.kind == ParamKind.BOOLEAN

    @property
    def grammar(self) -> str:
        return self.flag if self.is_switch else f"{self.flag} <value>"


@dataclass
class HandlerSpec:
    """Exported function bound as a command's action."""

    module_alias: str
    symbol: str
    arity: int
    record: RecordDescriptor | None = None
    options_name: str | None = None


@dataclass
class ModuleImport:
    """Scanned module imported by the generated program.

    Attributes:
        alias: Variable the module is bound to
        name: Dotted name relative to the base directory
        path: Source path relative to the base directory
    """

    alias: str
    name: str
    path: str

    @property
    def qualified_name(self) -> str:
        """Import name inside the package the base directory is mounted as."""
        return f"{COMMANDS_PACKAGE}.{self.name}"


@dataclass
class CommandSpec:
    """One click registration in the generated program."""

    var: str
    parent_var: str | None
    token: str
    path: tuple[str, ...]
    help: str
    is_group: bool
    argument: ArgumentSpec | None = None
    options: list[OptionSpec] = field(default_factory=list)
    handler: HandlerSpec | None = None

    @property
    def flag_kinds(self) -> dict[str, str]:
        """Declared kind of every option, by destination name."""
        return {option.dest: option.kind.value for option in self.options}


@dataclass
class ProgramSpec:
    """Complete description of a generated program."""

    name: str
    base_dir: str
    modules: list[ModuleImport] = field(default_factory=list)
    commands: list[CommandSpec] = field(default_factory=list)

    @property
    def root(self) -> CommandSpec:
        return self.commands[0]

    @property
    def hidden_imports(self) -> list[str]:
        """Dotted names the bundler cannot discover statically."""
        return [COMMANDS_PACKAGE, *(module.qualified_name for module in self.modules)]

    def find(self, *path: str) -> CommandSpec | None:
        """Registration for a command path (no tokens for the root)."""
        for command in self.commands:
            if command.path == tuple(path):
                return command
        return None


class ProgramSynthesizer:
    """Walk a command tree and describe the program that implements it."""

    def __init__(self, tree: CommandTree, name: str, base_dir: Path | str):
        self.tree = tree
        self.name = name
        self.base_dir = str(base_dir)
        self._aliases: dict[str, str] = {}
        self._vars: dict[int, str] = {}
        self._counter = 0

    def synthesize(self) -> ProgramSpec:
        program = ProgramSpec(name=self.name, base_dir=self.base_dir)

        bound = {node.action.module for node in self.tree.walk() if node.action is not None}
        for path in self.tree.modules:
            module = module_import_name(path)
            if module in bound and module not in self._aliases:
                program.modules.append(
                    ModuleImport(alias=self._alias_for(module), name=module, path=path)
                )

        for node in self.tree.walk():
            program.commands.append(self._command(node))

        logger.debug(
            f"Synthesized {len(program.commands)} command(s) from {len(program.modules)} module(s)"
        )
        return program

    def _alias_for(self, module: str) -> str:
        self._counter += 1
        alias = f"mod_{self._counter}_{re.sub(r'[^0-9A-Za-z_]', '_', module)}"
        self._aliases[module] = alias
        return alias

    def _var_for(self, node: CommandNode) -> str:
        key = id(node)
        if key not in self._vars:
            self._vars[key] = ROOT_VAR if node is self.tree.root else f"cmd_{len(self._vars)}"
        return self._vars[key]

    def _command(self, node: CommandNode) -> CommandSpec:
        parent = node.parent
        is_root = parent is None
        command = CommandSpec(
            var=self._var_for(node),
            parent_var=None if is_root else self._var_for(parent),
            token=node.token,
            path=node.path,
            help=node.description,
            is_group=is_root or bool(node.children) or node.action is None,
        )
        if node.action is None:
            return command

        function = node.action.function
        if node.argument is not None:
            command.argument = ArgumentSpec.from_descriptor(node.argument)
        command.options = [OptionSpec.from_descriptor(flag) for flag in node.flags]
        command.handler = HandlerSpec(
            module_alias=self._aliases[node.action.module],
            symbol=function.symbol,
            arity=function.arity,
            record=function.record,
            options_name=function.options_name,
        )
        return command


def synthesize_program(tree: CommandTree, name: str, base_dir: Path | str) -> ProgramSpec:
    """Describe the program implementing ``tree``.

    Args:
        tree: Completed command tree
        name: Program name (root token and executable name)
        base_dir: Absolute directory the scanned modules live in

    Returns:
        ProgramSpec ready for ``dircli.emitter.render_program``
    """
    return ProgramSynthesizer(tree, name, base_dir).synthesize()


__all__ = [
    "ArgumentSpec",
    "CommandSpec",
    "HandlerSpec",
    "ModuleImport",
    "OptionSpec",
    "ProgramSpec",
    "ProgramSynthesizer",
    "synthesize_program",
]
