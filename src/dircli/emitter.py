"""Render a ProgramSpec as the source of a standalone click program.

One emit function per node kind (header, module import, group, command,
argument, option, action, footer). Every literal goes through ``repr()``;
every identifier comes from the synthesizer's counters.
"""

from dircli import __version__
from dircli.runtime import ARGUMENT_DEST
from dircli.synthesizer import (
    ArgumentSpec,
    CommandSpec,
    HandlerSpec,
    ModuleImport,
    OptionSpec,
    ProgramSpec,
)

INDENT = "    "


def _emit_header(program: ProgramSpec) -> list[str]:
    return [
        f"# Generated by dircli {__version__} from {program.base_dir!r}. Do not edit.",
        "import importlib",
        "import sys",
        "",
        "import click",
        "",
        "from dircli import runtime",
        "",
        f"BASE_DIR = {program.base_dir!r}",
        'if not getattr(sys, "frozen", False):',
        f"{INDENT}runtime.mount_package(BASE_DIR)",
        "",
    ]


def _emit_module_import(module: ModuleImport) -> list[str]:
    return [f"{module.alias} = importlib.import_module({module.qualified_name!r})  # {module.path!r}"]


def _emit_group(command: CommandSpec) -> list[str]:
    runs_action = command.handler is not None
    return [
        f"{command.var} = runtime.ActionGroup(",
        f"{INDENT}name={command.token!r},",
        f"{INDENT}help={command.help or None!r},",
        f"{INDENT}invoke_without_command={runs_action!r},",
        ")",
    ]


def _emit_command(command: CommandSpec) -> list[str]:
    return [f"{command.var} = click.Command(name={command.token!r}, help={command.help or None!r})"]


def _emit_argument(var: str, argument: ArgumentSpec) -> list[str]:
    return [
        f"{var}.params.append(",
        f"{INDENT}click.Argument(",
        f"{INDENT * 2}[{ARGUMENT_DEST!r}],",
        f"{INDENT * 2}required={argument.required!r},",
        f"{INDENT * 2}nargs={argument.nargs!r},",
        f"{INDENT * 2}metavar={argument.grammar!r},",
        f"{INDENT})",
        ")",
    ]


def _emit_option(var: str, option: OptionSpec) -> list[str]:
    if option.is_switch:
        shape = "is_flag=True"
    else:
        shape = "metavar='<value>'"
    return [
        f"{var}.params.append(",
        f"{INDENT}click.Option([{option.flag!r}, {option.dest!r}], {shape}, help={option.help!r})",
        ")",
    ]


def _emit_action(command: CommandSpec, handler: HandlerSpec) -> list[str]:
    argument = command.argument
    target = f"{handler.module_alias}.{handler.symbol}"
    lines = [
        f"{command.var}.callback = runtime.action(",
        f"{INDENT}{target},",
        f"{INDENT}arity={handler.arity!r},",
    ]
    if argument is not None:
        lines += [
            f"{INDENT}kind={argument.kind.value!r},",
            f"{INDENT}item_kinds={tuple(kind.value for kind in argument.item_kinds)!r},",
            f"{INDENT}variadic={argument.variadic!r},",
            f"{INDENT}has_default={argument.has_default!r},",
        ]
    if command.options:
        lines.append(f"{INDENT}flags={command.flag_kinds!r},")
    if handler.record is not None:
        lines += [
            f"{INDENT}record={handler.module_alias}.{handler.record.name},",
            f"{INDENT}record_style={handler.record.style.value!r},",
        ]
    if handler.options_name is not None:
        lines.append(f"{INDENT}options_name={handler.options_name!r},")
    lines.append(")")
    return lines


def _emit_registration(command: CommandSpec) -> list[str]:
    lines = [f"# {' '.join(command.path) or '<root>'!r}"]
    lines += _emit_group(command) if command.is_group else _emit_command(command)
    if command.argument is not None:
        lines += _emit_argument(command.var, command.argument)
    for option in command.options:
        lines += _emit_option(command.var, option)
    if command.handler is not None:
        lines += _emit_action(command, command.handler)
    if command.parent_var is not None:
        lines.append(f"{command.parent_var}.add_command({command.var})")
    lines.append("")
    return lines


def _emit_footer(program: ProgramSpec) -> list[str]:
    return [
        'if __name__ == "__main__":',
        f"{INDENT}{program.root.var}(prog_name={program.name!r})",
    ]


def render_program(program: ProgramSpec) -> str:
    """Render the complete program source.

    Args:
        program: Synthesized program description

    Returns:
        Python source defining the root click group as ``cli``
    """
    lines = _emit_header(program)
    for module in program.modules:
        lines += _emit_module_import(module)
    lines.append("")
    for command in program.commands:
        lines += _emit_registration(command)
    lines += _emit_footer(program)
    return "\n".join(lines) + "\n"


__all__ = ["render_program"]
