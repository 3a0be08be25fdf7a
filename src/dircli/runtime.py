"""Runtime support for generated dircli programs.

Imported by every generated program and bundled into its executable, so it
depends on click and the standard library only.

Coercion rules:
- number: int when the text is an integer literal, else float
- boolean: true only for "true", "1" or "on" (case-sensitive); anything
  else, including "false", is false
- array / tuple: each element by its declared element kind
- string / unknown: unchanged
"""

import asyncio
import importlib.machinery
import importlib.util
import inspect
import sys
from collections.abc import Callable, Mapping, Sequence
from types import ModuleType
from typing import Any

import click

TRUTHY = frozenset({"true", "1", "on"})
ARGUMENT_DEST = "argument_"
COMMANDS_PACKAGE = "_dircli_commands"


def mount_package(base_dir: str, name: str = COMMANDS_PACKAGE) -> ModuleType:
    """Register ``base_dir`` as the package ``name`` so its modules import as ``name.<module>``.

    Scanned modules never share the top-level namespace, so a command file
    named like a standard-library module neither shadows it nor resolves to
    it. Mounting again replaces the package and forgets its loaded modules.
    """
    for loaded in [key for key in sys.modules if key == name or key.startswith(name + ".")]:
        del sys.modules[loaded]
    module_spec = importlib.machinery.ModuleSpec(name, None, is_package=True)
    module_spec.submodule_search_locations = [base_dir]
    package = importlib.util.module_from_spec(module_spec)
    sys.modules[name] = package
    return package


def to_number(raw: str) -> int | float:
    """Convert captured text to a number.

    Raises:
        click.BadParameter: If the text is not numeric
    """
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        raise click.BadParameter(f"{raw!r} is not a number") from None


def coerce_scalar(kind: str, raw: Any) -> Any:
    """Coerce one captured string by kind."""
    if raw is None:
        return None
    if kind == "number":
        return to_number(raw)
    if kind == "boolean":
        return raw in TRUTHY
    return raw


def coerce_argument(raw: Any, kind: str, item_kinds: Sequence[str] = ()) -> Any:
    """Coerce the captured positional argument by its declared shape."""
    if raw is None:
        return None
    if kind == "array":
        item_kind = item_kinds[0] if item_kinds else "string"
        return [coerce_scalar(item_kind, item) for item in raw]
    if kind == "tuple":
        return tuple(coerce_scalar(item_kind, item) for item_kind, item in zip(item_kinds, raw))
    return coerce_scalar(kind, raw)


def coerce_options(options: Mapping[str, Any], flag_kinds: Mapping[str, str]) -> dict[str, Any]:
    """Coerce number flags that were given; everything else passes through."""
    coerced = dict(options)
    for name, kind in flag_kinds.items():
        if kind == "number" and coerced.get(name) is not None:
            coerced[name] = to_number(coerced[name])
    return coerced


def call_handler(
    handler: Callable[..., Any],
    arity: int,
    value: Any = None,
    options: Any = None,
    *,
    variadic: bool = False,
    omit_value: bool = False,
    options_name: str | None = None,
) -> Any:
    """Call a command handler with as many positional values as it declares.

    Args:
        handler: The exported function
        arity: Positional values it takes (0, 1 or 2)
        value: Coerced first argument
        options: Flags object for the second parameter
        variadic: Spread ``value`` into ``*args``
        omit_value: Leave the first argument out so its default applies
        options_name: Keyword for the second parameter, used when the first
            argument is left out; without it the first slot gets ``None``

    Returns:
        Whatever the handler returns (coroutines are run to completion)
    """
    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    skip_value = omit_value and (arity == 1 or options_name is not None)
    if arity >= 1:
        if variadic:
            args.extend(value or ())
        elif not skip_value:
            args.append(value)
    if arity >= 2:
        if skip_value:
            kwargs[options_name] = options
        else:
            args.append(options)

    result = handler(*args, **kwargs)
    if inspect.iscoroutine(result):
        result = asyncio.run(result)
    return result


def action(
    handler: Callable[..., Any],
    *,
    arity: int = 0,
    kind: str = "string",
    item_kinds: Sequence[str] = (),
    variadic: bool = False,
    has_default: bool = False,
    flags: Mapping[str, str] | None = None,
    record: type | None = None,
    record_style: str = "mapping",
    options_name: str | None = None,
) -> Callable[..., Any]:
    """Build the click callback that coerces parsed values and calls ``handler``."""
    flag_kinds = dict(flags or {})

    def callback(**params: Any) -> Any:
        ctx = click.get_current_context()
        if getattr(ctx, "invoked_subcommand", None) is not None:
            return None

        raw = params.pop(ARGUMENT_DEST, None)
        value = coerce_argument(raw, kind, item_kinds)
        options: Any = coerce_options(params, flag_kinds)
        if record is not None and record_style == "class":
            options = record(**options)

        return call_handler(
            handler,
            arity,
            value,
            options,
            variadic=variadic,
            omit_value=raw is None and has_default,
            options_name=options_name,
        )

    callback.__name__ = getattr(handler, "__name__", "action")
    return callback


class ActionGroup(click.Group):
    """Click group that can also run its own action.

    When the first token names a subcommand the group dispatches to it and
    its own positional argument is not parsed; otherwise the tokens are
    parsed as the group's own argument and its action runs.
    """

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        """Skip the group's own positional argument when a subcommand is named."""
        if args and args[0] in self.commands:
            own = self.params
            self.params = [param for param in own if not isinstance(param, click.Argument)]
            try:
                return super().parse_args(ctx, args)
            finally:
                self.params = own
        return super().parse_args(ctx, args)


__all__ = [
    "ARGUMENT_DEST",
    "COMMANDS_PACKAGE",
    "TRUTHY",
    "ActionGroup",
    "action",
    "call_handler",
    "coerce_argument",
    "coerce_options",
    "coerce_scalar",
    "mount_package",
    "to_number",
]
