"""
dircli Data Models

Shared dataclasses passed between the extractor, the tree builder and the
synthesizer.

Philosophy:
- Zero dependencies on other dircli modules
- Language-agnostic description of calling conventions
- Nodes never outlive one compilation pass
"""

import weakref
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_EXPORT = "default"


class ParamKind(str, Enum):
    """Inferred kind of a declared parameter or field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    TUPLE = "tuple"
    UNKNOWN = "unknown"


class RecordStyle(str, Enum):
    """How the generated program hands flags to a handler."""

    MAPPING = "mapping"  # TypedDict: a plain dict
    CLASS = "class"  # dataclass / NamedTuple: Record(**options)


@dataclass
class ParameterDescriptor:
    """First parameter of an exported function.

    Attributes:
        name: Declared parameter name
        kind: Inferred kind
        required: True iff there is neither an optional marker nor a default
        item_kinds: Element kind of an array (one entry) or of each tuple slot
        has_default: Whether the parameter declares a default value
        variadic: Declared as ``*args``
    """

    name: str
    kind: ParamKind = ParamKind.STRING
    required: bool = True
    item_kinds: tuple[ParamKind, ...] = ()
    has_default: bool = False
    variadic: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "required": self.required,
            "item_kinds": [kind.value for kind in self.item_kinds],
            "has_default": self.has_default,
            "variadic": self.variadic,
        }


@dataclass
class FlagDescriptor:
    """One field of a second-parameter record type."""

    owning_function: str
    name: str
    kind: ParamKind = ParamKind.STRING
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "owning_function": self.owning_function,
            "name": self.name,
            "kind": self.kind.value,
            "description": self.description,
        }


@dataclass
class RecordDescriptor:
    """Record class declared as the type of a second parameter."""

    name: str
    style: RecordStyle = RecordStyle.MAPPING


@dataclass
class FunctionMetadata:
    """Calling convention of one exported function.

    Attributes:
        name: Logical name (``default`` for the default export)
        symbol: Python identifier to call in the loaded module
        is_default_export: Whether this is the module's default export
        description: Help text mined from the docstring or leading comment
        argument: First parameter, absent when the function takes none
        flags: Fields of the second-parameter record, in declaration order
        arity: Positional values handed to the function (0, 1 or 2)
        record: Record class of the second parameter, if any
        options_name: Keyword the second parameter can be passed by (absent
            for positional-only parameters)
    """

    name: str
    symbol: str
    is_default_export: bool = False
    description: str = ""
    argument: ParameterDescriptor | None = None
    flags: list[FlagDescriptor] = field(default_factory=list)
    arity: int = 0
    record: RecordDescriptor | None = None
    options_name: str | None = None


@dataclass
class ModuleMetadata:
    """Exported surface of one scanned module."""

    path: str
    has_default: bool = False
    functions: dict[str, FunctionMetadata] = field(default_factory=dict)

    @property
    def default(self) -> FunctionMetadata | None:
        """The default export, if the module has one."""
        return self.functions.get(DEFAULT_EXPORT)

    @property
    def exported_names(self) -> list[str]:
        """Logical names of every non-default export, in source order."""
        return [name for name in self.functions if name != DEFAULT_EXPORT]


@dataclass
class ActionBinding:
    """Handler bound to a command node."""

    module: str  # dotted import name
    function: FunctionMetadata


class CommandNode:
    """Node of the command tree.

    The tree builder exclusively owns node creation and the parent/child
    edges. Parents are held weakly; children strongly.
    """

    def __init__(self, token: str, parent: "CommandNode | None" = None):
        self.token = token
        self._parent = weakref.ref(parent) if parent is not None else None
        self.children: dict[str, CommandNode] = {}
        self.description = ""
        self.argument: ParameterDescriptor | None = None
        self.flags: list[FlagDescriptor] = []
        self.action: ActionBinding | None = None

    @property
    def parent(self) -> "CommandNode | None":
        """Parent node, or None for the root."""
        return self._parent() if self._parent is not None else None

    @property
    def path(self) -> tuple[str, ...]:
        """Tokens from (excluding) the root down to this node."""
        tokens: list[str] = []
        node: CommandNode | None = self
        while node is not None and node.parent is not None:
            tokens.append(node.token)
            node = node.parent
        return tuple(reversed(tokens))

    def bind(self, module: str, function: FunctionMetadata) -> None:
        """Attach a function's description, argument, flags and action."""
        self.description = function.description
        self.argument = function.argument
        self.flags = list(function.flags)
        self.action = ActionBinding(module=module, function=function)

    def walk(self) -> Iterator["CommandNode"]:
        """Pre-order traversal: this node, then children in insertion order."""
        yield self
        for child in self.children.values():
            yield from child.walk()

    def __repr__(self) -> str:
        return f"CommandNode({'/'.join(self.path) or '<root>'!r}, children={list(self.children)})"


__all__ = [
    "DEFAULT_EXPORT",
    "ActionBinding",
    "CommandNode",
    "FlagDescriptor",
    "FunctionMetadata",
    "ModuleMetadata",
    "ParamKind",
    "ParameterDescriptor",
    "RecordDescriptor",
    "RecordStyle",
]
