"""Static signature extraction for scanned command modules.

Parses a module with ``ast`` (the module is never imported or executed)
and records, per exported function, the calling convention the generated
program needs: logical name, first-parameter descriptor, second-parameter
flags and a description.

Conventions:
- Exported: top-level ``def``/``async def`` not starting with ``_``,
  restricted to ``__all__`` when the module declares a literal one
- Default export: the function named by ``__default__ = func``, else ``main``
- Description: the docstring, else the ``#`` comment block right above
- Flags: fields of a TypedDict / NamedTuple / @dataclass record declared in
  the same module and used as the second parameter's annotation
"""

import ast
import inspect
import logging
import re

from dircli.errors import ParseError
from dircli.models import (
    DEFAULT_EXPORT,
    FlagDescriptor,
    FunctionMetadata,
    ModuleMetadata,
    ParameterDescriptor,
    ParamKind,
    RecordDescriptor,
    RecordStyle,
)

logger = logging.getLogger(__name__)

DEFAULT_FUNCTION = "main"
DEFAULT_MARKER = "__default__"

# Structured annotations, not prose: "@param x", ":param x:", ":returns:"
_AT_TAG = re.compile(r"^(@|:[A-Za-z_][^:]*:)")
_COMMENT_MARKER = re.compile(r"^#+:?\s?")

_SCALAR_TYPES = {
    "str": ParamKind.STRING,
    "int": ParamKind.NUMBER,
    "float": ParamKind.NUMBER,
    "bool": ParamKind.BOOLEAN,
}
_ARRAY_TYPES = {
    "list",
    "List",
    "Sequence",
    "MutableSequence",
    "Iterable",
    "Collection",
    "set",
    "Set",
    "frozenset",
    "FrozenSet",
}
_TUPLE_TYPES = {"tuple", "Tuple"}
_FUNCTION_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)


def clean_description(text: str | None, drop_tags: bool = True) -> str:
    """Collapse a docstring or comment body into one line of help text.

    Args:
        text: Raw docstring or comment body (delimiters already removed)
        drop_tags: Drop lines beginning with an at-tag / field marker

    Returns:
        Surviving lines joined by single spaces ("" when nothing survives)
    """
    if not text:
        return ""
    lines = [line.strip() for line in inspect.cleandoc(text).splitlines()]
    kept = [line for line in lines if line and not (drop_tags and _AT_TAG.match(line))]
    return " ".join(kept)


def _type_name(node: ast.expr) -> str | None:
    """Trailing identifier of a Name or dotted Attribute (``typing.List`` -> ``List``)."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _union_members(node: ast.expr) -> list[ast.expr]:
    """Flatten ``A | B | None`` into its members."""
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union_members(node.left) + _union_members(node.right)
    return [node]


def _subscript_args(node: ast.Subscript) -> list[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]


class SignatureExtractor:
    """Extract ModuleMetadata from the source text of one module.

    Example:
        >>> meta = SignatureExtractor("def greet(name: str): ...", "greet.py").extract()
        >>> meta.functions["greet"].argument.kind
        <ParamKind.STRING: 'string'>
    """

    def __init__(self, source: str, path: str):
        self.source = source
        self.path = path
        self._lines = source.splitlines()
        self._records: dict[str, ast.ClassDef] = {}
        self._styles: dict[str, RecordStyle] = {}

    def extract(self) -> ModuleMetadata:
        """Parse the source and build the module's metadata.

        Raises:
            ParseError: If the source is not valid Python
        """
        try:
            tree = ast.parse(self.source, filename=self.path)
        except SyntaxError as e:
            raise ParseError(self.path, e.msg, e.lineno) from e
        except ValueError as e:
            raise ParseError(self.path, str(e)) from e

        self._records = {}
        self._styles = {}
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                style = self._record_style(node)
                if style is not None:
                    self._records[node.name] = node
                    self._styles[node.name] = style

        public_names = self._declared_all(tree)
        default_symbol = self._default_symbol(tree)

        metadata = ModuleMetadata(path=self.path)
        for node in tree.body:
            if not isinstance(node, _FUNCTION_NODES):
                continue

            if node.name == default_symbol:
                metadata.has_default = True
                name = DEFAULT_EXPORT
            elif node.name.startswith("_"):
                continue
            elif public_names is not None and node.name not in public_names:
                continue
            else:
                name = node.name

            metadata.functions[name] = self._function_metadata(node, name)

        logger.debug(
            f"Extracted {len(metadata.functions)} exported function(s) from {self.path}"
            f"{' (with default)' if metadata.has_default else ''}"
        )
        return metadata

    # ------------------------------------------------------------------
    # Module-level declarations
    # ------------------------------------------------------------------

    def _declared_all(self, tree: ast.Module) -> set[str] | None:
        """Names listed in a literal ``__all__``, or None when absent."""
        for node in tree.body:
            if not isinstance(node, ast.Assign):
                continue
            if not any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
                continue
            if isinstance(node.value, (ast.List, ast.Tuple)):
                return {
                    elt.value
                    for elt in node.value.elts
                    if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
                }
        return None

    def _default_symbol(self, tree: ast.Module) -> str | None:
        """Identifier of the default export (``__default__`` target, else ``main``)."""
        functions = {node.name for node in tree.body if isinstance(node, _FUNCTION_NODES)}
        for node in tree.body:
            if not isinstance(node, ast.Assign):
                continue
            if not any(isinstance(t, ast.Name) and t.id == DEFAULT_MARKER for t in node.targets):
                continue
            value = node.value
            target = value.id if isinstance(value, ast.Name) else None
            if isinstance(value, ast.Constant) and isinstance(value.value, str):
                target = value.value
            if target in functions:
                return target
            logger.warning(
                f"{self.path}:{node.lineno}: {DEFAULT_MARKER} does not name a "
                f"top-level function, ignoring"
            )
        return DEFAULT_FUNCTION if DEFAULT_FUNCTION in functions else None

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _function_metadata(
        self, node: ast.FunctionDef | ast.AsyncFunctionDef, name: str
    ) -> FunctionMetadata:
        meta = FunctionMetadata(
            name=name,
            symbol=node.name,
            is_default_export=name == DEFAULT_EXPORT,
            description=self._function_description(node),
        )

        positional = [*node.args.posonlyargs, *node.args.args]
        first_default = len(positional) - len(node.args.defaults)

        if positional:
            first = positional[0]
            kind, item_kinds, optional = self.infer_kind(first.annotation)
            has_default = first_default <= 0
            meta.argument = ParameterDescriptor(
                name=first.arg,
                kind=kind,
                required=not optional and not has_default,
                item_kinds=item_kinds,
                has_default=has_default,
            )
            meta.arity = 1
        elif node.args.vararg is not None:
            vararg = node.args.vararg
            meta.argument = ParameterDescriptor(
                name=vararg.arg,
                kind=ParamKind.ARRAY,
                required=False,
                item_kinds=(self._element_kind(vararg.annotation),),
                variadic=True,
            )
            meta.arity = 1

        if len(positional) >= 2:
            second = positional[1]
            keyword = None if len(node.args.posonlyargs) >= 2 else second.arg
            record = self._record_for(second.annotation)
            if record is not None:
                meta.record = RecordDescriptor(name=record.name, style=self._styles[record.name])
                meta.flags = self._record_flags(record, name)
                meta.arity = 2
                meta.options_name = keyword
            elif first_default > 1:
                # untyped options: the raw parsed options mapping
                meta.arity = 2
                meta.options_name = keyword

        return meta

    def _function_description(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> str:
        docstring = ast.get_docstring(node, clean=True)
        if docstring is None:
            first_line = min([node.lineno, *(d.lineno for d in node.decorator_list)])
            docstring = self._leading_comment(first_line)
        return clean_description(docstring)

    def _leading_comment(self, lineno: int) -> str:
        """Body of the contiguous ``#`` comment block directly above ``lineno``."""
        collected: list[str] = []
        index = lineno - 2
        while index >= 0:
            stripped = self._lines[index].strip()
            if not stripped.startswith("#"):
                break
            collected.append(_COMMENT_MARKER.sub("", stripped))
            index -= 1
        return "\n".join(reversed(collected))

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    def infer_kind(self, node: ast.expr | None) -> tuple[ParamKind, tuple[ParamKind, ...], bool]:
        """Infer (kind, element kinds, optional marker) from an annotation.

        A missing annotation is a required string.
        """
        if node is None:
            return ParamKind.STRING, (), False

        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            try:
                parsed = ast.parse(node.value, mode="eval").body
            except SyntaxError:
                return ParamKind.UNKNOWN, (), False
            return self.infer_kind(parsed)

        if isinstance(node, ast.BinOp):
            return self._infer_union(_union_members(node))

        if isinstance(node, ast.Subscript):
            base = _type_name(node.value)
            args = _subscript_args(node)
            if base == "Optional":
                kind, items, _ = self.infer_kind(args[0])
                return kind, items, True
            if base == "Union":
                return self._infer_union(args)
            if base == "Annotated":
                return self.infer_kind(args[0])
            if base in _ARRAY_TYPES:
                return ParamKind.ARRAY, (self._element_kind(args[0]),), False
            if base in _TUPLE_TYPES:
                if len(args) == 2 and isinstance(args[1], ast.Constant) and args[1].value is Ellipsis:
                    return ParamKind.ARRAY, (self._element_kind(args[0]),), False
                return ParamKind.TUPLE, tuple(self._element_kind(arg) for arg in args), False
            return ParamKind.UNKNOWN, (), False

        name = _type_name(node)
        if name in _SCALAR_TYPES:
            return _SCALAR_TYPES[name], (), False
        if name in _ARRAY_TYPES or name in _TUPLE_TYPES:
            return ParamKind.ARRAY, (ParamKind.STRING,), False
        return ParamKind.UNKNOWN, (), False

    def _infer_union(self, members: list[ast.expr]) -> tuple[ParamKind, tuple[ParamKind, ...], bool]:
        present = [member for member in members if not _is_none(member)]
        optional = len(present) < len(members)
        if len(present) == 1:
            kind, items, nested_optional = self.infer_kind(present[0])
            return kind, items, optional or nested_optional
        return ParamKind.UNKNOWN, (), optional

    def _element_kind(self, node: ast.expr | None) -> ParamKind:
        kind = self.infer_kind(node)[0]
        if kind in (ParamKind.ARRAY, ParamKind.TUPLE):
            return ParamKind.UNKNOWN
        return kind

    # ------------------------------------------------------------------
    # Record types
    # ------------------------------------------------------------------

    def _record_style(self, node: ast.ClassDef) -> RecordStyle | None:
        for base in node.bases:
            name = _type_name(base)
            if name == "TypedDict":
                return RecordStyle.MAPPING
            if name == "NamedTuple":
                return RecordStyle.CLASS
            if name in self._styles:
                return self._styles[name]
        for decorator in node.decorator_list:
            target = decorator.func if isinstance(decorator, ast.Call) else decorator
            if _type_name(target) == "dataclass":
                return RecordStyle.CLASS
        return None

    def _record_for(self, annotation: ast.expr | None) -> ast.ClassDef | None:
        if annotation is None:
            return None
        if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
            return self._records.get(annotation.value.strip())
        name = _type_name(annotation)
        return self._records.get(name) if name else None

    def _record_flags(self, record: ast.ClassDef, owner: str) -> list[FlagDescriptor]:
        flags: list[FlagDescriptor] = []
        # TypedDict inheritance within the same module
        for base in record.bases:
            parent = self._records.get(_type_name(base) or "")
            if parent is not None and parent is not record:
                flags.extend(self._record_flags(parent, owner))

        body = record.body
        for index, statement in enumerate(body):
            if not isinstance(statement, ast.AnnAssign) or not isinstance(statement.target, ast.Name):
                continue
            field_name = statement.target.id
            annotation = statement.annotation
            if isinstance(annotation, ast.Subscript):
                annotation = annotation.value
            if field_name.startswith("_") or _type_name(annotation) == "ClassVar":
                continue

            kind = self.infer_kind(statement.annotation)[0]
            if kind not in (ParamKind.BOOLEAN, ParamKind.NUMBER):
                kind = ParamKind.STRING

            comment = self._leading_comment(statement.lineno)
            if not comment and index + 1 < len(body):
                following = body[index + 1]
                if (
                    isinstance(following, ast.Expr)
                    and isinstance(following.value, ast.Constant)
                    and isinstance(following.value.value, str)
                ):
                    comment = following.value.value

            flags.append(
                FlagDescriptor(
                    owning_function=owner,
                    name=field_name,
                    kind=kind,
                    description=clean_description(comment, drop_tags=False),
                )
            )
        return flags


def extract_module_metadata(source: str, path: str) -> ModuleMetadata:
    """Extract the exported surface of one module.

    Args:
        source: Module source text
        path: Module path (used for diagnostics)

    Returns:
        ModuleMetadata for the module

    Raises:
        ParseError: If the module cannot be parsed
    """
    return SignatureExtractor(source, path).extract()


__all__ = ["SignatureExtractor", "clean_description", "extract_module_metadata"]
