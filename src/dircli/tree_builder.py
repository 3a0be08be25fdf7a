"""Command tree construction from scanned module paths.

Directory segments become intermediate nodes, a non-index module becomes a
leaf named after its stem, and an ``index`` module configures the node of
its directory. Inside a module the default export binds to the module's
own (owning) node and every other export becomes a child of it.

Sibling tokens are unique: every node is found-or-created by token, so a
directory and a same-named export (or leaf module) merge into one node.
The same rule also merges two unrelated modules whose names transform to
the same token; the later default binding wins and a warning is logged.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from dircli.models import CommandNode, FunctionMetadata, ModuleMetadata
from dircli.naming import is_index, module_import_name, split_module_path, to_command_token

logger = logging.getLogger(__name__)


@dataclass
class CommandTree:
    """Completed command tree.

    Attributes:
        root: Node for the program itself
        owners: Owning node of every module path
        modules: Metadata of every module path, in processing order
    """

    root: CommandNode
    owners: dict[str, CommandNode] = field(default_factory=dict)
    modules: dict[str, ModuleMetadata] = field(default_factory=dict)

    def walk(self) -> Iterator[CommandNode]:
        """Every node, parents before children."""
        return self.root.walk()

    def find(self, *tokens: str) -> CommandNode | None:
        """Node reached by following ``tokens`` from the root."""
        node: CommandNode | None = self.root
        for token in tokens:
            if node is None:
                return None
            node = node.children.get(token)
        return node


class CommandTreeBuilder:
    """Incrementally build a CommandTree, one module at a time."""

    def __init__(self, program_name: str = "cli"):
        self.root = CommandNode(program_name)
        self.owners: dict[str, CommandNode] = {}
        self.modules: dict[str, ModuleMetadata] = {}

    def child(self, parent: CommandNode, token: str) -> CommandNode:
        """Find the child of ``parent`` with ``token``, creating it if absent."""
        node = parent.children.get(token)
        if node is None:
            node = CommandNode(token, parent=parent)
            parent.children[token] = node
            logger.debug(f"Created command: {' '.join(node.path)}")
        return node

    def owning_node(self, path: str) -> CommandNode:
        """Resolve (creating as needed) the node a module configures."""
        directories, stem = split_module_path(path)
        node = self.root
        for segment in directories:
            node = self.child(node, to_command_token(segment))
        if is_index(stem):
            return node
        return self.child(node, to_command_token(stem))

    def add_module(self, path: str, metadata: ModuleMetadata) -> CommandNode:
        """Place one module in the tree and bind its exported functions.

        Args:
            path: Module path relative to the base directory
            metadata: Extracted metadata of the module

        Returns:
            The module's owning node
        """
        owner = self.owning_node(path)
        self.owners[path] = owner
        self.modules[path] = metadata
        module = module_import_name(path)

        default = metadata.default
        if metadata.has_default and default is not None:
            self._bind(owner, module, default)

        for name in metadata.exported_names:
            node = self.child(owner, to_command_token(name))
            self._bind(node, module, metadata.functions[name])

        return owner

    def _bind(self, node: CommandNode, module: str, function: FunctionMetadata) -> None:
        if node.action is not None:
            logger.warning(
                f"Command '{' '.join(node.path) or self.root.token}' is bound by both "
                f"{node.action.module}.{node.action.function.symbol} and "
                f"{module}.{function.symbol}; using the latter"
            )
        node.bind(module, function)

    def build(self) -> CommandTree:
        """Return the tree built so far."""
        return CommandTree(root=self.root, owners=dict(self.owners), modules=dict(self.modules))


def build_command_tree(
    modules: Iterable[tuple[str, ModuleMetadata]], program_name: str = "cli"
) -> CommandTree:
    """Build the command tree for a set of modules.

    Modules are processed in lexicographic path order so generated
    identifiers stay stable across runs.

    Args:
        modules: (module path, metadata) pairs
        program_name: Token of the root node

    Returns:
        The completed CommandTree
    """
    builder = CommandTreeBuilder(program_name)
    for path, metadata in sorted(modules, key=lambda item: item[0]):
        builder.add_module(path, metadata)
    return builder.build()


__all__ = ["CommandTree", "CommandTreeBuilder", "build_command_tree"]
