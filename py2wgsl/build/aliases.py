"""Tracking of the names the ``gpu`` namespace is reachable through.

One AliasContext is created per module being transformed; it is filled in as
import statements are visited and queried for marker call sites.
"""

import ast
from dataclasses import dataclass, field

ROOT_PACKAGE = "py2wgsl"
ROOT_NAMESPACE = "gpu"


def dotted_path(node: ast.expr) -> str | None:
    """Render ``a.b.c`` for a chain of plain attribute accesses on a name."""
    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return ".".join(reversed(parts))


@dataclass
class AliasContext:
    """Dotted paths that refer to the root namespace in one module.

    Three import forms are recognized:

    - named import: ``from py2wgsl import gpu [as g]`` makes ``g`` an alias
    - module import: ``import py2wgsl.gpu [as g]`` makes ``g`` (or
      ``py2wgsl.gpu``) an alias
    - namespace import: ``import py2wgsl [as w]`` makes ``w.gpu`` an alias
    """

    aliases: set[str] = field(default_factory=set)

    def register(self, node: ast.Import | ast.ImportFrom) -> None:
        if isinstance(node, ast.ImportFrom):
            if node.level == 0 and node.module == ROOT_PACKAGE:
                for alias in node.names:
                    self._named_import(alias)
            return
        for alias in node.names:
            if alias.name == ROOT_PACKAGE:
                self._namespace_import(alias)
            elif alias.name == f"{ROOT_PACKAGE}.{ROOT_NAMESPACE}":
                self._module_import(alias)

    def _named_import(self, alias: ast.alias) -> None:
        if alias.name == ROOT_NAMESPACE:
            self.aliases.add(alias.asname or alias.name)

    def _module_import(self, alias: ast.alias) -> None:
        self.aliases.add(alias.asname or alias.name)

    def _namespace_import(self, alias: ast.alias) -> None:
        self.aliases.add(f"{alias.asname or alias.name}.{ROOT_NAMESPACE}")

    def is_root(self, node: ast.expr) -> bool:
        path = dotted_path(node)
        return path is not None and path in self.aliases
