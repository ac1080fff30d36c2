"""
Exceptions raised by the closure-to-WGSL transpiler.

Every error derives from TranspilerError so callers can catch the whole family
at once. None of them are recovered inside the transpiler: a single failure
aborts compilation of the closure and no partial WGSL is ever returned.
"""

import ast
from typing import Any


class TranspilerError(Exception):
    """Base exception for errors during closure analysis or WGSL generation.

    The error can be attached to the AST node where it originated, in which
    case the node's line number is appended to the message.

    Examples:
        >>> raise TranspilerError("Unsupported operator: **")
        TranspilerError: Unsupported operator: **
    """

    def __init__(self, message: str, node: Any | None = None):
        """Initialize the exception with a message and optional AST node.

        Args:
            message: The error message
            node: Optional AST node where the error occurred
        """
        self.message = message
        self.node = node
        self.lineno: int | None = getattr(node, "lineno", None)

        location_info = f" at line {self.lineno}" if self.lineno else ""
        super().__init__(f"{message}{location_info}")

    def with_node(self, node: ast.AST) -> "TranspilerError":
        """Attach a node to an error that was raised without one.

        Args:
            node: AST node to associate with the error

        Returns:
            The same error, with location info if it was missing before
        """
        if self.node is None and getattr(node, "lineno", None):
            self.node = node
            self.lineno = node.lineno
            self.args = (f"{self.message} at line {self.lineno}",)
        return self


class InvalidShapeError(TranspilerError):
    """The input does not resolve to exactly one well-formed closure."""


class UnsupportedSyntaxError(TranspilerError):
    """A syntax construct has no analysis or generation rule.

    Attributes:
        kind: Name of the offending construct (usually the AST class name)
    """

    def __init__(self, kind: str, node: Any | None = None, detail: str = ""):
        self.kind = kind
        message = f"Unsupported syntax: {kind}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, node)


class UnresolvedExternalError(TranspilerError):
    """An external name has no entry in the external table.

    Attributes:
        name: The identifier that could not be resolved
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unresolved external: '{name}'")


class MalformedResolvableError(TranspilerError):
    """A resolvable failed while producing its own WGSL text.

    The original exception is chained as ``__cause__``.

    Attributes:
        name: The external name the resolvable was bound to
    """

    def __init__(self, name: str, reason: str = ""):
        self.name = name
        message = f"Resolvable '{name}' failed to produce WGSL"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
