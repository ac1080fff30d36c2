"""Structural representation (bodyIR) of a closure body.

The node set is closed: the analyzer only ever produces these kinds and the
generator has exactly one rule per kind. The wire encoding is a tagged dict,
``{"kind": "<NodeKind>", ...fields}``, which is what the build adapters embed
in rewritten source.
"""

from dataclasses import dataclass, fields
from typing import Any, Union

from py2wgsl.transpiler.errors import UnsupportedSyntaxError

# Expressions


@dataclass(frozen=True)
class Identifier:
    """Variable reference."""

    name: str


@dataclass(frozen=True)
class Literal:
    """Literal value, carried as raw WGSL text."""

    raw: str


@dataclass(frozen=True)
class BinaryOp:
    """Arithmetic, bitwise or comparison operation."""

    left: "Expr"
    op: str
    right: "Expr"


@dataclass(frozen=True)
class LogicalOp:
    """Short-circuit boolean operation."""

    left: "Expr"
    op: str
    right: "Expr"


@dataclass(frozen=True)
class UnaryOp:
    """Prefix operation (negation, logical not, bitwise complement)."""

    op: str
    operand: "Expr"


@dataclass(frozen=True)
class Assign:
    """Plain or compound assignment."""

    target: "Expr"
    op: str
    value: "Expr"


@dataclass(frozen=True)
class MemberAccess:
    """Member access (``a.b``) or, when computed, index access (``a[i]``)."""

    target: "Expr"
    prop: Union[str, "Expr"]
    computed: bool = False


@dataclass(frozen=True)
class Call:
    """Function call with positional arguments."""

    callee: "Expr"
    args: tuple["Expr", ...] = ()


# Statements


@dataclass(frozen=True)
class Block:
    """Sequence of statements with its own lexical scope."""

    statements: tuple["Stmt", ...] = ()


@dataclass(frozen=True)
class Return:
    """Return statement."""

    value: "Expr | None" = None


@dataclass(frozen=True)
class ConstDecl:
    """Immutable local binding."""

    name: str
    init: "Expr | None" = None


@dataclass(frozen=True)
class VarDecl:
    """Mutable local binding."""

    name: str
    init: "Expr | None" = None


@dataclass(frozen=True)
class If:
    """Conditional statement."""

    test: "Expr"
    consequent: "Stmt"
    alternate: "Stmt | None" = None


@dataclass(frozen=True)
class While:
    """While loop."""

    test: "Expr"
    body: "Stmt"


@dataclass(frozen=True)
class For:
    """Counted loop over ``range(start, stop, step)``."""

    name: str
    start: "Expr"
    stop: "Expr"
    step: "Expr"
    compare_op: str
    body: "Stmt"


@dataclass(frozen=True)
class Break:
    """Break statement."""


@dataclass(frozen=True)
class Continue:
    """Continue statement."""


Expr = Union[
    Identifier, Literal, BinaryOp, LogicalOp, UnaryOp, Assign, MemberAccess, Call
]
Stmt = Union[
    Block, Return, ConstDecl, VarDecl, If, While, For, Break, Continue, Expr
]
Node = Union[Expr, Stmt]

NODE_KINDS: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        Identifier,
        Literal,
        BinaryOp,
        LogicalOp,
        UnaryOp,
        Assign,
        MemberAccess,
        Call,
        Block,
        Return,
        ConstDecl,
        VarDecl,
        If,
        While,
        For,
        Break,
        Continue,
    )
}

_NODE_CLASSES = frozenset(NODE_KINDS.values())


def _encode(value: Any) -> Any:
    if type(value) in _NODE_CLASSES:
        return node_to_dict(value)
    if isinstance(value, tuple):
        return [_encode(item) for item in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        return node_from_dict(value)
    if isinstance(value, list):
        return tuple(_decode(item) for item in value)
    return value


def node_to_dict(node: Node) -> dict[str, Any]:
    """Encode a bodyIR node as a JSON-compatible tagged dict.

    Args:
        node: Any bodyIR node

    Returns:
        Dictionary with a ``kind`` tag and one entry per node field
    """
    data: dict[str, Any] = {"kind": type(node).__name__}
    for f in fields(node):
        data[f.name] = _encode(getattr(node, f.name))
    return data


def node_from_dict(data: dict[str, Any]) -> Node:
    """Decode a tagged dict produced by node_to_dict.

    Args:
        data: Tagged dictionary

    Returns:
        The corresponding bodyIR node

    Raises:
        UnsupportedSyntaxError: If the tag names an unknown node kind
    """
    kind = data.get("kind")
    cls = NODE_KINDS.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise UnsupportedSyntaxError(str(kind), detail="unknown bodyIR node kind")
    kwargs = {
        f.name: _decode(data[f.name]) for f in fields(cls) if f.name in data
    }
    return cls(**kwargs)
