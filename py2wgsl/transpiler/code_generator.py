"""
WGSL code generation from bodyIR.

The generator walks a CompiledUnit's body and renders WGSL, resolving every
external identifier through a caller-supplied table. Each bodyIR node kind has
exactly one rule; a node outside the grammar is rejected.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger

from py2wgsl.transpiler import resolvable
from py2wgsl.transpiler.errors import (
    TranspilerError,
    UnresolvedExternalError,
    UnsupportedSyntaxError,
)
from py2wgsl.transpiler.ir import (
    Assign,
    BinaryOp,
    Block,
    Break,
    Call,
    ConstDecl,
    Continue,
    Expr,
    For,
    Identifier,
    If,
    Literal,
    LogicalOp,
    MemberAccess,
    Node,
    Return,
    Stmt,
    UnaryOp,
    VarDecl,
    While,
)
from py2wgsl.transpiler.models import CompiledUnit, ScopeFrame, ShellSignature
from py2wgsl.transpiler.operators import (
    ASSIGNMENT_OPS,
    BINARY_OPS,
    COMPARISON_OPERATORS,
    LOGICAL_OPS,
    OPERATOR_PRECEDENCE,
    UNARY_OPS,
)

# Members of this namespace exist in WGSL's global scope
STD_ALIAS = "std"
# Property that unwraps a resolvable instead of accessing a member
UNWRAP_PROPERTY = "value"
INDENT = "  "

# WGSL requires parentheses around operands of these operators
_BITWISE_OPS = frozenset({"&", "|", "^", "<<", ">>"})
# Comparisons do not associate in WGSL
_COMPARISON_OPS = frozenset(COMPARISON_OPERATORS.values())


def _check_op(op: str, allowed: frozenset[str], node: Node) -> str:
    if op not in allowed:
        raise UnsupportedSyntaxError(f"operator {op!r}", node)
    return op


class WgslGenerator:
    """Renders one CompiledUnit against one external table.

    Attributes:
        unit: The compiled closure
        externals: Mapping from external name to resolvable or plain literal
    """

    def __init__(self, unit: CompiledUnit, externals: Mapping[str, Any]):
        self.unit = unit
        self.externals = dict(externals)
        self.frames: list[ScopeFrame] = [ScopeFrame(list(unit.arg_names))]

    def validate_externals(self) -> None:
        """Check that every external name has a table entry.

        Raises:
            UnresolvedExternalError: For the first missing name
        """
        for name in self.unit.external_names:
            if name != STD_ALIAS and name not in self.externals:
                raise UnresolvedExternalError(name)

    def generate_body(self) -> str:
        self.validate_externals()
        return self._block(self.unit.body, 0)

    def generate_function(
        self, name: str | None, signature: ShellSignature
    ) -> str:
        """Generate a complete WGSL function.

        Args:
            name: Function name, or None for an anonymous ``(args) -> R {}``
            signature: Parameter and return type descriptors

        Returns:
            WGSL source text

        Raises:
            TranspilerError: If the number of types does not match the
                number of parameters
        """
        arg_names = self.unit.arg_names
        if len(signature.arg_types) != len(arg_names):
            raise TranspilerError(
                f"Expected {len(arg_names)} argument types for "
                f"({', '.join(arg_names)}), got {len(signature.arg_types)}"
            )
        params = ", ".join(
            f"{arg}: {resolvable.textualize(arg, arg_type)}"
            for arg, arg_type in zip(arg_names, signature.arg_types)
        )
        header = f"({params})"
        if signature.return_type is not None:
            return_text = resolvable.textualize("return type", signature.return_type)
            if return_text:
                header = f"{header} -> {return_text}"
        if name:
            header = f"fn {name}{header}"
        logger.debug(f"Generating WGSL for {name or '<anonymous>'}{header}")
        return f"{header} {self.generate_body()}"

    # Scopes

    def _is_local(self, name: str) -> bool:
        return self.frames[-1].is_declared(name)

    def _declare(self, name: str) -> None:
        self.frames[-1].declare(name)

    def _push(self, declared: list[str] | None = None) -> None:
        self.frames.append(ScopeFrame(declared, parent=self.frames[-1]))

    def _pop(self) -> None:
        self.frames.pop()

    def _lookup(self, name: str) -> Any:
        if name not in self.externals:
            raise UnresolvedExternalError(name)
        return self.externals[name]

    def _external_of(self, node: Expr) -> tuple[str, Any] | None:
        """Return (name, value) when the node is a reference to an external."""
        if (
            isinstance(node, Identifier)
            and not self._is_local(node.name)
            and node.name in self.externals
        ):
            return node.name, self.externals[node.name]
        return None

    def _is_std(self, node: Expr) -> bool:
        return (
            isinstance(node, Identifier)
            and node.name == STD_ALIAS
            and not self._is_local(STD_ALIAS)
        )

    # Statements

    def _indent(self, depth: int) -> str:
        return INDENT * depth

    def _block(
        self, block: Block, depth: int, declared: list[str] | None = None
    ) -> str:
        if not block.statements:
            return "{}"
        self._push(declared)
        try:
            lines = [
                f"{self._indent(depth + 1)}{self._stmt(stmt, depth + 1)}"
                for stmt in block.statements
            ]
        finally:
            self._pop()
        return "{\n" + "\n".join(lines) + f"\n{self._indent(depth)}}}"

    def _body(
        self, stmt: Stmt, depth: int, declared: list[str] | None = None
    ) -> str:
        # WGSL requires braces around every compound statement body
        block = stmt if isinstance(stmt, Block) else Block((stmt,))
        return self._block(block, depth, declared)

    def _stmt(self, node: Stmt, depth: int) -> str:
        match node:
            case Block():
                return self._block(node, depth)
            case Return(value=None):
                return "return;"
            case Return(value=value):
                return f"return {self._expr(value)};"
            case ConstDecl(name=name, init=init):
                return self._declaration("let", name, init)
            case VarDecl(name=name, init=init):
                return self._declaration("var", name, init)
            case If():
                return self._if(node, depth)
            case While(test=test, body=body):
                return f"while ({self._expr(test)}) {self._body(body, depth)}"
            case For():
                return self._for(node, depth)
            case Break():
                return "break;"
            case Continue():
                return "continue;"
            case (
                Identifier()
                | Literal()
                | BinaryOp()
                | LogicalOp()
                | UnaryOp()
                | Assign()
                | MemberAccess()
                | Call()
            ):
                return f"{self._expr(node)};"
            case _:
                raise UnsupportedSyntaxError(type(node).__name__)

    def _declaration(self, keyword: str, name: str, init: Expr | None) -> str:
        text = f"{keyword} {name};"
        if init is not None:
            text = f"{keyword} {name} = {self._expr(init)};"
        # Visible only to the statements that follow
        self._declare(name)
        return text

    def _if(self, node: If, depth: int) -> str:
        text = f"if ({self._expr(node.test)}) {self._body(node.consequent, depth)}"
        if node.alternate is None:
            return text
        if isinstance(node.alternate, If):
            return f"{text} else {self._if(node.alternate, depth)}"
        return f"{text} else {self._body(node.alternate, depth)}"

    def _for(self, node: For, depth: int) -> str:
        if node.compare_op not in {"<", ">"}:
            raise UnsupportedSyntaxError(f"operator {node.compare_op!r}", node)
        start = self._expr(node.start)
        stop = self._expr(node.stop)
        step = self._expr(node.step)
        header = (
            f"for (var {node.name} = {start}; {node.name} {node.compare_op} {stop}; "
            f"{node.name} += {step})"
        )
        return f"{header} {self._body(node.body, depth, declared=[node.name])}"

    # Expressions

    def _expr(self, node: Expr) -> str:
        match node:
            case Identifier(name=name):
                return self._identifier(name)
            case Literal(raw=raw):
                return raw
            case BinaryOp(left=left, op=op, right=right):
                _check_op(op, BINARY_OPS, node)
                return self._infix(left, op, right)
            case LogicalOp(left=left, op=op, right=right):
                _check_op(op, LOGICAL_OPS, node)
                return self._infix(left, op, right)
            case Assign(target=target, op=op, value=value):
                _check_op(op, ASSIGNMENT_OPS, node)
                return f"{self._expr(target)} {op} {self._expr(value)}"
            case UnaryOp(op=op, operand=operand):
                _check_op(op, UNARY_OPS, node)
                text = self._wrap(operand, OPERATOR_PRECEDENCE["unary"])
                if op == "-" and text.startswith("-"):
                    # "--" would lex as the decrement token
                    text = f"({text})"
                return f"{op}{text}"
            case MemberAccess():
                return self._member(node)
            case Call():
                return self._call(node)
            case _:
                raise UnsupportedSyntaxError(type(node).__name__)

    def _identifier(self, name: str) -> str:
        if self._is_local(name):
            return name
        value = self._lookup(name)
        if resolvable.supports_label(value):
            value.set_label(name)
        return resolvable.textualize(name, value)

    def _precedence(self, node: Expr) -> int:
        if isinstance(node, BinaryOp | LogicalOp):
            return OPERATOR_PRECEDENCE[node.op]
        if isinstance(node, Assign):
            return OPERATOR_PRECEDENCE["="]
        if isinstance(node, UnaryOp):
            return OPERATOR_PRECEDENCE["unary"]
        return OPERATOR_PRECEDENCE["member"]

    def _wrap(self, node: Expr, min_precedence: int) -> str:
        text = self._expr(node)
        return f"({text})" if self._precedence(node) < min_precedence else text

    def _infix(self, left: Expr, op: str, right: Expr) -> str:
        precedence = OPERATOR_PRECEDENCE[op]
        left_text = self._operand(left, op, precedence)
        # Left-associative: an equal-precedence right operand needs parentheses
        right_text = self._operand(right, op, precedence + 1)
        return f"{left_text} {op} {right_text}"

    def _operand(self, node: Expr, op: str, min_precedence: int) -> str:
        text = self._expr(node)
        needs_parens = self._precedence(node) < min_precedence
        if isinstance(node, BinaryOp | LogicalOp):
            if op in _BITWISE_OPS and node.op != op:
                needs_parens = True
            if op in _COMPARISON_OPS and node.op in _COMPARISON_OPS:
                needs_parens = True
            if isinstance(node, LogicalOp) and op in LOGICAL_OPS and node.op != op:
                needs_parens = True
        return f"({text})" if needs_parens else text

    def _member(self, node: MemberAccess) -> str:
        if not node.computed and self._is_std(node.target):
            return str(node.prop)

        external = self._external_of(node.target)
        if (
            external is not None
            and not node.computed
            and node.prop == UNWRAP_PROPERTY
            and resolvable.supports_unwrap(external[1])
        ):
            return resolvable.unwrap(*external)

        target = self._wrap(node.target, OPERATOR_PRECEDENCE["member"])
        if node.computed:
            if isinstance(node.prop, str):
                raise UnsupportedSyntaxError("MemberAccess", node, "computed key")
            return f"{target}[{self._expr(node.prop)}]"
        if not isinstance(node.prop, str):
            raise UnsupportedSyntaxError("MemberAccess", node, "property key")
        return f"{target}.{node.prop}"

    def _call(self, node: Call) -> str:
        arg_texts = [self._expr(arg) for arg in node.args]
        external = self._external_of(node.callee)
        if external is not None and resolvable.supports_call(external[1]):
            name, value = external
            if resolvable.supports_label(value):
                value.set_label(name)
            return resolvable.call_with(name, value, arg_texts)
        callee = self._wrap(node.callee, OPERATOR_PRECEDENCE["call"])
        return f"{callee}({', '.join(arg_texts)})"


def generate_wgsl(
    unit: CompiledUnit,
    arg_types: list[Any],
    externals: Mapping[str, Any] | None = None,
    return_type: Any | None = None,
    name: str | None = None,
) -> str:
    """Generate WGSL source for a compiled closure.

    Args:
        unit: Output of the scope analyzer
        arg_types: One type descriptor per parameter
        externals: Mapping from external name to resolvable or literal
        return_type: Optional return type descriptor
        name: Function name; omitted from the output when None

    Returns:
        WGSL function source

    Raises:
        UnresolvedExternalError: If an external name has no table entry
        MalformedResolvableError: If a resolvable fails to render
        UnsupportedSyntaxError: If the body holds an unknown node or operator
    """
    generator = WgslGenerator(unit, externals or {})
    return generator.generate_function(
        name, ShellSignature(list(arg_types), return_type)
    )
