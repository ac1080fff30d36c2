"""
Scope analysis of shader closures.

The analyzer walks the closure's AST once and produces a CompiledUnit: the
parameter names, the bodyIR and the ordered, deduplicated list of free
("external") names. Names are resolved against a stack of lexical scope
frames rooted at the parameter frame; every block pushes a child frame, so a
declaration is only visible inside the block that holds it.
"""

import ast
import textwrap
from collections.abc import Callable
from typing import Any

from loguru import logger

from py2wgsl.transpiler.ast_parser import (
    ClosureNode,
    extract_closure,
    get_closure_tree,
    parse_closure_source,
)
from py2wgsl.transpiler.errors import UnsupportedSyntaxError
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
    Return,
    Stmt,
    UnaryOp,
    VarDecl,
    While,
)
from py2wgsl.transpiler.models import CompiledUnit, ScopeFrame
from py2wgsl.transpiler.operators import (
    AUGASSIGN_OPERATORS,
    BINARY_OPERATORS,
    COMPARISON_OPERATORS,
    LOGICAL_OPERATORS,
    UNARY_OPERATORS,
)


def _is_final_annotation(annotation: ast.expr) -> bool:
    """Check for ``Final``, ``typing.Final`` and their subscripted forms."""
    if isinstance(annotation, ast.Subscript):
        annotation = annotation.value
    if isinstance(annotation, ast.Name):
        return annotation.id == "Final"
    if isinstance(annotation, ast.Attribute):
        return annotation.attr == "Final"
    return False


def _is_docstring(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


def _is_negative_literal(node: Expr) -> bool:
    return isinstance(node, UnaryOp) and node.op == "-" and isinstance(
        node.operand, Literal
    )


class ScopeAnalyzer(ast.NodeVisitor):
    """Visitor turning a closure AST into a CompiledUnit.

    Every supported node kind has a ``visit_*`` method returning its bodyIR
    counterpart; anything else reaches generic_visit and is rejected.
    """

    def __init__(self, source: str | None = None):
        """Initialize the analyzer.

        Args:
            source: Source text the AST positions refer to, used to keep
                numeric literals exactly as written
        """
        self.source = source
        self.frames: list[ScopeFrame] = []
        self._externals: dict[str, None] = {}

    def analyze(self, closure: ClosureNode) -> CompiledUnit:
        """Analyze a Lambda or FunctionDef node.

        Args:
            closure: The closure node

        Returns:
            The compiled unit for the closure

        Raises:
            UnsupportedSyntaxError: If the closure uses syntax without a rule
        """
        arg_names = self._collect_params(closure.args)
        self.frames = [ScopeFrame(arg_names)]
        self._externals = {}

        if isinstance(closure, ast.Lambda):
            logger.debug(f"Analyzing lambda with params {arg_names}")
            body = Block((Return(self.visit(closure.body)),))
        else:
            logger.debug(f"Analyzing function {closure.name} with params {arg_names}")
            statements = closure.body
            if statements and _is_docstring(statements[0]):
                statements = statements[1:]
            body = self._block(statements)

        unit = CompiledUnit(
            arg_names=tuple(arg_names),
            body=body,
            external_names=tuple(self._externals),
        )
        logger.debug(f"Collected externals: {list(unit.external_names)}")
        return unit

    # Scopes

    @property
    def scope(self) -> ScopeFrame:
        return self.frames[-1]

    def _push(self, declared: list[str] | None = None) -> ScopeFrame:
        frame = ScopeFrame(declared, parent=self.scope)
        self.frames.append(frame)
        return frame

    def _pop(self) -> None:
        self.frames.pop()

    def _resolve(self, name: str) -> None:
        if not self.scope.is_declared(name) and name not in self._externals:
            logger.debug(f"Collected external: {name}")
            self._externals[name] = None

    def _collect_params(self, args: ast.arguments) -> list[str]:
        if args.vararg:
            raise UnsupportedSyntaxError("*args parameter", args.vararg)
        if args.kwarg:
            raise UnsupportedSyntaxError("**kwargs parameter", args.kwarg)
        if args.kwonlyargs:
            raise UnsupportedSyntaxError("keyword-only parameter", args.kwonlyargs[0])
        if args.defaults or any(d is not None for d in args.kw_defaults):
            raise UnsupportedSyntaxError("default parameter value", args.defaults[0])
        return [arg.arg for arg in args.posonlyargs + args.args]

    def _block(self, statements: list[ast.stmt]) -> Block:
        self._push()
        try:
            translated = [self.visit(stmt) for stmt in statements]
        finally:
            self._pop()
        return Block(tuple(stmt for stmt in translated if stmt is not None))

    def generic_visit(self, node: ast.AST) -> Any:
        """Reject every construct without a dedicated rule.

        Raises:
            UnsupportedSyntaxError: Always
        """
        raise UnsupportedSyntaxError(type(node).__name__, node)

    # Statements

    def visit_Expr(self, node: ast.Expr) -> Stmt:  # noqa: N802
        return self.visit(node.value)

    def visit_Pass(self, node: ast.Pass) -> None:  # noqa: N802
        return None

    def visit_Return(self, node: ast.Return) -> Return:  # noqa: N802
        return Return(self.visit(node.value) if node.value is not None else None)

    def visit_AnnAssign(  # noqa: N802
        self, node: ast.AnnAssign
    ) -> ConstDecl | VarDecl:
        """Annotated assignments declare a local in the innermost scope.

        ``x: Final = ...`` is an immutable binding, any other annotation a
        mutable one. The initializer is analyzed before the name is declared.
        """
        if not isinstance(node.target, ast.Name):
            raise UnsupportedSyntaxError(
                "AnnAssign", node, "only plain names can be declared"
            )
        init = self.visit(node.value) if node.value is not None else None
        name = node.target.id
        self.scope.declare(name)
        if _is_final_annotation(node.annotation):
            return ConstDecl(name, init)
        return VarDecl(name, init)

    def visit_Assign(self, node: ast.Assign) -> Assign:  # noqa: N802
        if len(node.targets) != 1:
            raise UnsupportedSyntaxError("Assign", node, "multiple targets")
        target = self._visit_target(node.targets[0])
        return Assign(target, "=", self.visit(node.value))

    def visit_AugAssign(self, node: ast.AugAssign) -> Assign:  # noqa: N802
        op = AUGASSIGN_OPERATORS.get(type(node.op))
        if op is None:
            raise UnsupportedSyntaxError(f"{type(node.op).__name__} assignment", node)
        target = self._visit_target(node.target)
        return Assign(target, op, self.visit(node.value))

    def _visit_target(self, target: ast.expr) -> Expr:
        # Assignment targets are resolved like any other use, never declared
        if not isinstance(target, ast.Name | ast.Attribute | ast.Subscript):
            raise UnsupportedSyntaxError(
                type(target).__name__, target, "unsupported assignment target"
            )
        return self.visit(target)

    def visit_If(self, node: ast.If) -> If:  # noqa: N802
        test = self.visit(node.test)
        consequent = self._block(node.body)
        alternate: Stmt | None = None
        if len(node.orelse) == 1 and isinstance(node.orelse[0], ast.If):
            alternate = self.visit(node.orelse[0])
        elif node.orelse:
            alternate = self._block(node.orelse)
        return If(test, consequent, alternate)

    def visit_While(self, node: ast.While) -> While:  # noqa: N802
        if node.orelse:
            raise UnsupportedSyntaxError("While", node, "else clause")
        test = self.visit(node.test)
        return While(test, self._block(node.body))

    def visit_For(self, node: ast.For) -> For:  # noqa: N802
        """Only counted loops over ``range(...)`` have a WGSL equivalent."""
        if node.orelse:
            raise UnsupportedSyntaxError("For", node, "else clause")
        if not isinstance(node.target, ast.Name):
            raise UnsupportedSyntaxError("For", node, "loop target must be a name")
        call = node.iter
        if not (
            isinstance(call, ast.Call)
            and isinstance(call.func, ast.Name)
            and call.func.id == "range"
            and 1 <= len(call.args) <= 3
            and not call.keywords
        ):
            raise UnsupportedSyntaxError("For", node, "only range() loops")

        bounds = [self.visit(arg) for arg in call.args]
        if len(bounds) == 1:
            start, stop, step = Literal("0"), bounds[0], Literal("1")
        elif len(bounds) == 2:
            start, stop, step = bounds[0], bounds[1], Literal("1")
        else:
            start, stop, step = bounds
        compare_op = ">" if _is_negative_literal(step) else "<"

        name = node.target.id
        self._push([name])
        try:
            body = self._block(node.body)
        finally:
            self._pop()
        return For(name, start, stop, step, compare_op, body)

    def visit_Break(self, node: ast.Break) -> Break:  # noqa: N802
        return Break()

    def visit_Continue(self, node: ast.Continue) -> Continue:  # noqa: N802
        return Continue()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:  # noqa: N802
        raise UnsupportedSyntaxError(
            "FunctionDef", node, "nested functions are not supported"
        )

    def visit_Lambda(self, node: ast.Lambda) -> None:  # noqa: N802
        raise UnsupportedSyntaxError(
            "Lambda", node, "nested closures are not supported"
        )

    # Expressions

    def visit_Name(self, node: ast.Name) -> Identifier:  # noqa: N802
        self._resolve(node.id)
        return Identifier(node.id)

    def visit_Constant(self, node: ast.Constant) -> Literal:  # noqa: N802
        value = node.value
        if isinstance(value, bool):
            return Literal("true" if value else "false")
        if isinstance(value, int | float):
            raw = ast.get_source_segment(self.source, node) if self.source else None
            return Literal((raw or repr(value)).replace("_", ""))
        raise UnsupportedSyntaxError(f"{type(value).__name__} constant", node)

    def visit_BinOp(self, node: ast.BinOp) -> BinaryOp:  # noqa: N802
        op = BINARY_OPERATORS.get(type(node.op))
        if op is None:
            raise UnsupportedSyntaxError(type(node.op).__name__, node)
        return BinaryOp(self.visit(node.left), op, self.visit(node.right))

    def visit_Compare(self, node: ast.Compare) -> BinaryOp:  # noqa: N802
        if len(node.ops) != 1:
            raise UnsupportedSyntaxError("Compare", node, "chained comparisons")
        op = COMPARISON_OPERATORS.get(type(node.ops[0]))
        if op is None:
            raise UnsupportedSyntaxError(type(node.ops[0]).__name__, node)
        return BinaryOp(self.visit(node.left), op, self.visit(node.comparators[0]))

    def visit_BoolOp(self, node: ast.BoolOp) -> LogicalOp:  # noqa: N802
        op = LOGICAL_OPERATORS[type(node.op)]
        values = [self.visit(value) for value in node.values]
        result = LogicalOp(values[0], op, values[1])
        for value in values[2:]:
            result = LogicalOp(result, op, value)
        return result

    def visit_UnaryOp(self, node: ast.UnaryOp) -> UnaryOp:  # noqa: N802
        op = UNARY_OPERATORS.get(type(node.op))
        if op is None:
            raise UnsupportedSyntaxError(type(node.op).__name__, node)
        return UnaryOp(op, self.visit(node.operand))

    def visit_Attribute(self, node: ast.Attribute) -> MemberAccess:  # noqa: N802
        # The attribute name is a property key, not a variable reference
        return MemberAccess(self.visit(node.value), node.attr, computed=False)

    def visit_Subscript(self, node: ast.Subscript) -> MemberAccess:  # noqa: N802
        if isinstance(node.slice, ast.Slice | ast.Tuple):
            raise UnsupportedSyntaxError(type(node.slice).__name__, node)
        return MemberAccess(
            self.visit(node.value), self.visit(node.slice), computed=True
        )

    def visit_Call(self, node: ast.Call) -> Call:  # noqa: N802
        if node.keywords:
            raise UnsupportedSyntaxError("keyword argument", node)
        callee = self.visit(node.func)
        return Call(callee, tuple(self.visit(arg) for arg in node.args))


def transpile_fn(closure: str | ast.AST | Callable[..., Any]) -> CompiledUnit:
    """Run scope analysis on a closure.

    Args:
        closure: Closure source text, a parsed tree, or a live function

    Returns:
        The compiled unit

    Raises:
        InvalidShapeError: If the input is not a single closure
        UnsupportedSyntaxError: If the closure uses unsupported syntax

    Examples:
        >>> unit = transpile_fn("lambda a, b: a + b - c")
        >>> unit.arg_names, unit.external_names
        (('a', 'b'), ('c',))
    """
    source: str | None = None
    if isinstance(closure, str):
        # Positions refer to the dedented text
        source = textwrap.dedent(closure)
        node = extract_closure(parse_closure_source(closure))
    elif isinstance(closure, ast.AST):
        node = extract_closure(closure)
    else:
        node, source = get_closure_tree(closure)
    return ScopeAnalyzer(source).analyze(node)
