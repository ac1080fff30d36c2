"""Tests for scope analysis (stage 1)."""

import ast
import textwrap

import pytest

from py2wgsl.transpiler import transpile_fn
from py2wgsl.transpiler.analyzer import ScopeAnalyzer
from py2wgsl.transpiler.errors import InvalidShapeError, UnsupportedSyntaxError
from py2wgsl.transpiler.ir import (
    Assign,
    BinaryOp,
    Block,
    Break,
    Call,
    ConstDecl,
    Continue,
    For,
    Identifier,
    If,
    Literal,
    LogicalOp,
    MemberAccess,
    Return,
    UnaryOp,
    VarDecl,
    While,
)

OFFSET = 3.0


def _source(code: str) -> str:
    return textwrap.dedent(code).strip()


class TestClosureShapes:
    """Scope analysis of the basic closure shapes."""

    def test_expression_lambda(self):
        """An expression-bodied lambda returns its expression."""
        # Act
        unit = transpile_fn("lambda a, b: a + b - c")

        # Assert
        assert unit.arg_names == ("a", "b")
        assert unit.body == Block(
            (
                Return(
                    BinaryOp(
                        BinaryOp(Identifier("a"), "+", Identifier("b")),
                        "-",
                        Identifier("c"),
                    )
                ),
            )
        )
        assert unit.external_names == ("c",)

    def test_declared_local_is_not_external(self):
        """A declared local never appears among the externals."""
        # Arrange
        code = _source(
            """
            def shader():
                a: Final = 0
                c = a + 2
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.external_names == ("c",)
        assert unit.body == Block(
            (
                ConstDecl("a", Literal("0")),
                Assign(
                    Identifier("c"), "=", BinaryOp(Identifier("a"), "+", Literal("2"))
                ),
            )
        )

    def test_member_chain_collects_root_only(self):
        """Only the root of a member chain is a name reference."""
        # Act
        unit = transpile_fn("lambda: external.outside.prop")

        # Assert
        assert unit.external_names == ("external",)
        assert unit.body.statements[0] == Return(
            MemberAccess(MemberAccess(Identifier("external"), "outside"), "prop")
        )

    @pytest.mark.parametrize(
        "code, found",
        [
            ("1 + 2", "an arithmetic expression"),
            ("x = lambda: 1", "an assignment"),
            ("lambda: 1\nlambda: 2", "2 statements"),
            ("", "empty source"),
            ("lambda:", "invalid syntax"),
        ],
    )
    def test_not_a_single_closure(self, code, found):
        """Input that is not exactly one closure is rejected."""
        # Act & Assert
        with pytest.raises(InvalidShapeError) as excinfo:
            transpile_fn(code)
        assert found in str(excinfo.value)

    def test_docstring_and_pass_produce_nothing(self):
        """A leading docstring and pass statements are no-ops."""
        # Arrange
        code = _source(
            '''
            def shader():
                """Does nothing."""
                pass
            '''
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.body == Block(())
        assert unit.external_names == ()

    def test_accepts_parsed_tree(self):
        """A parsed module is unwrapped to its closure."""
        # Arrange
        tree = ast.parse("lambda x: x * k")

        # Act
        unit = transpile_fn(tree)

        # Assert
        assert unit.arg_names == ("x",)
        assert unit.external_names == ("k",)


class TestExternals:
    """Collection of free names."""

    def test_first_occurrence_order_without_duplicates(self):
        """Externals are listed once, in order of first use."""
        # Act
        unit = transpile_fn("lambda a: b + c + b + a + d")

        # Assert
        assert unit.external_names == ("b", "c", "d")

    def test_shadowing_is_limited_to_the_block(self):
        """A block declaration hides a name inside the block only."""
        # Arrange
        code = _source(
            """
            def shader(x):
                if x > 0:
                    y: f32 = 1.0
                    x = y
                y = 2.0
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.external_names == ("y",)

    def test_declaration_after_use_is_external(self):
        """A name used before its declaration is external at that point."""
        # Arrange
        code = _source(
            """
            def shader():
                a = 1
                a: f32 = 2.0
                return a
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.external_names == ("a",)

    def test_initializer_is_analyzed_before_declaration(self):
        """The declared name is not yet visible in its own initializer."""
        # Arrange
        code = _source(
            """
            def shader():
                x: Final = x + 1
                return x
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.external_names == ("x",)

    def test_parameters_are_never_external(self):
        """Parameters are resolved in the root frame."""
        # Act
        unit = transpile_fn("lambda a, b: std.max(a, b)")

        # Assert
        assert unit.external_names == ("std",)

    def test_annotation_names_are_not_collected(self):
        """Type annotations are not references."""
        # Arrange
        code = _source(
            """
            def shader(a):
                b: vec3f = a
                return b
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.external_names == ()
        assert unit.body.statements[0] == VarDecl("b", Identifier("a"))


class TestStatements:
    """Lowering of statements."""

    def test_if_elif_else(self):
        """elif chains nest as the alternate of the previous if."""
        # Arrange
        code = _source(
            """
            def shader(x):
                if x < 0:
                    return -1
                elif x > 0:
                    return 1
                else:
                    return 0
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.body.statements == (
            If(
                BinaryOp(Identifier("x"), "<", Literal("0")),
                Block((Return(UnaryOp("-", Literal("1"))),)),
                If(
                    BinaryOp(Identifier("x"), ">", Literal("0")),
                    Block((Return(Literal("1")),)),
                    Block((Return(Literal("0")),)),
                ),
            ),
        )

    def test_range_loop(self):
        """range() loops become counted loops with their own scope."""
        # Arrange
        code = _source(
            """
            def shader(n):
                total: f32 = 0.0
                for i in range(n):
                    total += i
                return total
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.external_names == ()
        assert unit.body.statements[1] == For(
            "i",
            Literal("0"),
            Identifier("n"),
            Literal("1"),
            "<",
            Block((Assign(Identifier("total"), "+=", Identifier("i")),)),
        )

    def test_descending_range_loop(self):
        """A negative literal step flips the loop comparison."""
        # Act
        unit = transpile_fn(
            _source(
                """
                def shader():
                    for i in range(10, 0, -2):
                        pass
                """
            )
        )

        # Assert
        loop = unit.body.statements[0]
        assert isinstance(loop, For)
        assert loop.compare_op == ">"
        assert loop.step == UnaryOp("-", Literal("2"))

    def test_loop_variable_does_not_leak(self):
        """The loop variable is only declared inside the loop."""
        # Arrange
        code = _source(
            """
            def shader():
                for i in range(4):
                    pass
                return i
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.external_names == ("i",)

    def test_while_with_break_and_continue(self):
        """while loops keep break and continue."""
        # Arrange
        code = _source(
            """
            def shader(x):
                while x > 0:
                    if x == 3:
                        break
                    x -= 1
                    continue
            """
        )

        # Act
        unit = transpile_fn(code)

        # Assert
        loop = unit.body.statements[0]
        assert isinstance(loop, While)
        assert loop.body.statements[0] == If(
            BinaryOp(Identifier("x"), "==", Literal("3")), Block((Break(),))
        )
        assert loop.body.statements[2] == Continue()

    def test_expression_statement(self):
        """A bare call is kept as an expression statement."""
        # Act
        unit = transpile_fn(_source("def shader(x):\n    emit(x)"))

        # Assert
        assert unit.body.statements == (Call(Identifier("emit"), (Identifier("x"),)),)
        assert unit.external_names == ("emit",)


class TestExpressions:
    """Lowering of expressions."""

    def test_numeric_literals_keep_source_text(self):
        """Numbers keep their spelling, without digit separators."""
        # Act
        unit = transpile_fn("lambda: 1_000 + 0x10 + 1e3")

        # Assert
        expr = unit.body.statements[0].value
        assert expr == BinaryOp(
            BinaryOp(Literal("1000"), "+", Literal("0x10")), "+", Literal("1e3")
        )

    def test_booleans(self):
        """Python booleans lower to WGSL keywords."""
        # Act
        unit = transpile_fn("lambda: True or False")

        # Assert
        assert unit.body.statements[0] == Return(
            LogicalOp(Literal("true"), "||", Literal("false"))
        )

    def test_logical_operators_fold_left(self):
        """n-ary and/or fold into left-nested binary nodes."""
        # Act
        unit = transpile_fn("lambda a, b, c: a and b and c")

        # Assert
        assert unit.body.statements[0] == Return(
            LogicalOp(
                LogicalOp(Identifier("a"), "&&", Identifier("b")), "&&", Identifier("c")
            )
        )

    @pytest.mark.parametrize(
        "code, op",
        [("lambda a: -a", "-"), ("lambda a: not a", "!"), ("lambda a: ~a", "~")],
    )
    def test_unary_operators(self, code, op):
        """Unary operators map to their WGSL tokens."""
        # Act
        unit = transpile_fn(code)

        # Assert
        assert unit.body.statements[0] == Return(UnaryOp(op, Identifier("a")))

    def test_subscript_is_computed_member_access(self):
        """Indexing becomes a computed member access."""
        # Act
        unit = transpile_fn("lambda v, i: v[i + 1]")

        # Assert
        assert unit.body.statements[0] == Return(
            MemberAccess(
                Identifier("v"),
                BinaryOp(Identifier("i"), "+", Literal("1")),
                computed=True,
            )
        )

    def test_literal_without_source_uses_repr(self):
        """Without source text, literals fall back to their Python repr."""
        # Arrange
        node = ast.parse("lambda: 2.50").body[0].value

        # Act
        unit = ScopeAnalyzer().analyze(node)

        # Assert
        assert unit.body.statements[0] == Return(Literal("2.5"))


class TestUnsupportedSyntax:
    """Constructs without a lowering rule are rejected."""

    @pytest.mark.parametrize(
        "code, kind",
        [
            ("lambda a: a ** 2", "Pow"),
            ("lambda a: a // 2", "FloorDiv"),
            ("lambda a: a @ a", "MatMult"),
            ("lambda: 'text'", "str constant"),
            ("lambda: None", "NoneType constant"),
            ("lambda a: a is b", "Is"),
            ("lambda a: a in b", "In"),
            ("lambda a: 0 < a < 1", "Compare"),
            ("lambda a: [x for x in a]", "ListComp"),
            ("lambda a: f(a, k=1)", "keyword argument"),
            ("lambda a: f(*a)", "Starred"),
            ("lambda a: v[1:2]", "Slice"),
            ("lambda: (lambda: 1)", "Lambda"),
            ("lambda *args: 0", "*args parameter"),
            ("lambda **kw: 0", "**kwargs parameter"),
            ("lambda *, a: a", "keyword-only parameter"),
            ("lambda a=1: a", "default parameter value"),
            ("lambda a: a if a else b", "IfExp"),
        ],
    )
    def test_unsupported_expression(self, code, kind):
        """Unsupported expressions raise with the offending kind."""
        # Act & Assert
        with pytest.raises(UnsupportedSyntaxError) as excinfo:
            transpile_fn(code)
        assert excinfo.value.kind == kind

    @pytest.mark.parametrize(
        "body, kind",
        [
            ("def inner():\n        return 1", "FunctionDef"),
            ("a, b = 1, 2", "Tuple"),
            ("a = b = 1", "Assign"),
            ("a **= 2", "Pow assignment"),
            ("for x in items:\n        pass", "For"),
            ("while a:\n        pass\n    else:\n        pass", "While"),
            ("global a", "Global"),
            ("assert a", "Assert"),
            ("with a:\n        pass", "With"),
            ("yield a", "Yield"),
        ],
    )
    def test_unsupported_statement(self, body, kind):
        """Unsupported statements raise with the offending kind."""
        # Arrange
        code = f"def shader(a):\n    {body}\n"

        # Act & Assert
        with pytest.raises(UnsupportedSyntaxError) as excinfo:
            transpile_fn(code)
        assert excinfo.value.kind == kind

    def test_async_function(self):
        """Async functions cannot be shaders."""
        # Act & Assert
        with pytest.raises(UnsupportedSyntaxError) as excinfo:
            transpile_fn("async def shader():\n    return 1\n")
        assert excinfo.value.kind == "AsyncFunctionDef"

    def test_error_carries_line_number(self):
        """The error message points at the offending line."""
        # Arrange
        code = "def shader(a):\n    b: f32 = a\n    return a ** 2\n"

        # Act & Assert
        with pytest.raises(UnsupportedSyntaxError) as excinfo:
            transpile_fn(code)
        assert excinfo.value.lineno == 3
        assert "at line 3" in str(excinfo.value)


class TestLiveFunctions:
    """Analysis of live Python functions."""

    def test_function(self):
        """Regular functions are re-parsed from their source."""

        # Arrange
        def shader(a):
            return a + OFFSET

        # Act
        unit = transpile_fn(shader)

        # Assert
        assert unit.arg_names == ("a",)
        assert unit.external_names == ("OFFSET",)

    def test_lambda(self):
        """Lambdas are located in their defining file."""
        # Arrange
        shader = lambda u, v: u * v + OFFSET  # noqa: E731

        # Act
        unit = transpile_fn(shader)

        # Assert
        assert unit.arg_names == ("u", "v")
        assert unit.external_names == ("OFFSET",)
