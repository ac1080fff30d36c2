"""
AST parsing utilities for the closure transpiler.

This module turns closure source text (or a live Python function) into the
single Lambda or FunctionDef node the analyzer works on, together with the
source text its positions refer to.
"""

import ast
import inspect
import linecache
import textwrap
from collections.abc import Callable
from typing import Any

from loguru import logger

from py2wgsl.transpiler.errors import InvalidShapeError, UnsupportedSyntaxError

ClosureNode = ast.Lambda | ast.FunctionDef

# Human-readable names used when the input is not a closure
_SHAPE_NAMES: dict[type[ast.AST], str] = {
    ast.BinOp: "an arithmetic expression",
    ast.BoolOp: "a boolean expression",
    ast.Compare: "a comparison",
    ast.UnaryOp: "a unary expression",
    ast.Call: "a function call",
    ast.Name: "a name",
    ast.Attribute: "an attribute access",
    ast.Constant: "a constant",
    ast.ClassDef: "a class definition",
    ast.Assign: "an assignment",
    ast.Import: "an import",
    ast.ImportFrom: "an import",
}


def describe_node(node: ast.AST) -> str:
    """Describe what a node is, for InvalidShapeError messages."""
    return _SHAPE_NAMES.get(type(node), f"a {type(node).__name__} node")


def parse_closure_source(source: str) -> ast.Module:
    """Parse closure source text into a module AST.

    Args:
        source: Python source containing a single lambda or function

    Returns:
        The parsed module

    Raises:
        InvalidShapeError: If the source is empty or not valid Python
    """
    code = textwrap.dedent(source)
    if not code.strip():
        raise InvalidShapeError("Expected a single closure, got empty source")
    try:
        return ast.parse(code)
    except SyntaxError as e:
        raise InvalidShapeError(f"Expected a single closure, got invalid syntax: {e}")


def extract_closure(tree: ast.AST) -> ClosureNode:
    """Unwrap a parsed tree down to exactly one closure literal.

    Args:
        tree: A Module, an expression statement or a closure node

    Returns:
        The Lambda or FunctionDef node

    Raises:
        InvalidShapeError: If the tree does not hold exactly one closure
        UnsupportedSyntaxError: If the closure is async
    """
    node = tree
    while True:
        if isinstance(node, ast.Module):
            if len(node.body) != 1:
                raise InvalidShapeError(
                    f"Expected a single closure, got {len(node.body)} statements"
                )
            node = node.body[0]
        elif isinstance(node, ast.Expr):
            node = node.value
        elif isinstance(node, ast.Lambda | ast.FunctionDef):
            return node
        elif isinstance(node, ast.AsyncFunctionDef):
            raise UnsupportedSyntaxError(
                "AsyncFunctionDef", node, "shader functions cannot be async"
            )
        else:
            raise InvalidShapeError(
                f"Expected a single closure, got {describe_node(node)}", node
            )


def _lambda_candidates(tree: ast.AST, func: Callable[..., Any]) -> list[ast.Lambda]:
    code = func.__code__
    arg_names = list(code.co_varnames[: code.co_argcount])
    on_line = [
        node
        for node in ast.walk(tree)
        if isinstance(node, ast.Lambda) and node.lineno == code.co_firstlineno
    ]
    if len(on_line) <= 1:
        return on_line
    return [
        node for node in on_line if [a.arg for a in node.args.args] == arg_names
    ]


def get_closure_tree(func: Callable[..., Any]) -> tuple[ClosureNode, str]:
    """Locate the closure node for a live Python function.

    Regular functions are re-parsed from their own source. Lambdas are found
    by parsing the whole defining file and matching the lambda's line (and
    argument names when a line holds several lambdas).

    Args:
        func: The function or lambda to locate

    Returns:
        Tuple of (closure node, source text the node positions refer to)

    Raises:
        InvalidShapeError: If the source is unavailable or ambiguous
    """
    if not inspect.isfunction(func):
        raise InvalidShapeError(
            f"Expected a single closure, got {type(func).__name__} object"
        )

    if func.__name__ != "<lambda>":
        try:
            source = textwrap.dedent(inspect.getsource(func))
        except (OSError, TypeError) as e:
            raise InvalidShapeError(f"Failed to get source for {func.__name__}: {e}")
        logger.debug(f"Parsing source of function {func.__name__}")
        return extract_closure(parse_closure_source(source)), source

    filename = inspect.getsourcefile(func)
    lines = linecache.getlines(filename) if filename else []
    if not lines:
        raise InvalidShapeError("Failed to get source for lambda")
    source = "".join(lines)
    try:
        tree = ast.parse(source)
    except SyntaxError as e:
        raise InvalidShapeError(f"Failed to parse source of lambda: {e}")

    candidates = _lambda_candidates(tree, func)
    if len(candidates) != 1:
        raise InvalidShapeError(
            f"Cannot locate lambda at {filename}:{func.__code__.co_firstlineno} "
            f"({len(candidates)} candidates); define it on its own line"
        )
    logger.debug(f"Located lambda at {filename}:{func.__code__.co_firstlineno}")
    return candidates[0], source
