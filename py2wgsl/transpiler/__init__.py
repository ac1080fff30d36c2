"""
Closure-to-WGSL transpiler.

Stage 1 (transpile_fn) analyzes a closure into a CompiledUnit; stage 2
(generate_wgsl) renders that unit into WGSL against a table of externals.

Examples:
    unit = transpile_fn("lambda a, b: a + b - c")
    wgsl = generate_wgsl(unit, [f32, f32], {"c": 1.0}, f32, name="add")
"""

from collections.abc import Callable
from typing import Any

from py2wgsl.transpiler.analyzer import ScopeAnalyzer, transpile_fn
from py2wgsl.transpiler.cache import CompileCache, compile_cache
from py2wgsl.transpiler.code_generator import WgslGenerator, generate_wgsl
from py2wgsl.transpiler.errors import (
    InvalidShapeError,
    MalformedResolvableError,
    TranspilerError,
    UnresolvedExternalError,
    UnsupportedSyntaxError,
)
from py2wgsl.transpiler.models import CompiledUnit, ShellSignature


def compile_closure(func: Callable[..., Any]) -> CompiledUnit:
    """Analyze a live function once and reuse the result for its lifetime."""
    return compile_cache.get_or_compile(func, transpile_fn)


__all__ = [
    "CompileCache",
    "CompiledUnit",
    "InvalidShapeError",
    "MalformedResolvableError",
    "ScopeAnalyzer",
    "ShellSignature",
    "TranspilerError",
    "UnresolvedExternalError",
    "UnsupportedSyntaxError",
    "WgslGenerator",
    "compile_cache",
    "compile_closure",
    "generate_wgsl",
    "transpile_fn",
]
