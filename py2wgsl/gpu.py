"""Root namespace for declaring shader functions.

Shader functions are declared by giving a shell (argument and return types)
an implementation:

    from py2wgsl import gpu, std
    from py2wgsl.data import f32

    add = gpu.fn([f32, f32], f32).does(lambda a, b: a + b - offset)

    @gpu.fn([f32], f32).does
    def wave(x):
        return std.sin(x * scale.value)

The implementation is compiled to WGSL lazily, on the first resolve(). When
the module went through a build adapter, the compiled closure and a thunk
capturing its externals were attached at build time instead.
"""

import inspect
import re
from collections.abc import Callable, Sequence
from typing import Any

from loguru import logger

from py2wgsl.transpiler import compile_cache, compile_closure, generate_wgsl
from py2wgsl.transpiler import resolvable
from py2wgsl.transpiler.models import CompiledUnit

# Attribute under which build adapters store the externals thunk
EXTERNALS_ATTR = "__py2wgsl_externals__"

Implementation = Callable[..., Any] | str


def capture_externals(func: Callable[..., Any], names: Sequence[str]) -> dict[str, Any]:
    """Capture the values of external names as seen by a live function.

    Closure cells take precedence over module globals. Builtins are never
    captured.

    Args:
        func: The shader closure
        names: External names to look up

    Returns:
        Mapping of the names that could be found to their values
    """
    thunk = getattr(func, EXTERNALS_ATTR, None)
    if thunk is not None:
        captured = dict(thunk())
    else:
        closure_vars = inspect.getclosurevars(func)
        captured = {**closure_vars.globals, **closure_vars.nonlocals}
    return {name: captured[name] for name in names if name in captured}


class FnShell:
    """Signature of a shader function, waiting for an implementation.

    Attributes:
        arg_types: Type descriptor for each parameter
        return_type: Return type descriptor, None for no result
    """

    def __init__(self, arg_types: Sequence[Any], return_type: Any | None = None):
        self.arg_types = list(arg_types)
        self.return_type = return_type

    def does(self, implementation: Implementation) -> "GpuFn":
        """Attach an implementation: a closure or pre-authored WGSL text."""
        return GpuFn(self, implementation)

    def __repr__(self) -> str:
        return f"FnShell({self.arg_types!r}, {self.return_type!r})"


class GpuFn:
    """A shader function, resolvable into WGSL.

    Referenced from another shader closure it renders as its name, and calls
    to it lower to ``name(args)``. Calling it on the host runs the
    implementation directly.
    """

    def __init__(self, shell: FnShell, implementation: Implementation):
        self.shell = shell
        self.implementation = implementation
        self._label: str | None = None
        self._externals: dict[str, Any] = {}

    @property
    def label(self) -> str:
        if self._label:
            return self._label
        name = getattr(self.implementation, "__name__", "<lambda>")
        return "fn_" if name == "<lambda>" else name

    def named(self, label: str) -> "GpuFn":
        self._label = label
        return self

    def set_label(self, label: str) -> "GpuFn":
        # An explicit name always wins over the name it was referenced by
        if self._label is None:
            self._label = label
        return self

    def uses(self, **externals: Any) -> "GpuFn":
        """Supply externals explicitly; they override captured ones."""
        self._externals.update(externals)
        return self

    @property
    def compiled(self) -> CompiledUnit:
        if isinstance(self.implementation, str):
            raise TypeError("Functions implemented in raw WGSL are not compiled")
        return compile_closure(self.implementation)

    def external_table(self) -> dict[str, Any]:
        unit = self.compiled
        table = capture_externals(self.implementation, unit.external_names)
        table.update(self._externals)
        return table

    def resolve(self) -> str:
        """Generate the WGSL definition of this function.

        Raises:
            TranspilerError: If the implementation cannot be compiled or an
                external cannot be resolved
        """
        if isinstance(self.implementation, str):
            return self._resolve_raw(self.implementation)
        logger.debug(f"Resolving shader function {self.label}")
        return generate_wgsl(
            self.compiled,
            self.shell.arg_types,
            self.external_table(),
            self.shell.return_type,
            name=self.label,
        )

    def _resolve_raw(self, text: str) -> str:
        code = text.strip()
        for name, value in self._externals.items():
            code = re.sub(
                rf"\b{re.escape(name)}\b", resolvable.textualize(name, value), code
            )
        return f"fn {self.label}{code}"

    def textualize(self) -> str:
        return self.label

    def call_with(self, arg_texts: list[str]) -> str:
        return f"{self.label}({', '.join(arg_texts)})"

    def __call__(self, *args: Any) -> Any:
        if isinstance(self.implementation, str):
            raise TypeError(
                "Cannot execute on the CPU functions constructed with raw WGSL"
            )
        return self.implementation(*args)

    def __repr__(self) -> str:
        return f"fn:{self.label}"


class Slot:
    """A placeholder value unwrapped in shader code through ``.value``."""

    def __init__(self, default: Any = None):
        self.value = default
        self._label: str | None = None

    def set_label(self, label: str) -> "Slot":
        if self._label is None:
            self._label = label
        return self

    def textualize(self) -> str:
        return resolvable.textualize(self._label or "slot", self.value)

    def unwrap(self) -> str:
        return self.textualize()

    def __repr__(self) -> str:
        return f"slot:{self._label or '<unnamed>'}={self.value!r}"


def fn(arg_types: Sequence[Any], return_type: Any | None = None) -> FnShell:
    """Declare the shell of a shader function."""
    return FnShell(arg_types, return_type)


def procedure(implementation: Implementation) -> GpuFn:
    """Declare a shader function without arguments or result."""
    return FnShell([]).does(implementation)


def slot(default: Any = None) -> Slot:
    return Slot(default)


def _assign_ast(
    implementation: Callable[..., Any],
    compiled: str,
    externals: Callable[[], dict[str, Any]] | None = None,
) -> Callable[..., Any]:
    """Attach a build-time compiled unit and its externals thunk."""
    compile_cache.assign(implementation, CompiledUnit.from_json(compiled))
    if externals is not None:
        setattr(implementation, EXTERNALS_ATTR, externals)
    return implementation


def _assign_ast_to(
    compiled: str, externals: Callable[[], dict[str, Any]] | None = None
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator form of _assign_ast, for decorated function definitions."""

    def decorator(implementation: Callable[..., Any]) -> Callable[..., Any]:
        return _assign_ast(implementation, compiled, externals)

    return decorator
