"""WGSL data type descriptors.

Each descriptor is a resolvable that renders as its WGSL type name, so it can
be used both as a function signature type and as an external referenced from
a shader closure (``vec3f(1.0, 0.0, 0.0)``). Calling a descriptor on the host
constructs a host value: Python scalars for scalar types, numpy-backed
vectors and matrices otherwise.
"""

from typing import Any

import numpy as np


class WgslVector:
    """Host value of a WGSL vector with component swizzling."""

    _COMPONENTS = "xyzw"

    def __init__(self, data: Any, dtype: type = np.float32):
        self.data = np.asarray(data, dtype=dtype)

    @property
    def size(self) -> int:
        return len(self.data)

    def __getattr__(self, name: str) -> Any:
        """Handle swizzle patterns only"""
        if name.startswith("_") or not 1 <= len(name) <= 4:
            raise AttributeError(name)
        try:
            indices = [self._COMPONENTS.index(c) for c in name]
        except ValueError:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            ) from None
        if max(indices) >= self.size:
            raise AttributeError(f"Component out of range for vec{self.size}: {name}")
        if len(indices) == 1:
            return self.data[indices[0]].item()
        return WgslVector(self.data[indices], self.data.dtype)

    def _apply(self, other: Any, op: Any) -> "WgslVector":
        other_data = other.data if isinstance(other, WgslVector) else other
        return WgslVector(op(self.data, other_data), self.data.dtype)

    def __add__(self, other: Any) -> "WgslVector":
        return self._apply(other, np.add)

    def __radd__(self, other: Any) -> "WgslVector":
        return self._apply(other, np.add)

    def __sub__(self, other: Any) -> "WgslVector":
        return self._apply(other, np.subtract)

    def __rsub__(self, other: Any) -> "WgslVector":
        return WgslVector(np.subtract(other, self.data), self.data.dtype)

    def __mul__(self, other: Any) -> "WgslVector":
        return self._apply(other, np.multiply)

    def __rmul__(self, other: Any) -> "WgslVector":
        return self._apply(other, np.multiply)

    def __truediv__(self, other: Any) -> "WgslVector":
        return self._apply(other, np.divide)

    def __neg__(self) -> "WgslVector":
        return WgslVector(-self.data, self.data.dtype)

    def __getitem__(self, index: int) -> Any:
        return self.data[index].item()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WgslVector):
            return False
        return np.array_equal(self.data, other.data)

    def __repr__(self) -> str:
        return f"vec{self.size}({', '.join(str(v) for v in self.data.tolist())})"


class WgslType:
    """A WGSL type usable as a signature descriptor and as an external.

    Attributes:
        name: The WGSL spelling of the type
    """

    def __init__(self, name: str, host: Any | None = None):
        self.name = name
        self._host = host

    def textualize(self) -> str:
        return self.name

    def __call__(self, *args: Any) -> Any:
        if self._host is None:
            raise TypeError(f"{self.name} cannot be constructed on the host")
        return self._host(*args)

    def __repr__(self) -> str:
        return self.name


def _vector_host(size: int, dtype: type) -> Any:
    def construct(*args: Any) -> WgslVector:
        if not args:
            return WgslVector(np.zeros(size), dtype)
        parts: list[Any] = []
        for arg in args:
            if isinstance(arg, WgslVector):
                parts.extend(arg.data.tolist())
            else:
                parts.append(arg)
        if len(parts) == 1:
            parts = parts * size
        if len(parts) != size:
            raise ValueError(f"vec{size} needs {size} components, got {len(parts)}")
        return WgslVector(parts, dtype)

    return construct


def _matrix_host(columns: int, rows: int) -> Any:
    def construct(*args: Any) -> np.ndarray:
        if not args:
            return np.zeros((columns, rows), dtype=np.float32)
        values: list[Any] = []
        for arg in args:
            if isinstance(arg, WgslVector):
                values.extend(arg.data.tolist())
            else:
                values.append(arg)
        return np.asarray(values, dtype=np.float32).reshape(columns, rows)

    return construct


# Scalars
f32 = WgslType("f32", float)
f16 = WgslType("f16", float)
i32 = WgslType("i32", int)
u32 = WgslType("u32", lambda value=0: int(value) & 0xFFFFFFFF)
bool_ = WgslType("bool", bool)

# Vectors
vec2f = WgslType("vec2f", _vector_host(2, np.float32))
vec3f = WgslType("vec3f", _vector_host(3, np.float32))
vec4f = WgslType("vec4f", _vector_host(4, np.float32))
vec2i = WgslType("vec2i", _vector_host(2, np.int32))
vec3i = WgslType("vec3i", _vector_host(3, np.int32))
vec4i = WgslType("vec4i", _vector_host(4, np.int32))
vec2u = WgslType("vec2u", _vector_host(2, np.uint32))
vec3u = WgslType("vec3u", _vector_host(3, np.uint32))
vec4u = WgslType("vec4u", _vector_host(4, np.uint32))

# Matrices
mat2x2f = WgslType("mat2x2f", _matrix_host(2, 2))
mat3x3f = WgslType("mat3x3f", _matrix_host(3, 3))
mat4x4f = WgslType("mat4x4f", _matrix_host(4, 4))

# Return type of functions without a result; renders as nothing
Void = WgslType("")


def array_of(element: WgslType, count: int | None = None) -> WgslType:
    """Fixed-size (or runtime-sized when count is None) WGSL array type."""
    if count is None:
        return WgslType(f"array<{element.textualize()}>")
    return WgslType(f"array<{element.textualize()}, {count}>")
