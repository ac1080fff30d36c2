"""WGSL standard library namespace.

Shader closures refer to builtins through this module (``std.sin(x)``). The
generator elides the ``std.`` prefix because every member exists in WGSL's
global scope. The functions below are host implementations, so the same
closures can also run on the CPU.
"""

from typing import Any

import numpy as np

from py2wgsl.data import WgslVector


def _data(value: Any) -> Any:
    return value.data if isinstance(value, WgslVector) else value


def _wrap(result: Any, like: Any) -> Any:
    if isinstance(like, WgslVector):
        return WgslVector(result, like.data.dtype)
    return np.asarray(result).item()


def _unary(func: Any) -> Any:
    def apply(value: Any) -> Any:
        return _wrap(func(_data(value)), value)

    apply.__name__ = func.__name__
    return apply


sin = _unary(np.sin)
cos = _unary(np.cos)
tan = _unary(np.tan)
asin = _unary(np.arcsin)
acos = _unary(np.arccos)
atan = _unary(np.arctan)
exp = _unary(np.exp)
exp2 = _unary(np.exp2)
log = _unary(np.log)
log2 = _unary(np.log2)
sqrt = _unary(np.sqrt)
abs = _unary(np.abs)  # noqa: A001
floor = _unary(np.floor)
ceil = _unary(np.ceil)
round = _unary(np.round)  # noqa: A001
sign = _unary(np.sign)
trunc = _unary(np.trunc)


def fract(value: Any) -> Any:
    data = _data(value)
    return _wrap(data - np.floor(data), value)


def inverseSqrt(value: Any) -> Any:  # noqa: N802
    return _wrap(1.0 / np.sqrt(_data(value)), value)


def atan2(y: Any, x: Any) -> Any:
    return _wrap(np.arctan2(_data(y), _data(x)), y)


def pow(base: Any, exponent: Any) -> Any:  # noqa: A001
    return _wrap(np.power(_data(base), _data(exponent)), base)


def min(a: Any, b: Any) -> Any:  # noqa: A001
    return _wrap(np.minimum(_data(a), _data(b)), a)


def max(a: Any, b: Any) -> Any:  # noqa: A001
    return _wrap(np.maximum(_data(a), _data(b)), a)


def clamp(value: Any, low: Any, high: Any) -> Any:
    return _wrap(np.clip(_data(value), _data(low), _data(high)), value)


def mix(a: Any, b: Any, t: Any) -> Any:
    a_data, b_data = _data(a), _data(b)
    return _wrap(a_data + (b_data - a_data) * _data(t), a)


def step(edge: Any, value: Any) -> Any:
    return _wrap(np.where(_data(value) < _data(edge), 0.0, 1.0), value)


def smoothstep(low: Any, high: Any, value: Any) -> Any:
    t = np.clip((_data(value) - _data(low)) / (_data(high) - _data(low)), 0.0, 1.0)
    return _wrap(t * t * (3.0 - 2.0 * t), value)


def dot(a: WgslVector, b: WgslVector) -> float:
    return float(np.dot(a.data, b.data))


def cross(a: WgslVector, b: WgslVector) -> WgslVector:
    return WgslVector(np.cross(a.data, b.data), a.data.dtype)


def length(value: Any) -> float:
    return float(np.linalg.norm(_data(value)))


def distance(a: Any, b: Any) -> float:
    return float(np.linalg.norm(np.subtract(_data(a), _data(b))))


def normalize(value: WgslVector) -> WgslVector:
    return WgslVector(value.data / np.linalg.norm(value.data), value.data.dtype)


def select(false_value: Any, true_value: Any, condition: bool) -> Any:
    return true_value if condition else false_value
