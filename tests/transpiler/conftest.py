"""
Pytest configuration and shared fixtures for transpiler tests.

This module contains fixtures that are shared across multiple test modules.
"""

import pytest

from py2wgsl.data import f32, vec2f, vec3f


class Constant:
    """Minimal resolvable rendering a fixed text."""

    def __init__(self, text: str):
        self.text = text

    def textualize(self) -> str:
        return self.text


class Builtin:
    """Resolvable lowering its own calls, recording its label."""

    def __init__(self, wgsl_name: str):
        self.wgsl_name = wgsl_name
        self.label: str | None = None

    def set_label(self, label: str) -> "Builtin":
        self.label = label
        return self

    def textualize(self) -> str:
        return self.wgsl_name

    def call_with(self, arg_texts: list[str]) -> str:
        return f"{self.wgsl_name}({', '.join(arg_texts)})"


class Uniform:
    """Resolvable with the ``.value`` escape."""

    def __init__(self, name: str):
        self.name = name

    def textualize(self) -> str:
        return f"&{self.name}"

    def unwrap(self) -> str:
        return self.name


class Broken:
    """Resolvable whose text generation fails."""

    def textualize(self) -> str:
        raise RuntimeError("no binding assigned")


@pytest.fixture
def externals():
    """Fixture providing a sample external table."""
    return {
        "c": 1.0,
        "scale": Constant("2.5"),
        "noise": Builtin("perlin"),
        "time": Uniform("u_time"),
        "enabled": True,
        "vec2f": vec2f,
        "vec3f": vec3f,
        "f32": f32,
    }


@pytest.fixture
def broken():
    """Fixture providing a resolvable that fails to render."""
    return Broken()
