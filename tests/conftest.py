"""Fixtures and configuration for pytest."""

import importlib
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from py2wgsl.build import import_hook
from py2wgsl.transpiler import compile_cache


@pytest.fixture(autouse=True)
def clean_compile_cache():
    """Start every test with an empty compile cache."""
    compile_cache.clear()
    yield
    compile_cache.clear()


@pytest.fixture
def write_module(tmp_path: Path) -> Callable[[str, str], Path]:
    """Fixture writing a Python module into a temporary directory."""

    def write(name: str, code: str) -> Path:
        path = tmp_path / f"{name}.py"
        path.write_text(textwrap.dedent(code))
        importlib.invalidate_caches()
        return path

    return write


@pytest.fixture
def isolated_imports(tmp_path: Path):
    """Make tmp_path importable and undo any import side effects afterwards."""
    saved_path = list(sys.path)
    sys.path.insert(0, str(tmp_path))
    yield tmp_path
    import_hook.uninstall()
    sys.path[:] = saved_path
    for name, module in list(sys.modules.items()):
        if str(getattr(module, "__file__", None) or "").startswith(str(tmp_path)):
            del sys.modules[name]
