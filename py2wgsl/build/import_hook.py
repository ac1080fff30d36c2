"""
Import hook applying the call-site rewrite at import time.

Once installed, modules found on ``sys.path`` are rewritten before they are
compiled, so shader closures get their compiled units attached when the
module executes:

    from py2wgsl.build import import_hook

    import_hook.install()
    import my_shaders  # call sites already carry their compiled closures
"""

import ast
import importlib.abc
import importlib.machinery
import importlib.util
import os
import sys
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from types import CodeType, ModuleType

from loguru import logger

from py2wgsl.build.options import BuildOptions
from py2wgsl.build.transformer import transform_tree

# Modules of this package are never rewritten
SKIPPED_PREFIX = "py2wgsl"


class ShaderLoader(importlib.machinery.SourceFileLoader):
    """Source loader rewriting shader call sites before compilation."""

    def __init__(self, fullname: str, path: str, options: BuildOptions):
        super().__init__(fullname, path)
        self.options = options

    def get_code(self, fullname: str) -> CodeType:
        path = self.get_filename(fullname)
        source = importlib.util.decode_source(self.get_data(path))
        if not self.options.should_transform(path, source):
            return super().get_code(fullname)

        # The rewritten code depends on the options, so it bypasses the pyc cache
        tree = ast.parse(source, filename=path)
        tree, _ = transform_tree(tree, source, path)
        return compile(tree, path, "exec", dont_inherit=True)


class ShaderFinder(importlib.abc.MetaPathFinder):
    """Path finder handing source modules over to ShaderLoader."""

    def __init__(self, options: BuildOptions):
        self.options = options

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None,
        target: ModuleType | None = None,
    ) -> importlib.machinery.ModuleSpec | None:
        if fullname == SKIPPED_PREFIX or fullname.startswith(f"{SKIPPED_PREFIX}."):
            return None
        spec = importlib.machinery.PathFinder.find_spec(fullname, path, target)
        if spec is None or spec.origin is None:
            return None
        if not isinstance(spec.loader, importlib.machinery.SourceFileLoader):
            return None
        spec.loader = ShaderLoader(fullname, spec.origin, self.options)
        return spec


_finder: ShaderFinder | None = None


def install(options: BuildOptions | None = None) -> ShaderFinder:
    """Install the import hook, replacing a previously installed one.

    Args:
        options: Build options, defaults to rewriting modules importing py2wgsl

    Returns:
        The installed finder
    """
    global _finder
    uninstall()
    _finder = ShaderFinder(options or BuildOptions())
    sys.meta_path.insert(0, _finder)
    logger.debug("Installed py2wgsl import hook")
    return _finder


def uninstall() -> None:
    global _finder
    if _finder is not None and _finder in sys.meta_path:
        sys.meta_path.remove(_finder)
        logger.debug("Removed py2wgsl import hook")
    _finder = None


@contextmanager
def installed(options: BuildOptions | None = None) -> Iterator[ShaderFinder]:
    """Keep the import hook installed for the duration of a block."""
    finder = install(options)
    try:
        yield finder
    finally:
        uninstall()


def load_module(file_path: str, options: BuildOptions | None = None) -> ModuleType:
    """Load a Python file as a module, rewriting its shader call sites.

    Args:
        file_path: Path to the Python file
        options: Build options, defaults to rewriting modules importing py2wgsl

    Returns:
        Loaded module

    Raises:
        ImportError: If the file cannot be loaded
    """
    abs_path = os.path.abspath(file_path)
    module_dir = os.path.dirname(abs_path)
    module_name = os.path.splitext(os.path.basename(abs_path))[0]

    # Sibling modules must be importable
    if module_dir not in sys.path:
        sys.path.insert(0, module_dir)

    loader = ShaderLoader(module_name, abs_path, options or BuildOptions())
    spec = importlib.util.spec_from_file_location(module_name, abs_path, loader=loader)
    if spec is None:
        raise ImportError(f"Could not load module from {file_path}")

    module = importlib.util.module_from_spec(spec)
    loader.exec_module(module)
    return module
