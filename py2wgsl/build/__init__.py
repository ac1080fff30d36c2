"""Build-time adapters: source rewriting, the import hook and their options."""

from py2wgsl.build.aliases import AliasContext
from py2wgsl.build.import_hook import install, installed, load_module, uninstall
from py2wgsl.build.options import BuildOptions
from py2wgsl.build.transformer import (
    ShaderCallTransformer,
    transform_source,
    transform_tree,
)

__all__ = [
    "AliasContext",
    "BuildOptions",
    "ShaderCallTransformer",
    "install",
    "installed",
    "load_module",
    "transform_source",
    "transform_tree",
    "uninstall",
]
