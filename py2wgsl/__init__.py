from py2wgsl import data, gpu, std
from py2wgsl.transpiler import generate_wgsl, transpile_fn

__version__ = "0.1.0"


__all__ = [
    "data",
    "gpu",
    "std",
    "generate_wgsl",
    "transpile_fn",
]
