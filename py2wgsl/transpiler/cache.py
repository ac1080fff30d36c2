"""Identity-keyed cache of compiled closures.

Entries are keyed by the closure object itself through weak references, so a
cached unit never keeps its closure alive. Structurally identical closures
are still distinct entries.
"""

import threading
import weakref
from collections.abc import Callable
from typing import Any

from loguru import logger

from py2wgsl.transpiler.models import CompiledUnit


class CompileCache:
    """Compile-once store from closure identity to CompiledUnit.

    A single lock serializes first-use compilation, so concurrent callers of
    get_or_compile for the same closure all observe the same unit.
    """

    def __init__(self) -> None:
        self._units: "weakref.WeakKeyDictionary[Any, CompiledUnit]" = (
            weakref.WeakKeyDictionary()
        )
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, closure: Any) -> bool:
        return self.peek(closure) is not None

    def peek(self, closure: Any) -> CompiledUnit | None:
        try:
            return self._units.get(closure)
        except TypeError:
            # Not weak-referenceable, never cached
            return None

    def assign(self, closure: Any, unit: CompiledUnit) -> None:
        """Store a unit compiled elsewhere (e.g. by a build adapter)."""
        with self._lock:
            self._units[closure] = unit

    def get_or_compile(
        self, closure: Any, compile: Callable[[Any], CompiledUnit]
    ) -> CompiledUnit:
        """Return the cached unit, compiling it on first use.

        Args:
            closure: The closure to look up
            compile: Function producing the unit on a cache miss

        Returns:
            The unit for this closure identity
        """
        unit = self.peek(closure)
        if unit is not None:
            return unit
        with self._lock:
            unit = self._units.get(closure)
            if unit is None:
                logger.debug(f"Compiling {closure!r} on first use")
                unit = compile(closure)
                self._units[closure] = unit
            return unit

    def clear(self) -> None:
        with self._lock:
            self._units.clear()


compile_cache = CompileCache()
