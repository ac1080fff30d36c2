"""Capability protocol for values referenced from shader closures.

An external value takes part in code generation through capabilities it
declares: ``textualize()`` is required, ``call_with``, ``unwrap`` and
``set_label`` are optional. Values without any capability are opaque
literals and are stringified.
"""

from typing import Any, Protocol, runtime_checkable

from py2wgsl.transpiler.errors import MalformedResolvableError, TranspilerError


@runtime_checkable
class Resolvable(Protocol):
    """A value that knows how it renders in WGSL when referenced by name."""

    def textualize(self) -> str: ...


@runtime_checkable
class CallableResolvable(Protocol):
    """A resolvable that lowers its own call sites."""

    def call_with(self, arg_texts: list[str]) -> str: ...


@runtime_checkable
class Unwrappable(Protocol):
    """A resolvable exposing the ``.value`` escape."""

    def unwrap(self) -> str: ...


@runtime_checkable
class Labelable(Protocol):
    """A resolvable accepting a debug label (the name it was referenced by)."""

    def set_label(self, label: str) -> Any: ...


def is_resolvable(value: Any) -> bool:
    # Classes define these methods too; only instances are resolvables
    return not isinstance(value, type) and isinstance(value, Resolvable)


def supports_call(value: Any) -> bool:
    return is_resolvable(value) and isinstance(value, CallableResolvable)


def supports_unwrap(value: Any) -> bool:
    return is_resolvable(value) and isinstance(value, Unwrappable)


def supports_label(value: Any) -> bool:
    return is_resolvable(value) and isinstance(value, Labelable)


def _checked_text(name: str, text: Any) -> str:
    if not isinstance(text, str):
        raise MalformedResolvableError(
            name, f"expected str, got {type(text).__name__}"
        )
    return text


def textualize(name: str, value: Any) -> str:
    """Render an external value as WGSL text.

    Args:
        name: The external name the value is bound to
        value: A resolvable or a plain literal

    Returns:
        The WGSL text for the value

    Raises:
        MalformedResolvableError: If the resolvable's own textualize fails
    """
    if is_resolvable(value):
        try:
            return _checked_text(name, value.textualize())
        except TranspilerError:
            raise
        except Exception as e:
            raise MalformedResolvableError(name, str(e)) from e
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def call_with(name: str, value: Any, arg_texts: list[str]) -> str:
    """Delegate the lowering of a whole call to a resolvable.

    Raises:
        MalformedResolvableError: If the resolvable's call_with fails
    """
    try:
        return _checked_text(name, value.call_with(list(arg_texts)))
    except TranspilerError:
        raise
    except Exception as e:
        raise MalformedResolvableError(name, str(e)) from e


def unwrap(name: str, value: Any) -> str:
    """Apply the ``.value`` escape of a resolvable.

    Raises:
        MalformedResolvableError: If the resolvable's unwrap fails
    """
    try:
        return _checked_text(name, value.unwrap())
    except TranspilerError:
        raise
    except Exception as e:
        raise MalformedResolvableError(name, str(e)) from e
