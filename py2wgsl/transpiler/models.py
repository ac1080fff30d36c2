"""
Data models shared by the two transpiler stages.

This module contains the scope frames used while analyzing a closure, the
CompiledUnit produced by the analyzer, and the signature descriptors consumed
by the WGSL generator.
"""

import json
import weakref
from dataclasses import dataclass, field
from typing import Any

from py2wgsl.transpiler.errors import InvalidShapeError
from py2wgsl.transpiler.ir import Block, node_from_dict, node_to_dict


class ScopeFrame:
    """A lexical scope holding the names declared in it.

    The parent is held through a weak reference: a frame only looks names up
    through its parent and never owns it.

    Attributes:
        declared: Names declared directly in this frame
    """

    def __init__(
        self, declared: list[str] | None = None, parent: "ScopeFrame | None" = None
    ):
        self.declared: set[str] = set(declared or ())
        self._parent = weakref.ref(parent) if parent is not None else None

    @property
    def parent(self) -> "ScopeFrame | None":
        return self._parent() if self._parent is not None else None

    def declare(self, name: str) -> None:
        self.declared.add(name)

    def is_declared(self, name: str) -> bool:
        """Check whether a name is visible from this frame."""
        frame: ScopeFrame | None = self
        while frame is not None:
            if name in frame.declared:
                return True
            frame = frame.parent
        return False


@dataclass(frozen=True)
class CompiledUnit:
    """Result of analyzing a closure.

    Attributes:
        arg_names: Parameter names in declaration order
        body: Structural representation of the body
        external_names: Free names in order of first occurrence, no duplicates
    """

    arg_names: tuple[str, ...]
    body: Block
    external_names: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "argNames": list(self.arg_names),
            "body": node_to_dict(self.body),
            "externalNames": list(self.external_names),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompiledUnit":
        """Rebuild a unit from its wire encoding.

        Raises:
            InvalidShapeError: If a required key is missing or the body is
                not a block
        """
        try:
            arg_names = data["argNames"]
            raw_body = data["body"]
            external_names = data["externalNames"]
        except (KeyError, TypeError) as e:
            raise InvalidShapeError(f"Malformed compiled unit: missing {e}") from e

        body = node_from_dict(raw_body)
        if not isinstance(body, Block):
            raise InvalidShapeError(
                f"Malformed compiled unit: body must be a Block, "
                f"got {type(body).__name__}"
            )
        return cls(
            arg_names=tuple(arg_names),
            body=body,
            external_names=tuple(external_names),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str) -> "CompiledUnit":
        return cls.from_dict(json.loads(text))


@dataclass
class ShellSignature:
    """Caller-supplied types for a generated function.

    Attributes:
        arg_types: One type descriptor per parameter, in order
        return_type: Optional return type descriptor
    """

    arg_types: list[Any] = field(default_factory=list)
    return_type: Any | None = None
