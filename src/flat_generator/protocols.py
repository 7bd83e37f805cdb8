"""Protocol definitions for the sequence concepts the engine satisfies."""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from .value_slot import ReferenceKind


@runtime_checkable
class Cursor(Protocol):
    """Single-pass position inside a range."""

    def dereference(self) -> Any:
        """Read the element at the current position."""
        ...

    def increment(self) -> Any:
        """Move to the next position."""
        ...


@runtime_checkable
class Range(Protocol):
    """Anything exposing a ``begin()``/``end()`` cursor and sentinel pair."""

    def begin(self) -> Cursor:
        """Return a cursor at the first element."""
        ...

    def end(self) -> Any:
        """Return the marker a cursor compares equal to when exhausted."""
        ...


@runtime_checkable
class View(Range, Protocol):
    """A non-owning range that opts in with ``enable_view = True``."""

    enable_view: bool


def is_range(obj: Any) -> bool:
    return isinstance(obj, Range)


def is_view(obj: Any) -> bool:
    return isinstance(obj, View) and getattr(obj, "enable_view", False) is True


@dataclass(frozen=True)
class SequenceTraits:
    """Declared element types of a sequence.

    ``element_type`` is what a reference refers to, ``reference`` is how a
    consumer reads it and ``value_type`` is what an owned copy of an element
    looks like. ``value_type`` falls back to ``element_type``, so a sequence of
    ``LVALUE`` references to ``str`` has ``str`` as its by-value type. Elements
    are handed out as ``RVALUE`` references unless declared otherwise.
    """

    element_type: Optional[type] = None
    reference: ReferenceKind = ReferenceKind.RVALUE
    value_type: Optional[type] = None

    @classmethod
    def resolve(
        cls,
        element_type: Optional[type] = None,
        reference: ReferenceKind = ReferenceKind.RVALUE,
        value_type: Optional[type] = None,
    ) -> "SequenceTraits":
        """Build traits, filling the value type in from the element type."""
        return cls(
            element_type=element_type,
            reference=ReferenceKind(reference),
            value_type=value_type if value_type is not None else element_type,
        )
