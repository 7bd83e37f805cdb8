"""Explicit-lifetime storage for the element a generator has just produced."""

import copy
from enum import Enum
from typing import Any

from .errors import ContractViolation


class ReferenceKind(str, Enum):
    """How a consumer reads the element held by a sequence."""

    VALUE = "value"
    LVALUE = "lvalue"
    RVALUE = "rvalue"


class ValueSlot:
    """Holds at most one produced element.

    The slot never default-constructs anything: it is either empty or holds
    exactly the object passed to ``construct()``. Lifetime is driven
    explicitly by ``construct()``/``destruct()``.
    """

    __slots__ = ("kind", "_value", "_occupied")

    def __init__(self, kind: ReferenceKind = ReferenceKind.VALUE):
        self.kind = ReferenceKind(kind)
        self._value: Any = None
        self._occupied = False

    @property
    def occupied(self) -> bool:
        return self._occupied

    def construct(self, value: Any) -> Any:
        """Install ``value`` in the slot.

        Args:
            value: Element to hold

        Returns:
            The stored element

        Raises:
            ContractViolation: If the slot already holds an element
        """
        if self._occupied:
            raise ContractViolation("Value slot already holds an element")
        self._value = value
        self._occupied = True
        return value

    def destruct(self) -> None:
        """Tear down the held element."""
        if not self._occupied:
            raise ContractViolation("Value slot is empty")
        self._value = None
        self._occupied = False

    def get(self) -> Any:
        """Read the held element according to the slot's reference kind.

        ``VALUE`` slots hand out a fresh copy on every read, ``LVALUE`` and
        ``RVALUE`` slots hand out the stored object itself. Reading never
        empties the slot.

        Raises:
            ContractViolation: If called outside a construct/destruct window
            TypeError: If a ``VALUE`` slot holds an element that cannot be
                copied
        """
        if not self._occupied:
            raise ContractViolation("Value slot read outside its lifetime")
        if self.kind is ReferenceKind.VALUE:
            return copy.copy(self._value)
        return self._value

    def __repr__(self) -> str:
        state = repr(self._value) if self._occupied else "<empty>"
        return f"ValueSlot({self.kind.value}, {state})"
