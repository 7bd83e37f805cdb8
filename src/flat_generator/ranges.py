"""Range helpers: cursors over plain iterables and the delegation request."""

from typing import Any, Iterable, Optional

from .allocator_interface import FrameAllocator
from .errors import ContractViolation
from .protocols import Cursor, Range


class IterableEnd:
    """End marker for cursors built over plain Python iterables."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "ITERABLE_END"


ITERABLE_END = IterableEnd()


class IterableCursor:
    """Cursor over any Python iterable.

    The cursor looks one element ahead so that it can compare equal to
    ``ITERABLE_END`` without consuming anything further.
    """

    __slots__ = ("_iterator", "_current", "_exhausted")

    def __init__(self, iterable: Iterable):
        self._iterator = iter(iterable)
        self._current: Any = None
        self._exhausted = False
        self._advance()

    def _advance(self) -> None:
        try:
            self._current = next(self._iterator)
        except StopIteration:
            self._current = None
            self._exhausted = True

    def dereference(self) -> Any:
        if self._exhausted:
            raise ContractViolation("Dereferenced an exhausted cursor")
        return self._current

    def increment(self) -> "IterableCursor":
        if self._exhausted:
            raise ContractViolation("Advanced an exhausted cursor")
        self._advance()
        return self

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IterableEnd):
            return self._exhausted
        return NotImplemented

    __hash__ = None


def begin(rng: Any) -> Cursor:
    """Return a cursor at the start of ``rng``.

    Objects implementing ``begin()``/``end()`` are used as they are; any
    other iterable is walked through an ``IterableCursor``.

    Raises:
        TypeError: If ``rng`` is neither a range nor iterable
    """
    if isinstance(rng, Range):
        return rng.begin()
    try:
        iterator = iter(rng)
    except TypeError:
        raise TypeError(f"{type(rng).__name__} object is not a range") from None
    return IterableCursor(iterator)


def end(rng: Any) -> Any:
    """Return the end marker matching ``begin(rng)``."""
    if isinstance(rng, Range):
        return rng.end()
    return ITERABLE_END


class ElementsOf:
    """A one-shot request to delegate production to ``rng``.

    Yielded from a generator routine, it makes every element of ``rng``
    appear in the delegating sequence in its place. The request only borrows
    ``rng`` until it is consumed at the yield point.

    Args:
        rng: A ``Generator`` or any finite iterable
        allocator: Allocator for the frame that walks a plain iterable
    """

    __slots__ = ("_range", "allocator", "_consumed")

    def __init__(self, rng: Any, allocator: Optional[FrameAllocator] = None):
        if allocator is not None and not isinstance(allocator, FrameAllocator):
            raise TypeError(
                f"allocator must be a FrameAllocator, got {type(allocator).__name__}"
            )
        self._range = rng
        self.allocator = allocator
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    def take(self) -> Any:
        """Hand over the borrowed range. Allowed exactly once."""
        if self._consumed:
            raise ContractViolation("elements_of request was already consumed")
        rng, self._range = self._range, None
        self._consumed = True
        return rng

    def __copy__(self):
        raise TypeError("elements_of requests cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("elements_of requests cannot be copied")

    def __repr__(self) -> str:
        target = "<consumed>" if self._consumed else type(self._range).__name__
        return f"elements_of({target})"


def elements_of(rng: Any, allocator: Optional[FrameAllocator] = None) -> ElementsOf:
    """Build a delegation request for ``yield elements_of(...)``."""
    return ElementsOf(rng, allocator)
