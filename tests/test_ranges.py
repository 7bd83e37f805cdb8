"""Tests for ranges and protocols modules."""

import copy

import pytest

from flat_generator import (
    ContractViolation,
    DefaultAllocator,
    ElementsOf,
    Generator,
    ReferenceKind,
    SENTINEL,
    SequenceTraits,
    elements_of,
    generator,
    is_range,
    is_view,
)
from flat_generator.ranges import ITERABLE_END, IterableCursor, begin, end


class Countdown:
    """Minimal range with its own cursor and end marker."""

    class Cursor:
        def __init__(self, n):
            self.n = n

        def dereference(self):
            return self.n

        def increment(self):
            self.n -= 1
            return self

        def __eq__(self, other):
            return other == "liftoff" and self.n == 0

    def __init__(self, start):
        self.start = start

    def begin(self):
        return Countdown.Cursor(self.start)

    def end(self):
        return "liftoff"


def test_iterable_cursor_walks_list():
    """Test walking a list with a cursor."""
    cursor = IterableCursor(["a", "b"])
    assert cursor != ITERABLE_END
    assert cursor.dereference() == "a"
    assert cursor.dereference() == "a"

    cursor.increment()
    assert cursor.dereference() == "b"

    cursor.increment()
    assert cursor == ITERABLE_END
    with pytest.raises(ContractViolation, match="exhausted"):
        cursor.dereference()
    with pytest.raises(ContractViolation, match="exhausted"):
        cursor.increment()


def test_begin_and_end_of_plain_iterables():
    """Test that any iterable can be walked through begin()/end()."""
    cursor = begin(range(2))
    assert end(range(2)) is ITERABLE_END
    values = []
    while cursor != end(range(2)):
        values.append(cursor.dereference())
        cursor.increment()
    assert values == [0, 1]

    assert begin("") == ITERABLE_END


def test_begin_and_end_of_custom_range():
    """Test that objects with begin()/end() are used as they are."""
    rng = Countdown(3)
    assert is_range(rng)
    assert not is_view(rng)

    cursor = begin(rng)
    assert isinstance(cursor, Countdown.Cursor)
    assert end(rng) == "liftoff"


def test_begin_of_generator():
    """Test that begin() on a generator starts it."""

    @generator
    def make():
        yield "x"

    gen = make()
    cursor = begin(gen)
    assert gen.started
    assert cursor.dereference() == "x"
    assert end(gen) is SENTINEL
    gen.close()


def test_begin_rejects_non_iterables():
    """Test that non-iterable objects are not ranges."""
    with pytest.raises(TypeError, match="int object is not a range"):
        begin(5)


def test_elements_of_custom_range():
    """Test delegating to an object with its own cursor protocol."""

    @generator
    def launch():
        yield elements_of(Countdown(3))
        yield "liftoff"

    assert list(launch()) == [3, 2, 1, "liftoff"]


def test_elements_of_request_is_taken_once():
    """Test that a request hands its range over exactly once."""
    values = [1, 2]
    request = elements_of(values)
    assert isinstance(request, ElementsOf)
    assert not request.consumed
    assert repr(request) == "elements_of(list)"

    assert request.take() is values
    assert request.consumed
    assert repr(request) == "elements_of(<consumed>)"
    with pytest.raises(ContractViolation, match="already consumed"):
        request.take()


def test_elements_of_request_cannot_be_copied():
    """Test that delegation requests are not copyable."""
    request = elements_of(Generator())
    with pytest.raises(TypeError, match="cannot be copied"):
        copy.copy(request)
    with pytest.raises(TypeError, match="cannot be copied"):
        copy.deepcopy(request)


def test_elements_of_rejects_invalid_allocator():
    """Test that the allocator of a request must be a FrameAllocator."""
    assert elements_of([], DefaultAllocator()).allocator == DefaultAllocator()
    with pytest.raises(TypeError, match="must be a FrameAllocator"):
        elements_of([], allocator="pool")


def test_sequence_traits_defaults():
    """Test default traits of an undeclared sequence."""
    traits = SequenceTraits()
    assert traits.element_type is None
    assert traits.reference is ReferenceKind.RVALUE
    assert traits.value_type is None


def test_sequence_traits_resolve():
    """Test filling in the value type from the element type."""
    traits = SequenceTraits.resolve(str, "lvalue")
    assert traits.reference is ReferenceKind.LVALUE
    assert traits.value_type is str

    explicit = SequenceTraits.resolve(bytes, ReferenceKind.RVALUE, bytearray)
    assert explicit.element_type is bytes
    assert explicit.value_type is bytearray

    with pytest.raises(ValueError):
        SequenceTraits.resolve(str, "pointer")
