"""Tests for value_slot module."""

import weakref

import pytest

from flat_generator.errors import ContractViolation
from flat_generator.value_slot import ReferenceKind, ValueSlot


class Payload:
    """Element type that counts how often it is copied."""

    copies = 0

    def __init__(self, label: str = "payload"):
        self.label = label

    def __copy__(self):
        Payload.copies += 1
        return Payload(self.label)


def test_value_slot_starts_empty():
    """Test that a new slot holds nothing."""
    slot = ValueSlot()
    assert not slot.occupied
    assert slot.kind is ReferenceKind.VALUE


def test_construct_and_get_by_value():
    """Test that by-value reads hand out a fresh copy each time."""
    Payload.copies = 0
    original = Payload("a")
    slot = ValueSlot(ReferenceKind.VALUE)
    slot.construct(original)

    first = slot.get()
    second = slot.get()

    assert first is not original
    assert second is not first
    assert first.label == "a"
    assert Payload.copies == 2
    assert slot.occupied


def test_get_by_reference_returns_stored_object():
    """Test that lvalue and rvalue reads return the stored object itself."""
    for kind in (ReferenceKind.LVALUE, ReferenceKind.RVALUE):
        Payload.copies = 0
        original = Payload()
        slot = ValueSlot(kind)
        slot.construct(original)

        assert slot.get() is original
        assert slot.get() is original
        assert Payload.copies == 0


def test_kind_accepts_plain_strings():
    """Test that reference kinds can be given by name."""
    assert ValueSlot("lvalue").kind is ReferenceKind.LVALUE


def test_get_outside_lifetime():
    """Test that reading an empty slot is a contract violation."""
    slot = ValueSlot()
    with pytest.raises(ContractViolation, match="outside its lifetime"):
        slot.get()

    slot.construct(1)
    slot.destruct()
    with pytest.raises(ContractViolation, match="outside its lifetime"):
        slot.get()


def test_construct_twice():
    """Test that constructing over a held element is rejected."""
    slot = ValueSlot()
    slot.construct(1)
    with pytest.raises(ContractViolation, match="already holds"):
        slot.construct(2)


def test_destruct_empty_slot():
    """Test that destructing an empty slot is rejected."""
    with pytest.raises(ContractViolation, match="empty"):
        ValueSlot().destruct()


def test_destruct_releases_element():
    """Test that the slot drops its reference on destruct."""
    element = Payload()
    ref = weakref.ref(element)
    slot = ValueSlot(ReferenceKind.LVALUE)
    slot.construct(element)
    del element

    assert ref() is not None
    slot.destruct()
    assert ref() is None
    assert not slot.occupied
