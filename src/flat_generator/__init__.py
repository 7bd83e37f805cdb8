"""Flat Generator - lazy sequences with O(1) delegation to nested producers."""

__version__ = "0.1.0"

from .allocator_interface import AllocatorArg, FrameAllocator, allocator_arg
from .allocators import (
    DefaultAllocator,
    FrameStorage,
    MemoryPoolAllocator,
    PoolBlock,
    StatelessAllocatorPolicy,
    StoredAllocatorPolicy,
    aligned_allocation_size,
    allocation_policy,
)
from .errors import ContractViolation
from .generator import SENTINEL, Generator, GeneratorIterator, Sentinel, generator, walk_range
from .protocols import Range, SequenceTraits, View, is_range, is_view
from .ranges import ElementsOf, elements_of
from .routines import COMPLETE, RangeWalker, StateMachine
from .value_slot import ReferenceKind, ValueSlot

__all__ = [
    # Sequences
    "Generator",
    "GeneratorIterator",
    "Sentinel",
    "SENTINEL",
    "generator",
    "walk_range",
    # Delegation
    "ElementsOf",
    "elements_of",
    # Routines
    "StateMachine",
    "RangeWalker",
    "COMPLETE",
    # Values and traits
    "ValueSlot",
    "ReferenceKind",
    "SequenceTraits",
    # Allocators
    "FrameAllocator",
    "AllocatorArg",
    "allocator_arg",
    "DefaultAllocator",
    "MemoryPoolAllocator",
    "FrameStorage",
    "PoolBlock",
    "StoredAllocatorPolicy",
    "StatelessAllocatorPolicy",
    "aligned_allocation_size",
    "allocation_policy",
    # Concepts
    "Range",
    "View",
    "is_range",
    "is_view",
    # Errors
    "ContractViolation",
]
