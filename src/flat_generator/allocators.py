"""Frame storage allocation policies and pyarrow-backed allocators."""

import logging
import sys
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Type, Union

import pyarrow as pa

from .allocator_interface import FrameAllocator

logger = logging.getLogger(__name__)


def aligned_allocation_size(size: int, alignment: int) -> int:
    """Round ``size`` up to the next multiple of ``alignment``."""
    if alignment <= 0 or alignment & (alignment - 1):
        raise ValueError(f"alignment must be a positive power of two, got {alignment}")
    return (size + alignment - 1) & ~(alignment - 1)


def allocator_storage_size(allocator: FrameAllocator) -> int:
    """Bytes needed to keep an allocator instance alongside a frame."""
    return sys.getsizeof(allocator)


@dataclass
class FrameStorage:
    """Storage obtained for one frame."""

    block: Any
    size: int
    allocator: Optional[FrameAllocator] = None


class StoredAllocatorPolicy:
    """Policy for stateful or unequal allocators.

    The allocator instance travels with the frame storage and is the one used
    to free it. The requested size covers the frame padded to the allocator's
    alignment plus room for the allocator itself.
    """

    stores_allocator = True

    def __init__(self, allocator_type: Type[FrameAllocator]):
        self.allocator_type = allocator_type

    def padded_frame_size(self, frame_size: int, allocator: FrameAllocator) -> int:
        offset = aligned_allocation_size(frame_size, allocator.alignment)
        return offset + allocator_storage_size(allocator)

    def allocate(
        self, frame_size: int, allocator: Optional[FrameAllocator] = None
    ) -> FrameStorage:
        """Allocate frame storage with an explicit allocator instance.

        Raises:
            TypeError: If no allocator instance was supplied
        """
        if allocator is None:
            raise TypeError(
                f"{self.allocator_type.__name__} is stateful; pass an instance "
                "with allocator_arg"
            )
        size = self.padded_frame_size(frame_size, allocator)
        block = allocator.allocate(size)
        logger.debug(f"Allocated {size} bytes of frame storage with {allocator!r}")
        return FrameStorage(block=block, size=size, allocator=allocator)

    def deallocate(self, storage: FrameStorage) -> None:
        """Free the block through the stored allocator.

        The stored allocator is moved to a local reference first and dropped
        only after the block itself is gone.
        """
        local_allocator, storage.allocator = storage.allocator, None
        block, storage.block = storage.block, None
        local_allocator.deallocate(block, storage.size)
        del block
        logger.debug(f"Released {storage.size} bytes of frame storage")


class StatelessAllocatorPolicy:
    """Policy for always-equal, default-constructible allocators.

    Nothing is stored with the frame: a fresh allocator is built for every
    allocate and deallocate call.
    """

    stores_allocator = False

    def __init__(self, allocator_type: Type[FrameAllocator]):
        self.allocator_type = allocator_type

    def allocate(
        self, frame_size: int, allocator: Optional[FrameAllocator] = None
    ) -> FrameStorage:
        block = self.allocator_type().allocate(frame_size)
        logger.debug(
            f"Allocated {frame_size} bytes of frame storage with {self.allocator_type.__name__}"
        )
        return FrameStorage(block=block, size=frame_size)

    def deallocate(self, storage: FrameStorage) -> None:
        block = storage.block
        storage.block = None
        self.allocator_type().deallocate(block, storage.size)
        logger.debug(f"Released {storage.size} bytes of frame storage")


AllocationPolicy = Union[StoredAllocatorPolicy, StatelessAllocatorPolicy]


def allocator_needs_to_be_stored(allocator_type: Type[FrameAllocator]) -> bool:
    return not allocator_type.is_always_equal or not allocator_type.is_default_constructible()


@lru_cache(maxsize=None)
def allocation_policy(allocator_type: Type[FrameAllocator]) -> AllocationPolicy:
    """Pick the storage policy for an allocator type.

    The decision depends only on the type's traits, so it is made once per
    type and cached.
    """
    if allocator_needs_to_be_stored(allocator_type):
        return StoredAllocatorPolicy(allocator_type)
    return StatelessAllocatorPolicy(allocator_type)


@dataclass
class PoolBlock:
    """A buffer drawn from a pyarrow memory pool, together with that pool.

    A pyarrow ``Buffer`` does not keep its memory pool alive, and freeing it
    after a proxy pool is gone writes into freed memory. The block holds the
    pool until the buffer has been released.
    """

    buffer: Optional[pa.Buffer]
    pool: pa.MemoryPool

    @property
    def size(self) -> int:
        return self.buffer.size if self.buffer is not None else 0

    def release(self, size: int) -> None:
        """Drop the buffer, returning its bytes to the pool.

        Raises:
            ValueError: If the block was already released or is released with
                another size than it was allocated with
        """
        if self.buffer is None:
            raise ValueError("Block was already released")
        if self.buffer.size != size:
            raise ValueError(f"Block of {self.buffer.size} bytes released as {size} bytes")
        self.buffer = None


class DefaultAllocator(FrameAllocator):
    """Allocates frame storage from pyarrow's default memory pool.

    ``deallocate`` drops the last reference to the buffer, so the bytes are
    back in the pool when it returns.
    """

    alignment = 64
    is_always_equal = True

    def allocate(self, size: int) -> PoolBlock:
        pool = pa.default_memory_pool()
        return PoolBlock(pa.allocate_buffer(size, memory_pool=pool), pool)

    def deallocate(self, block: PoolBlock, size: int) -> None:
        block.release(size)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, DefaultAllocator)

    def __hash__(self) -> int:
        return hash(DefaultAllocator)


class MemoryPoolAllocator(FrameAllocator):
    """Allocates frame storage from a specific pyarrow memory pool.

    Instances bound to different pools are not interchangeable, so the
    instance is stored with every frame it allocates. Every block also holds
    the pool, and ``deallocate`` frees the buffer before returning, so a pool
    only referenced by its frames outlives all of their buffers.

    Args:
        pool: pyarrow memory pool to draw from
    """

    alignment = 64
    is_always_equal = False

    def __init__(self, pool: pa.MemoryPool):
        self.pool = pool

    def allocate(self, size: int) -> PoolBlock:
        return PoolBlock(pa.allocate_buffer(size, memory_pool=self.pool), self.pool)

    def deallocate(self, block: PoolBlock, size: int) -> None:
        block.release(size)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MemoryPoolAllocator) and other.pool is self.pool

    def __hash__(self) -> int:
        return id(self.pool)

    def __repr__(self) -> str:
        return f"MemoryPoolAllocator({self.pool.backend_name})"
