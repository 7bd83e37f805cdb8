"""Abstract interface for frame storage allocators."""

import inspect
from abc import ABC, abstractmethod
from typing import Any


class FrameAllocator(ABC):
    """Abstract base class for allocators that provide generator frame storage.

    Two class-level traits decide how the engine uses an allocator type:

    - ``is_always_equal``: every instance can free what any other instance
      allocated, so no instance needs to be remembered per frame.
    - ``alignment``: power-of-two alignment of the blocks the allocator hands
      out; stored allocator instances are placed at this alignment after the
      frame's own storage.
    """

    alignment: int = 8
    is_always_equal: bool = False

    @abstractmethod
    def allocate(self, size: int) -> Any:
        """Obtain a block of at least ``size`` bytes.

        Args:
            size: Number of bytes requested

        Returns:
            An opaque block handed back to ``deallocate()``
        """
        pass

    @abstractmethod
    def deallocate(self, block: Any, size: int) -> None:
        """Release a block previously returned by ``allocate()``.

        Args:
            block: Block returned by ``allocate()``
            size: The size that was requested for the block
        """
        pass

    @classmethod
    def is_default_constructible(cls) -> bool:
        """Whether the allocator type can be built without arguments."""
        if cls.__init__ is object.__init__:
            return True
        try:
            signature = inspect.signature(cls)
        except (TypeError, ValueError):
            return False
        for parameter in signature.parameters.values():
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                continue
            if parameter.default is parameter.empty:
                return False
        return True


class AllocatorArg:
    """Tag marking that the next positional argument is a frame allocator."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "allocator_arg"


allocator_arg = AllocatorArg()
