"""The public lazy-sequence type and the ``@generator`` decorator."""

import functools
import inspect
import logging
import struct
from typing import Any, Callable, Optional, Tuple, Type

from .allocator_interface import AllocatorArg, FrameAllocator
from .allocators import AllocationPolicy, DefaultAllocator, allocation_policy
from .errors import ContractViolation
from .protocols import SequenceTraits
from .routines import RangeWalker, StateMachine
from .state import Frame
from .value_slot import ReferenceKind

logger = logging.getLogger(__name__)

FRAME_HEADER_SIZE = 128
POINTER_SIZE = struct.calcsize("P")


def estimate_frame_size(routine: Any) -> int:
    """Bytes of frame storage to request for a routine.

    The estimate grows with the number of locals and the evaluation stack
    depth of the routine's code object.
    """
    code = getattr(routine, "__code__", None)
    if code is None:
        return FRAME_HEADER_SIZE
    return FRAME_HEADER_SIZE + (code.co_nlocals + code.co_stacksize) * POINTER_SIZE


class Sentinel:
    """Stateless end marker; iterators compare equal to it once exhausted."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "SENTINEL"


SENTINEL = Sentinel()


class GeneratorIterator:
    """Single-pass cursor over a generator's frame.

    The iterator does not own the frame. It always reads the root's value
    slot and always resumes the frame the root reports as active, so it
    keeps working while the generator delegates to nested sequences.
    """

    __slots__ = ("_frame", "_handle", "_consumed", "traits")

    def __init__(
        self,
        frame: Optional[Frame] = None,
        traits: Optional[SequenceTraits] = None,
        handle: Optional["Generator"] = None,
    ):
        self._frame = frame
        # Keeps the owning handle alive for `for x in routine()` loops.
        self._handle = handle
        self._consumed = False
        self.traits = traits or SequenceTraits()

    @property
    def reference(self) -> ReferenceKind:
        return self.traits.reference

    @property
    def value_type(self) -> Optional[type]:
        return self.traits.value_type

    def at_end(self) -> bool:
        return self._frame is None or self._frame.done

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Sentinel):
            return self.at_end()
        return NotImplemented

    __hash__ = None

    def increment(self) -> "GeneratorIterator":
        """Consume the current element and resume the chain.

        Raises:
            ContractViolation: If the sequence has already completed
        """
        if self.at_end():
            raise ContractViolation("Advanced a generator iterator past its end")
        root = self._frame.state
        root.value.destruct()
        self._consumed = False
        root.resume()
        return self

    def dereference(self) -> Any:
        """Read the current element without consuming it."""
        if self.at_end():
            raise ContractViolation("Dereferenced a generator iterator at its end")
        return self._frame.state.value.get()

    def __iter__(self) -> "GeneratorIterator":
        return self

    def __next__(self) -> Any:
        if self._consumed and not self.at_end():
            self.increment()
        if self.at_end():
            raise StopIteration
        self._consumed = True
        return self.dereference()

    def __copy__(self):
        raise TypeError("Generator iterators are single-pass and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("Generator iterators are single-pass and cannot be copied")


class Generator:
    """A lazily produced, single-pass sequence.

    A handle owns at most one frame. Handles are moved, never copied: ``move()``
    hands the frame to a new handle and leaves this one empty. Closing the
    handle (explicitly, on ``with`` exit or when it is garbage collected)
    cancels an unfinished sequence, unwinding every delegated frame innermost
    first.
    """

    enable_view = True

    def __init__(self):
        self._frame: Optional[Frame] = None
        self._started = False
        self.traits = SequenceTraits()

    @classmethod
    def _create(
        cls,
        body_factory: Callable[[], Any],
        traits: SequenceTraits,
        policy: AllocationPolicy,
        allocator: Optional[FrameAllocator],
        frame_size: int,
        name: str,
    ) -> "Generator":
        storage = policy.allocate(frame_size, allocator)
        try:
            body = body_factory()
        except BaseException:
            policy.deallocate(storage)
            raise
        handle = cls()
        handle._frame = Frame(body, policy, storage, traits.reference, name)
        handle.traits = traits
        logger.debug(f"Created frame for {name} ({storage.size} bytes)")
        return handle

    @classmethod
    def from_routine(
        cls,
        body: Any,
        traits: Optional[SequenceTraits] = None,
        allocator: Optional[FrameAllocator] = None,
    ) -> "Generator":
        """Wrap an already built routine body in a generator handle.

        Args:
            body: A ``StateMachine`` instance or a native generator object
                that has not been started
            traits: Declared element types of the sequence
            allocator: Allocator for the frame storage

        Returns:
            A generator that has not been started
        """
        if not isinstance(body, StateMachine) and not inspect.isgenerator(body):
            raise TypeError(f"{type(body).__name__} is not a generator routine body")
        if inspect.isgenerator(body) and inspect.getgeneratorstate(body) != inspect.GEN_CREATED:
            raise ContractViolation("Routine body was already started")
        policy = allocation_policy(type(allocator) if allocator is not None else DefaultAllocator)
        return cls._create(
            lambda: body,
            traits or SequenceTraits(),
            policy,
            allocator,
            FRAME_HEADER_SIZE,
            type(body).__qualname__,
        )

    @property
    def frame(self) -> Optional[Frame]:
        return self._frame

    @property
    def started(self) -> bool:
        return self._started

    def begin(self) -> GeneratorIterator:
        """Start the sequence and return an iterator at its first element.

        Raises:
            ContractViolation: If the sequence was already started
        """
        if self._frame is not None:
            if self._started:
                raise ContractViolation("begin() called twice on the same generator")
            self._started = True
            self._frame.state.resume()
        return GeneratorIterator(self._frame, self.traits, self)

    def end(self) -> Sentinel:
        return SENTINEL

    def __iter__(self) -> GeneratorIterator:
        return self.begin()

    def move(self) -> "Generator":
        """Transfer the frame to a new handle, leaving this one empty."""
        other = type(self)()
        other.swap(self)
        return other

    def swap(self, other: "Generator") -> None:
        self._frame, other._frame = other._frame, self._frame
        self._started, other._started = other._started, self._started
        self.traits, other.traits = other.traits, self.traits

    def assign(self, other: "Generator") -> "Generator":
        """Move-assign: take ``other``'s frame and release the one held now."""
        incoming = other.move()
        self.swap(incoming)
        incoming.close()
        return self

    def close(self) -> None:
        """Release the frame, cancelling the sequence if it is unfinished."""
        frame, self._frame = self._frame, None
        started, self._started = self._started, False
        if frame is None:
            return
        if started and not frame.done and frame.state.value.occupied:
            frame.state.value.destruct()
        frame.destroy()

    def __enter__(self) -> "Generator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __del__(self):
        if getattr(self, "_frame", None) is not None:
            self.close()

    def __copy__(self):
        raise TypeError("Generators cannot be copied; use move()")

    def __deepcopy__(self, memo):
        raise TypeError("Generators cannot be copied; use move()")

    def __repr__(self) -> str:
        if self._frame is None:
            return "<Generator empty>"
        return f"<Generator {self._frame.name} started={self._started} done={self._frame.done}>"


def walk_range(rng: Any, allocator: Optional[FrameAllocator] = None) -> Generator:
    """Build a generator that re-produces every element of ``rng``."""
    return Generator.from_routine(RangeWalker(rng), allocator=allocator)


def _find_allocator(args: Tuple[Any, ...]) -> Optional[FrameAllocator]:
    # The tag may follow a bound ``self``/``cls``.
    for index in (0, 1):
        if len(args) > index and isinstance(args[index], AllocatorArg):
            if len(args) <= index + 1:
                raise TypeError("allocator_arg must be followed by an allocator")
            allocator = args[index + 1]
            if not isinstance(allocator, FrameAllocator):
                raise TypeError(
                    f"Expected a FrameAllocator after allocator_arg, got {type(allocator).__name__}"
                )
            return allocator
    return None


def _select_policy(
    args: Tuple[Any, ...], allocator_type: Optional[Type[FrameAllocator]]
) -> Tuple[AllocationPolicy, Optional[FrameAllocator]]:
    allocator = _find_allocator(args)
    if allocator is not None:
        if allocator_type is not None and not isinstance(allocator, allocator_type):
            raise TypeError(
                f"Generator declared with {allocator_type.__name__} "
                f"was given {type(allocator).__name__}"
            )
        return allocation_policy(type(allocator)), allocator
    return allocation_policy(allocator_type or DefaultAllocator), None


def _check_routine(routine: Any) -> None:
    if inspect.isasyncgenfunction(routine) or inspect.iscoroutinefunction(routine):
        raise TypeError(
            f"{routine.__qualname__} is asynchronous; generator routines may only "
            "suspend to produce or delegate"
        )
    if inspect.isclass(routine) and issubclass(routine, StateMachine):
        return
    if not inspect.isgeneratorfunction(routine):
        raise TypeError(f"{getattr(routine, '__qualname__', routine)!r} is not a generator function")


def generator(
    routine: Optional[Callable] = None,
    *,
    element_type: Optional[type] = None,
    reference: ReferenceKind = ReferenceKind.RVALUE,
    value_type: Optional[type] = None,
    allocator: Optional[Type[FrameAllocator]] = None,
):
    """Turn a generator function (or ``StateMachine`` subclass) into a routine
    returning ``Generator`` handles.

    Calling the decorated routine allocates the frame and builds the body but
    runs none of it; the body starts on the first ``begin()``. Bodies yield
    elements to produce them and ``elements_of(...)`` to delegate.

    Args:
        routine: Generator function or ``StateMachine`` subclass
        element_type: Type of the elements references refer to
        reference: How consumers read elements. The default hands out the
            produced object itself; ``ReferenceKind.VALUE`` copies it on
            every read and requires copyable elements
        value_type: Type of an owned copy of an element
        allocator: Allocator type for frame storage; stateful types require an
            instance passed as ``routine(allocator_arg, instance, ...)``

    Example:
        >>> @generator
        ... def countdown(n):
        ...     yield n
        ...     if n > 0:
        ...         yield elements_of(countdown(n - 1))
    """
    if allocator is not None and not (
        inspect.isclass(allocator) and issubclass(allocator, FrameAllocator)
    ):
        raise TypeError("allocator must be a FrameAllocator subclass")
    traits = SequenceTraits.resolve(element_type, reference, value_type)

    def decorate(func: Callable) -> Callable[..., Generator]:
        _check_routine(func)
        frame_size = estimate_frame_size(func)
        name = func.__qualname__

        @functools.wraps(func, updated=())
        def make(*args, **kwargs) -> Generator:
            policy, instance = _select_policy(args, allocator)
            return Generator._create(
                lambda: func(*args, **kwargs),
                traits,
                policy,
                instance,
                frame_size,
                name,
            )

        make.traits = traits
        return make

    if routine is not None:
        return decorate(routine)
    return decorate
