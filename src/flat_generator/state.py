"""Producer state, frames and the delegation protocol.

Every generator owns one ``Frame``. Frames that take part in a delegation
chain are linked through their ``ProducerState``: each state knows the root
of its chain and the frame it was delegated from, and the root remembers
which frame is currently active. Resuming the chain always enters the active
frame directly and every completion hands control to exactly one parent, so
the cost of a step does not depend on how deep the chain is.
"""

import logging
from typing import Any, List, Optional

from .allocators import AllocationPolicy, FrameStorage
from .errors import ContractViolation
from .ranges import ElementsOf
from .value_slot import ReferenceKind, ValueSlot

logger = logging.getLogger(__name__)


class ProducerState:
    """Per-frame bookkeeping for production and delegation.

    Attributes:
        frame: The frame this state belongs to
        root: State of the top-most frame of the chain (``self`` when the
            frame is not being delegated to)
        parent: Frame that delegated to this one, if any
        active: On the root only, the frame currently suspended at a yield
        exception_slot: Awaiter of the delegating frame, where a fault
            escaping this frame is recorded
        value: Slot holding the produced element; only the root's is read
    """

    __slots__ = ("frame", "root", "parent", "active", "exception_slot", "value")

    def __init__(self, frame: "Frame", reference: ReferenceKind = ReferenceKind.RVALUE):
        self.frame = frame
        self.root = self
        self.parent: Optional[Frame] = None
        self.active: Frame = frame
        self.exception_slot: Optional[DelegationAwaiter] = None
        self.value = ValueSlot(reference)

    @property
    def is_root(self) -> bool:
        return self.root is self

    def produce(self, value: Any) -> None:
        self.root.value.construct(value)

    def resume(self) -> None:
        """Run the chain until the next production or until it completes.

        Must be called on the root state. A fault escaping the root body
        propagates to the caller and leaves the chain complete.
        """
        frame = self.active
        fault: Optional[BaseException] = None

        while True:
            state = frame.state
            try:
                if fault is None:
                    item = frame.body.send(None)
                else:
                    pending, fault = fault, None
                    item = frame.body.throw(pending)
            except StopIteration:
                pass
            except BaseException as exc:
                if state.is_root:
                    frame.done = True
                    raise
                logger.debug(f"Captured {type(exc).__name__} raised in {frame.name}")
                state.exception_slot.capture(exc)
            else:
                if frame.delegates and isinstance(item, ElementsOf):
                    try:
                        target = frame.begin_delegation(item)
                    except ContractViolation:
                        raise
                    except Exception as exc:
                        fault = exc
                        continue
                    if target is not None:
                        frame = target
                    continue
                state.produce(item)
                return

            frame.done = True
            if state.is_root:
                return
            parent = state.parent
            self.active = parent
            fault = parent.end_delegation()
            frame = parent


class DelegationAwaiter:
    """Owns the delegated generator for the duration of one delegation.

    It is also the error channel of the delegation: a fault escaping the
    delegated chain is recorded here and handed back to the delegating frame
    when it regains control.
    """

    __slots__ = ("generator", "exception")

    def __init__(self, generator):
        self.generator = generator
        self.exception: Optional[BaseException] = None

    def capture(self, exc: BaseException) -> None:
        self.exception = exc

    def finish(self) -> Optional[BaseException]:
        """Release the delegated generator and return the captured fault."""
        generator, self.generator = self.generator, None
        if generator is not None:
            generator.close()
        exc, self.exception = self.exception, None
        return exc


class Frame:
    """A suspended routine body together with its storage and state."""

    __slots__ = ("body", "state", "storage", "policy", "awaiter", "done", "name", "delegates")

    def __init__(
        self,
        body: Any,
        policy: AllocationPolicy,
        storage: FrameStorage,
        reference: ReferenceKind = ReferenceKind.RVALUE,
        name: str = "<generator>",
    ):
        self.body = body
        self.policy = policy
        self.storage: Optional[FrameStorage] = storage
        self.state = ProducerState(self, reference)
        self.awaiter: Optional[DelegationAwaiter] = None
        self.done = False
        self.name = name
        # Bodies that re-produce foreign elements yield them verbatim.
        self.delegates = getattr(body, "delegates", True)

    def begin_delegation(self, request: ElementsOf) -> Optional["Frame"]:
        """Take over ``request`` and link its frame into this chain.

        Returns:
            The frame to resume next, or None when the delegated sequence is
            empty and this frame should simply continue

        Raises:
            ContractViolation: If the request was consumed or the delegated
                generator was already started
        """
        from .generator import Generator, walk_range

        rng = request.take()
        if isinstance(rng, Generator):
            if rng.started:
                raise ContractViolation("Cannot delegate to a generator that was already started")
            nested = rng.move()
        else:
            nested = walk_range(rng, request.allocator)

        awaiter = DelegationAwaiter(nested)
        target = nested.frame
        if target is None:
            awaiter.finish()
            return None

        root = self.state.root
        target_state = target.state
        target_state.root = root
        target_state.parent = self
        target_state.exception_slot = awaiter
        root.active = target
        self.awaiter = awaiter
        logger.debug(f"{self.name} delegating to {target.name}")
        return target

    def end_delegation(self) -> Optional[BaseException]:
        awaiter, self.awaiter = self.awaiter, None
        logger.debug(f"{self.name} regained control")
        return awaiter.finish()

    def destroy(self) -> None:
        """Destroy this frame and every frame it is delegating to.

        Frames are released innermost first, each body closed (running its
        ``finally`` blocks) before its storage is freed, and only then the
        frame that delegated to it. A cleanup that raises does not stop the
        unwinding; the first such exception is re-raised once every frame
        has been released.
        """
        chain: List[Frame] = []
        frame: Optional[Frame] = self
        while frame is not None:
            chain.append(frame)
            awaiter = frame.awaiter
            if awaiter is None or awaiter.generator is None:
                frame = None
            else:
                frame = awaiter.generator.frame

        error: Optional[BaseException] = None
        for frame in reversed(chain):
            try:
                frame._release()
            except BaseException as exc:
                if error is None:
                    error = exc
        if error is not None:
            raise error

    def _release(self) -> None:
        if self.storage is None:
            return
        awaiter, self.awaiter = self.awaiter, None
        try:
            if awaiter is not None:
                awaiter.finish()
        finally:
            try:
                self.body.close()
            finally:
                self.done = True
                storage, self.storage = self.storage, None
                self.policy.deallocate(storage)
                self.body = None

    def __repr__(self) -> str:
        status = "done" if self.done else "suspended"
        return f"<Frame {self.name} {status}>"
