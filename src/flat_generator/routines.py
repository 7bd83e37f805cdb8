"""Explicit state-machine routines.

A ``StateMachine`` is a hand-written routine body: locals that must survive a
suspension live on the instance and ``state`` plays the role of the program
counter. The engine drives it through the same ``send``/``throw``/``close``
calls it uses for native generator objects.
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Optional

from . import ranges
from .protocols import Cursor


class Complete:
    """Marker returned by ``StateMachine.step()`` when the routine is done."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "COMPLETE"


COMPLETE = Complete()


class StateMachine(ABC):
    """Base class for routines written as explicit state machines.

    Subclasses implement ``step()``, which runs from the current ``state`` up
    to the next suspension point and returns the element to produce, an
    ``elements_of(...)`` request to delegate, or ``COMPLETE``.
    """

    initial_state: Any = 0
    # When False, ElementsOf values returned by step() are produced as elements.
    delegates = True

    def __init__(self):
        self.state = self.initial_state
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @abstractmethod
    def step(self) -> Any:
        """Run until the next production, delegation or completion."""
        pass

    def on_error(self, exc: BaseException) -> Any:
        """Handle a fault raised by a delegated sequence.

        The default re-raises ``exc`` at the delegation point. Overrides may
        recover and return a directive just like ``step()``.
        """
        raise exc

    def on_close(self) -> None:
        """Release whatever the routine holds when it is cancelled."""

    def send(self, value: Optional[Any]) -> Any:
        if self._finished:
            raise StopIteration
        return self._run(self.step)

    def throw(self, exc: BaseException) -> Any:
        if self._finished:
            raise exc
        return self._run(self.on_error, exc)

    def close(self) -> None:
        if not self._finished:
            self._finished = True
            self.on_close()

    def _run(self, handler, *args) -> Any:
        try:
            directive = handler(*args)
        except StopIteration as exc:
            self._finished = True
            raise RuntimeError(f"{type(self).__name__} step raised StopIteration") from exc
        except BaseException:
            self._finished = True
            raise
        if directive is COMPLETE:
            self._finished = True
            raise StopIteration
        return directive


class RangeWalker(StateMachine):
    """Re-produces every element of a finite range, in order.

    Elements are produced as they are, ``elements_of`` requests included.

    This is the routine synthesized when ``elements_of`` is given something
    other than a generator.

    Args:
        rng: Range or iterable to walk
    """

    class State(IntEnum):
        START = 0
        WALKING = 1
        DONE = 2

    initial_state = State.START
    delegates = False

    def __init__(self, rng: Any):
        super().__init__()
        self._range = rng
        self._cursor: Optional[Cursor] = None
        self._end: Any = None

    def step(self) -> Any:
        if self.state is self.State.START:
            self._cursor = ranges.begin(self._range)
            self._end = ranges.end(self._range)
            self.state = self.State.WALKING
        else:
            self._cursor.increment()

        if self._cursor == self._end:
            self.state = self.State.DONE
            self._release()
            return COMPLETE
        return self._cursor.dereference()

    def on_close(self) -> None:
        self.state = self.State.DONE
        self._release()

    def _release(self) -> None:
        self._cursor = None
        self._end = None
        self._range = None
