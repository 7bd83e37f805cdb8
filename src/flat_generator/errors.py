"""Error types raised by the generator engine."""


class ContractViolation(AssertionError):
    """A precondition of the engine was broken by the caller.

    Contract violations are programming errors (calling ``begin()`` twice,
    advancing a finished iterator, reading an empty value slot). They are not
    part of the recoverable error taxonomy and the engine never catches them.
    """
