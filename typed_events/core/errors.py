class DispatchInvariantError(RuntimeError):
    """
    A payload reached a handler whose event name declares a different type.

    This is a programming error, not a recoverable condition: the dispatcher
    never catches it, and callers should not either.
    """


class EventKeyCollisionError(TypeError):
    """Raised in strict mode when one key is declared with two payload types."""


class UnknownContextError(LookupError):
    """subscribe() named an execution context the dispatcher does not know."""
