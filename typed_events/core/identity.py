from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class EventName(Generic[T]):
    """
    Names an event and binds it to the payload type it may carry.

    Declare one per logical event, usually as a module constant:

        GREETING = EventName("greeting", str)      # EventName[str]
        COUNTER: EventName[int] = EventName("counter")

    Equality and hashing only look at `key`. Two names with the same key
    but different payload types compare equal and share handlers, so keys
    should be unique across the program.
    """
    key: str
    # Runtime witness of T. Optional, used for the delivery-time type check.
    payload_type: Optional[type[T]] = field(default=None, compare=False)

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Notification(Generic[T]):
    """What a handler receives: the event name plus its typed payload."""
    name: EventName[T]
    payload: T
