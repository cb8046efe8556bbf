import threading
import types
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Generic, Optional, Union, get_args, get_origin, is_typeddict

from typed_events.core.config import Settings, get_settings
from typed_events.core.contexts import ExecutionContext, MainQueueContext
from typed_events.core.errors import (
    DispatchInvariantError,
    EventKeyCollisionError,
    UnknownContextError,
)
from typed_events.core.identity import EventName, Notification, T
from typed_events.core.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[Notification[T]], None]

# None runs the handler inline on the publisher's call stack
ContextSelector = Union[str, ExecutionContext, None]


@dataclass(eq=False)
class _Registration(Generic[T]):
    name: EventName[T]
    handler: Handler
    context: Optional[ExecutionContext]


class Subscription:
    """
    Handle returned by subscribe(). The dispatcher keeps its handler alive
    until cancel() is called; nothing is released automatically.
    """

    def __init__(self, dispatcher: "EventDispatcher", registration: _Registration):
        self._dispatcher = dispatcher
        self._registration = registration

    @property
    def name(self) -> EventName:
        return self._registration.name

    @property
    def active(self) -> bool:
        return self._dispatcher._is_registered(self._registration)

    def cancel(self) -> bool:
        return self._dispatcher.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


def _runtime_types(tp: Any) -> Optional[tuple]:
    """
    Classes usable with isinstance() for a declared payload type, or None
    when the annotation cannot be checked at runtime (Any, Literal,
    TypedDict, protocols not marked @runtime_checkable, ...).
    """
    if tp is Any or is_typeddict(tp):
        return None
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        checks = []
        for arg in get_args(tp):
            sub = _runtime_types(arg)
            if sub is None:
                return None
            checks.extend(sub)
        return tuple(checks)
    target = origin if origin is not None else tp
    if not isinstance(target, type):
        return None
    if getattr(target, "_is_protocol", False) and not getattr(target, "_is_runtime_protocol", False):
        return None
    return (target,)


class EventDispatcher:
    """
    Registry of typed handlers keyed by event name.

    publish() hands the payload to each handler through the call stack,
    so nested or concurrent publishes on the same key never share a
    payload slot. The only per-key state touched during a publish is the
    in-flight counter, present while at least one publish for the key is
    running.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._handlers: dict[str, list[_Registration]] = {}
        self._in_flight: dict[str, int] = {}
        self._contexts: dict[str, ExecutionContext] = {}
        self._lock = threading.RLock()

        self.main = MainQueueContext(self.settings.main_context_name)
        self.register_context(self.main)

    # ── Execution contexts ────────────────────────────────────────────────────

    def register_context(self, context: ExecutionContext) -> ExecutionContext:
        with self._lock:
            self._contexts[context.name] = context
        return context

    def get_context(self, name: str) -> ExecutionContext:
        with self._lock:
            context = self._contexts.get(name)
        if context is None:
            raise UnknownContextError(f"No execution context named {name!r}")
        return context

    def _resolve_context(self, context: ContextSelector) -> Optional[ExecutionContext]:
        if isinstance(context, str):
            return self.get_context(context)
        return context

    # ── Registration ──────────────────────────────────────────────────────────

    def subscribe(
        self,
        name: EventName[T],
        handler: Callable[[Notification[T]], None],
        context: ContextSelector = None,
    ) -> Subscription:
        """
        Register `handler` for `name`. Handlers run in registration order;
        those with a context are submitted to it instead of run inline.
        """
        target = self._resolve_context(context)
        registration = _Registration(name=name, handler=handler, context=target)

        with self._lock:
            registrations = self._handlers.setdefault(name.key, [])
            self._check_key_types(name, registrations)
            registrations.append(registration)
            count = len(registrations)

        logger.debug(
            "event_subscribed",
            key=name.key,
            context=target.name if target is not None else None,
            subscribers=count,
        )
        return Subscription(self, registration)

    def _check_key_types(self, name: EventName, registrations: list[_Registration]) -> None:
        declared = name.payload_type
        if declared is None:
            return
        for existing in registrations:
            other = existing.name.payload_type
            if other is None or other == declared:
                continue
            if self.settings.strict_key_types:
                raise EventKeyCollisionError(
                    f"Event key {name.key!r} is already bound to {other!r}, "
                    f"cannot also bind it to {declared!r}"
                )
            logger.warning(
                "event_key_type_collision",
                key=name.key,
                registered=repr(other),
                declared=repr(declared),
            )
            return

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription. Returns False if it was already gone."""
        registration = subscription._registration
        key = registration.name.key
        with self._lock:
            registrations = self._handlers.get(key)
            if not registrations or registration not in registrations:
                return False
            registrations.remove(registration)
            if not registrations:
                del self._handlers[key]
        logger.debug("event_unsubscribed", key=key)
        return True

    def _is_registered(self, registration: _Registration) -> bool:
        with self._lock:
            return registration in self._handlers.get(registration.name.key, ())

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    # ── Dispatch ──────────────────────────────────────────────────────────────

    def publish(self, name: EventName[T], payload: T) -> None:
        """
        Deliver `payload` to every handler currently registered for `name`.

        Inline handlers run before publish() returns and their exceptions
        propagate to the caller. Deferred handlers are only scheduled.
        """
        key = name.key
        with self._lock:
            depth = self._in_flight.get(key, 0) + 1
            self._in_flight[key] = depth
            registrations = list(self._handlers.get(key, ()))

        if depth > 1:
            logger.debug("reentrant_publish", key=key, depth=depth)

        try:
            for registration in registrations:
                self._deliver(registration, payload)
        finally:
            with self._lock:
                remaining = self._in_flight[key] - 1
                if remaining:
                    self._in_flight[key] = remaining
                else:
                    del self._in_flight[key]

        logger.debug("event_published", key=key, handlers=len(registrations))

    def _deliver(self, registration: _Registration, payload: Any) -> None:
        notification = Notification(
            name=registration.name,
            payload=self._recover(registration.name, payload),
        )
        if registration.context is None:
            registration.handler(notification)
        else:
            registration.context.submit(partial(registration.handler, notification))

    def _recover(self, name: EventName, payload: Any) -> Any:
        declared = name.payload_type
        if declared is None or not self.settings.check_payload_types:
            return payload

        allowed = _runtime_types(declared)
        if allowed is None or isinstance(payload, allowed):
            return payload

        logger.critical(
            "dispatch_payload_type_mismatch",
            key=name.key,
            expected=repr(declared),
            actual=type(payload).__name__,
        )
        raise DispatchInvariantError(
            f"Payload for event {name.key!r} is {type(payload).__name__}, "
            f"handler expects {declared!r}"
        )

    # ── Introspection ─────────────────────────────────────────────────────────

    def subscriber_count(self, name: EventName) -> int:
        with self._lock:
            return len(self._handlers.get(name.key, ()))

    def has_subscribers(self, name: EventName) -> bool:
        return self.subscriber_count(name) > 0

    def is_in_flight(self, name: EventName) -> bool:
        with self._lock:
            return name.key in self._in_flight

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {key: len(regs) for key, regs in self._handlers.items()}


# Process-wide default instance; build separate EventDispatchers for isolation
event_bus = EventDispatcher()
