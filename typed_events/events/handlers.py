from typed_events.core.event_bus import ContextSelector, EventDispatcher, Subscription, event_bus
from typed_events.core.identity import EventName, Notification
from typed_events.core.logging import get_logger


logger = get_logger()


def log_notification(notification: Notification) -> None:
    """
    Payload-agnostic audit handler. Accepts any Notification, so it can be
    attached to names of every payload type.
    """
    logger.info(
        "notification_delivered",
        key=notification.name.key,
        payload_type=type(notification.payload).__name__,
        payload=repr(notification.payload),
    )


def attach_audit_log(
    *names: EventName,
    dispatcher: EventDispatcher = event_bus,
    context: ContextSelector = None,
) -> list[Subscription]:
    """Subscribe log_notification to each name. Cancel the returned handles to detach."""
    return [dispatcher.subscribe(name, log_notification, context=context) for name in names]
