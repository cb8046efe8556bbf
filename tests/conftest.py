import pytest

from typed_events.core.config import Settings, get_settings
from typed_events.core.event_bus import EventDispatcher


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher(Settings())


class Recorder:
    """Handler that remembers every payload it was given."""

    def __init__(self, label: str = "", log: list | None = None):
        self.label = label
        self.payloads = []
        self.log = log if log is not None else []

    def __call__(self, notification) -> None:
        self.payloads.append(notification.payload)
        self.log.append((self.label, notification.payload))


@pytest.fixture
def recorder_factory():
    shared: list = []

    def make(label: str = "") -> Recorder:
        return Recorder(label, shared)

    make.log = shared
    return make
