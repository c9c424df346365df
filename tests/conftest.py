import pytest
from loguru import logger

from agentlet.core.events import EventBus


@pytest.fixture
def caplog(caplog):
    """Route loguru records into pytest's caplog."""
    handler_id = logger.add(
        caplog.handler,
        format="{message}",
        level=0,
        filter=lambda record: record["level"].no >= caplog.handler.level,
        enqueue=False,
    )
    yield caplog
    logger.remove(handler_id)


class EventRecorder:
    """Collects bus events in emission order."""

    def __init__(self, bus: EventBus):
        self.bus = bus
        self.records = []

    def watch(self, *events):
        for event in events:
            self.bus.on(event, lambda data, event=event: self.records.append((event, data)))
        return self

    def names(self):
        return [event for event, _ in self.records]

    def of(self, event):
        return [data for name, data in self.records if name == event]


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)
