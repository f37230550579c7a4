"""Tests for EventBus."""

from presencegate.models.enums import EventType
from presencegate.models.events import DomainEvent
from presencegate.services.event_bus import EventBus
from tests.conftest import Recorder, make_logger


class TestEventBus:
    """Tests for subscription and dispatch."""

    def setup_method(self):
        self.logger = make_logger()
        self.bus = EventBus(logger=self.logger)

    def test_dispatch_reaches_all_subscribers_in_order(self):
        calls = []
        self.bus.subscribe(lambda e: calls.append("first"))
        self.bus.subscribe(lambda e: calls.append("second"))

        self.bus.dispatch(DomainEvent(type=EventType.AUTH_START))

        assert calls == ["first", "second"]

    def test_typed_subscription_filters(self):
        recorder = Recorder()
        self.bus.subscribe(recorder, event_type=EventType.CONNECTIVITY_ONLINE)

        self.bus.dispatch(DomainEvent(type=EventType.AUTH_START))
        self.bus.dispatch(DomainEvent(type=EventType.CONNECTIVITY_ONLINE))

        assert recorder.names == ["CONNECTIVITY_ONLINE"]

    def test_unsubscribe_is_idempotent(self):
        recorder = Recorder()
        unsubscribe = self.bus.subscribe(recorder)

        unsubscribe()
        unsubscribe()
        self.bus.dispatch(DomainEvent(type=EventType.AUTH_START))

        assert recorder.events == []
        assert self.bus.handler_count == 0

    def test_failing_handler_does_not_stop_others(self):
        def broken(event):
            raise RuntimeError("boom")

        recorder = Recorder()
        self.bus.subscribe(broken)
        self.bus.subscribe(recorder)

        event = self.bus.dispatch(DomainEvent(type=EventType.AUTH_START))

        assert recorder.events == [event]
        self.logger.error.assert_called_once()
