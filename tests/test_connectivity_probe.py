"""Tests for ConnectivityProbe."""

import threading
from unittest.mock import MagicMock

from presencegate.realtime_store import LocalRealtimeStore
from presencegate.services.connectivity_probe import ConnectivityProbe, tcp_probe
from tests.conftest import make_config, make_logger


class TestConnectivityProbe:
    """Tests for forwarding probe results to the store."""

    def setup_method(self):
        self.store = MagicMock(spec=LocalRealtimeStore)
        self.results = [True]
        self.probe = ConnectivityProbe(
            store=self.store,
            config=make_config(CONNECTIVITY_PROBE_INTERVAL_S=0.01),
            logger=make_logger(),
            probe=lambda: self.results[-1],
        )

    def test_check_once_forwards_result(self):
        assert self.probe.check_once() is True
        self.store.set_connected.assert_called_once_with(True)

        self.results.append(False)

        assert self.probe.check_once() is False
        self.store.set_connected.assert_called_with(False)

    def test_start_and_stop_lifecycle(self):
        checked = threading.Event()
        self.store.set_connected.side_effect = lambda value: checked.set()

        self.probe.start()
        self.probe.start()
        try:
            assert checked.wait(timeout=5)
            assert self.probe.is_running
        finally:
            self.probe.stop()

        assert not self.probe.is_running

    def test_stop_without_start_is_noop(self):
        self.probe.stop()

        assert not self.probe.is_running

    def test_failing_probe_keeps_thread_alive(self):
        calls = threading.Event()

        def flaky():
            if calls.is_set():
                return True
            calls.set()
            raise OSError("resolver down")

        probe = ConnectivityProbe(
            store=self.store,
            config=make_config(CONNECTIVITY_PROBE_INTERVAL_S=0.01),
            logger=make_logger(),
            probe=flaky,
        )
        reported = threading.Event()
        self.store.set_connected.side_effect = lambda value: reported.set()

        probe.start()
        try:
            assert reported.wait(timeout=5)
        finally:
            probe.stop()


class TestTcpProbe:
    """Tests for URL handling in the default probe."""

    def test_empty_url_is_unreachable(self):
        assert tcp_probe("", timeout=0.1)() is False

    def test_closed_port_is_unreachable(self):
        assert tcp_probe("http://127.0.0.1:1", timeout=0.5)() is False
