"""
Connectivity Probe.

Background daemon thread feeding the realtime store's connectivity
signal.  Every ``CONNECTIVITY_PROBE_INTERVAL_S`` seconds it opens a TCP
connection to the Supabase host and forwards the outcome to
``LocalRealtimeStore.set_connected``; the store ignores repeats, so only
transitions reach subscribers.

Lifecycle follows the usual daemon-worker pattern: the caller invokes
:meth:`start` / :meth:`stop`, and the loop waits on a stop event between
checks.
"""

from __future__ import annotations

import socket
import threading
from collections.abc import Callable
from typing import Optional
from urllib.parse import urlparse

from presencegate.config import AppConfig
from presencegate.logger import StructuredLogger
from presencegate.realtime_store import LocalRealtimeStore
from presencegate.services.base_service import BaseService

ProbeFn = Callable[[], bool]


def tcp_probe(url: str, timeout: float) -> ProbeFn:
    """Build a probe that reports whether *url*'s host accepts TCP connections.

    An empty or host-less *url* yields a probe that always reports
    ``False``.
    """
    parsed = urlparse(url)
    host = parsed.hostname
    port = parsed.port or (443 if parsed.scheme == "https" else 80)

    def probe() -> bool:
        if not host:
            return False
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            return False

    return probe


class ConnectivityProbe(BaseService):
    """Daemon thread that keeps the store's connectivity signal current.

    Parameters
    ----------
    store:
        Store whose connectivity signal is driven.
    config:
        Provides the Supabase URL and probe timings.
    logger:
        Structured JSON logger.
    probe:
        Zero-argument reachability check; defaults to :func:`tcp_probe`
        against ``SUPABASE_URL``.
    """

    def __init__(
        self,
        store: LocalRealtimeStore,
        config: AppConfig,
        logger: StructuredLogger,
        probe: Optional[ProbeFn] = None,
    ) -> None:
        super().__init__(logger)
        self._store: LocalRealtimeStore = store
        self._interval_s: float = config.CONNECTIVITY_PROBE_INTERVAL_S
        self._probe: ProbeFn = probe or tcp_probe(
            config.SUPABASE_URL, config.CONNECTIVITY_PROBE_TIMEOUT_S,
        )
        self._thread: Optional[threading.Thread] = None
        self._stop_event: threading.Event = threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start probing on a daemon thread; no-op when already running."""
        if self._thread is not None and self._thread.is_alive():
            self._logger.debug("Connectivity probe already running.")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="ConnectivityProbe",
            daemon=True,
        )
        self._thread.start()
        self._logger.info("Connectivity probe started.")

    def stop(self) -> None:
        """Signal the probe to stop and wait up to 10 s for it to exit.

        Safe to call when the probe is not running.
        """
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=10.0)

        if self._thread.is_alive():
            self._logger.warning(
                "Connectivity probe thread did not terminate within 10 s."
            )
        else:
            self._logger.info("Connectivity probe stopped.")

        self._thread = None

    @property
    def is_running(self) -> bool:
        """``True`` when the probe thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def check_once(self) -> bool:
        """Probe now and forward the result to the store."""
        reachable = bool(self._probe())
        self._store.set_connected(reachable)
        return reachable

    # ------------------------------------------------------------------
    # Core loop
    # ------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Probe immediately, then every interval until stopped."""
        try:
            while not self._stop_event.is_set():
                try:
                    self.check_once()
                except Exception:
                    self._logger.warning("Connectivity check failed", exc_info=True)
                if self._stop_event.wait(timeout=self._interval_s):
                    break
        except Exception:
            self._logger.error(
                "Connectivity probe thread terminated due to unhandled exception.",
                exc_info=True,
            )
