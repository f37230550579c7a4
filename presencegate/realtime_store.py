"""
Local Realtime Store.

SQLite-backed implementation of the ``RealtimeStore`` protocol.  Values
form a JSON tree addressed by slash-separated paths; every leaf is one
row of ``store_nodes``.  Reads reassemble subtrees, writes flatten them.

Semantics
---------
- ``subscribe_to_value`` delivers the current value immediately, then
  again after every write touching the path, an ancestor or a
  descendant.  A callback that raises is logged and cancelled; the other
  subscribers and the writer are unaffected.
- ``atomic_multi_write`` applies every path in a single SQLite
  transaction: all paths land or none do.
- ``push`` appends a child under a time-ordered unique key.
- ``register_on_disconnect_cleanup`` persists a path that is removed
  when the connection drops (``set_connected(False)``), on ``close()``,
  or at the next startup if the process died while connected.
- ``.info/connected`` is an in-memory boolean driven by
  ``set_connected`` (see ``ConnectivityProbe``).
"""

from __future__ import annotations

import json
import secrets
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Optional

from presencegate.database import DatabaseManager
from presencegate.logger import StructuredLogger
from presencegate.protocols import SERVER_TIMESTAMP, Unsubscribe, ValueCallback

__all__ = ["LocalRealtimeStore", "normalize_path"]


def normalize_path(path: str) -> str:
    """Strip surrounding slashes and reject empty segments.

    Raises
    ------
    ValueError
        If *path* is empty or contains an empty segment.
    """
    cleaned = path.strip().strip("/")
    if not cleaned or any(not segment for segment in cleaned.split("/")):
        raise ValueError(f"Invalid store path: {path!r}")
    return cleaned


def _is_ancestor(ancestor: str, path: str) -> bool:
    return path.startswith(ancestor + "/")


def _related(a: str, b: str) -> bool:
    return a == b or _is_ancestor(a, b) or _is_ancestor(b, a)


class LocalRealtimeStore:
    """Realtime JSON tree persisted in the local SQLite database.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager``; its schema must already contain
        ``store_nodes`` and ``disconnect_cleanups``.
    logger:
        Structured logger.
    connected_path:
        Path of the connectivity signal.
    clock:
        Returns the current time in epoch milliseconds.  Resolves
        ``SERVER_TIMESTAMP`` placeholders and orders push keys.
    """

    def __init__(
        self,
        db: DatabaseManager,
        logger: StructuredLogger,
        connected_path: str = ".info/connected",
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._db: DatabaseManager = db
        self._logger: StructuredLogger = logger
        self._connected_path: str = normalize_path(connected_path)
        self._clock: Callable[[], int] = clock or (lambda: int(time.time() * 1000))

        self._lock: threading.RLock = threading.RLock()
        self._connected: bool = False
        self._subscribers: dict[int, tuple[str, ValueCallback]] = {}
        self._next_token: int = 0
        self._last_push_ms: int = -1
        self._push_counter: int = 0

        # Registrations left by a process that died while connected.
        self._run_disconnect_cleanups(reason="startup")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def read_path(self, path: str) -> object:
        """Return the value at *path*: a leaf, a nested dict, or ``None``."""
        path = normalize_path(path)
        if path == self._connected_path:
            return self.is_connected

        with self._db.write_lock:
            row = self._db.sqlite.execute(
                "SELECT value FROM store_nodes WHERE path = ?", (path,),
            ).fetchone()
            if row is not None:
                return json.loads(row["value"])

            prefix = path + "/"
            rows = self._db.sqlite.execute(
                "SELECT path, value FROM store_nodes "
                "WHERE substr(path, 1, ?) = ? ORDER BY path",
                (len(prefix), prefix),
            ).fetchall()

        if not rows:
            return None

        tree: dict[str, object] = {}
        for row in rows:
            segments = row["path"][len(prefix):].split("/")
            node = tree
            for segment in segments[:-1]:
                child = node.setdefault(segment, {})
                node = child  # type: ignore[assignment]
            node[segments[-1]] = json.loads(row["value"])
        return tree

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe_to_value(self, path: str, callback: ValueCallback) -> Unsubscribe:
        """Deliver the value at *path* now and after every change to it.

        Returns
        -------
        Unsubscribe
            Idempotent callable that removes the subscription.
        """
        path = normalize_path(path)
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (path, callback)

        self._logger.debug("Subscribed to %s (token %d).", path, token)

        def unsubscribe() -> None:
            with self._lock:
                removed = self._subscribers.pop(token, None)
            if removed is not None:
                self._logger.debug("Unsubscribed from %s (token %d).", path, token)

        self._deliver(token, path, callback)
        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def atomic_multi_write(self, values: Mapping[str, object]) -> None:
        """Replace the value at every path in *values* in one transaction.

        A ``None`` value removes the path.

        Raises
        ------
        ValueError
            If a path is invalid, targets the connectivity signal, or
            overlaps another path in the same write.
        """
        normalized: dict[str, object] = {}
        for raw_path, value in values.items():
            path = normalize_path(raw_path)
            if _related(path, self._connected_path):
                raise ValueError(f"{path!r} is read-only.")
            normalized[path] = value

        paths = list(normalized)
        for i, first in enumerate(paths):
            for second in paths[i + 1:]:
                if _related(first, second):
                    raise ValueError(
                        f"Paths {first!r} and {second!r} overlap in one write."
                    )

        now_ms = self._clock()
        with self._db.batch_write():
            conn = self._db.sqlite
            for path, value in normalized.items():
                self._delete_subtree(path)
                for leaf_path, leaf in self._flatten(path, value, now_ms):
                    conn.execute(
                        """
                        INSERT INTO store_nodes (path, value) VALUES (?, ?)
                        ON CONFLICT(path) DO UPDATE SET
                            value = excluded.value,
                            updated_at = CURRENT_TIMESTAMP
                        """,
                        (leaf_path, json.dumps(leaf, ensure_ascii=False)),
                    )

        self._logger.debug("Atomic write committed: %s", ", ".join(paths))
        self._notify(paths)

    def push(self, path: str, value: object) -> str:
        """Append *value* under a new unique child of *path*.

        Returns
        -------
        str
            Full path of the created child.
        """
        child = f"{normalize_path(path)}/{self._next_push_key()}"
        self.atomic_multi_write({child: value})
        return child

    def remove(self, path: str) -> None:
        self.atomic_multi_write({path: None})

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def register_on_disconnect_cleanup(self, path: str) -> None:
        """Remove *path* when the current connection drops."""
        path = normalize_path(path)
        with self._db.write_lock:
            self._db.sqlite.execute(
                "INSERT OR IGNORE INTO disconnect_cleanups (path) VALUES (?)",
                (path,),
            )
            self._db.sqlite.commit()

    def set_connected(self, connected: bool) -> None:
        """Update the connectivity signal.

        Repeated values are ignored.  A drop runs every registered
        on-disconnect cleanup before subscribers hear about it.
        """
        with self._lock:
            if self._connected == connected:
                return
            self._connected = connected

        self._logger.info(
            "Store connectivity changed: %s",
            "connected" if connected else "disconnected",
            extra={"event": "STORE_CONNECTIVITY", "connected": connected},
        )
        if not connected:
            self._run_disconnect_cleanups(reason="disconnect")
        self._notify([self._connected_path])

    def close(self) -> None:
        """Drop the connection and forget every subscriber."""
        self.set_connected(False)
        self._run_disconnect_cleanups(reason="close")
        with self._lock:
            self._subscribers.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _next_push_key(self) -> str:
        with self._lock:
            now_ms = self._clock()
            if now_ms == self._last_push_ms:
                self._push_counter += 1
            else:
                self._last_push_ms = now_ms
                self._push_counter = 0
            counter = self._push_counter
        return f"{now_ms:013d}{counter:04d}{secrets.token_hex(3)}"

    def _flatten(
        self, path: str, value: object, now_ms: int,
    ) -> Iterable[tuple[str, object]]:
        if value == SERVER_TIMESTAMP:
            yield path, now_ms
            return
        if isinstance(value, Mapping):
            for key, child in value.items():
                if child is None:
                    continue
                yield from self._flatten(f"{path}/{normalize_path(str(key))}", child, now_ms)
            return
        if value is not None:
            yield path, value

    def _delete_subtree(self, path: str) -> None:
        """Delete *path*, its descendants, and any leaf rows above it.

        Caller MUST hold an open :meth:`DatabaseManager.batch_write`.
        """
        conn = self._db.sqlite
        prefix = path + "/"
        conn.execute("DELETE FROM store_nodes WHERE path = ?", (path,))
        conn.execute(
            "DELETE FROM store_nodes WHERE substr(path, 1, ?) = ?",
            (len(prefix), prefix),
        )
        segments = path.split("/")
        for depth in range(1, len(segments)):
            conn.execute(
                "DELETE FROM store_nodes WHERE path = ?",
                ("/".join(segments[:depth]),),
            )

    def _run_disconnect_cleanups(self, reason: str) -> None:
        with self._db.batch_write():
            rows = self._db.sqlite.execute(
                "SELECT path FROM disconnect_cleanups ORDER BY registered_at",
            ).fetchall()
            paths = [row["path"] for row in rows]
            for path in paths:
                self._delete_subtree(path)
            self._db.sqlite.execute("DELETE FROM disconnect_cleanups")

        if paths:
            self._logger.info(
                "Ran %d on-disconnect cleanup(s) (%s).", len(paths), reason,
            )
            self._notify(paths)

    def _notify(self, paths: Iterable[str]) -> None:
        changed = list(paths)
        with self._lock:
            affected = [
                (token, sub_path, callback)
                for token, (sub_path, callback) in self._subscribers.items()
                if any(_related(sub_path, path) for path in changed)
            ]
        for token, sub_path, callback in affected:
            self._deliver(token, sub_path, callback)

    def _deliver(self, token: int, path: str, callback: ValueCallback) -> None:
        with self._lock:
            if token not in self._subscribers:
                return
        try:
            callback(self.read_path(path))
        except Exception:
            with self._lock:
                self._subscribers.pop(token, None)
            self._logger.error(
                "Listener on %s raised; subscription cancelled.", path,
                exc_info=True,
            )
