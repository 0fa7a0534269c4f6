"""Fan-out of emitted log lines.

Every line printed by a ``WktArchiveLogger`` is also published here so a host
(CLI, HTTP server, tests) can collect engine output without parsing stdout.
"""

from __future__ import annotations

import contextlib
import sys
import traceback
from collections.abc import Callable, Iterator
from dataclasses import dataclass

LogCallback = Callable[["LogRecord"], None]


@dataclass(frozen=True)
class LogRecord:
    level_name: str  # DEBUG | VERBOSE | INFO | WARNING | ERROR
    plain: str  # uncolored "[level] message"
    logger_name: str


class LogBus:
    """Level-keyed subscriber table; the ``None`` key receives every record."""

    def __init__(self) -> None:
        self._subs: dict[str | None, list[LogCallback]] = {}

    def subscribe(self, level_name: str, cb: LogCallback) -> None:
        self._subs.setdefault(level_name, []).append(cb)

    def subscribe_all(self, cb: LogCallback) -> None:
        self._subs.setdefault(None, []).append(cb)

    def unsubscribe(self, level_name: str, cb: LogCallback) -> None:
        self._drop(level_name, cb)

    def unsubscribe_all(self, cb: LogCallback) -> None:
        self._drop(None, cb)

    def _drop(self, key: str | None, cb: LogCallback) -> None:
        subs = self._subs.get(key, [])
        if cb in subs:
            subs.remove(cb)
        if not subs:
            self._subs.pop(key, None)

    @contextlib.contextmanager
    def capture(self, level_name: str | None = None) -> Iterator[list[LogRecord]]:
        """Collect records published inside the block (all levels by default)."""
        records: list[LogRecord] = []
        self._subs.setdefault(level_name, []).append(records.append)
        try:
            yield records
        finally:
            self._drop(level_name, records.append)

    def publish(self, record: LogRecord) -> None:
        targets = list(self._subs.get(None, [])) + list(self._subs.get(record.level_name, []))
        for cb in targets:
            try:
                cb(record)
            except Exception:
                # The core logger would recurse into publish.
                with contextlib.suppress(Exception):
                    sys.stderr.write("LogBus subscriber failed\n" + traceback.format_exc())

    def clear(self) -> None:
        self._subs.clear()


_LOG_BUS = LogBus()


def get_log_bus() -> LogBus:
    return _LOG_BUS
