"""Diagnostics envelope and observed-operation helper."""

from __future__ import annotations

import time
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from wktarchive.core.events import get_event_bus
from wktarchive.core.logging import get_logger

_logger = get_logger(__name__)


def build_envelope(
    *,
    event: str,
    component: str,
    operation: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    """Build the canonical diagnostics envelope.

    Schema:
        {
          "event": "<string>",
          "component": "<string>",
          "operation": "<string>",
          "timestamp": "<iso8601 utc>",
          "data": { ... }
        }

    Timestamp is emitted in UTC with a trailing 'Z'.
    """
    ts = datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")
    return {
        "event": event,
        "component": component,
        "operation": operation,
        "timestamp": ts,
        "data": data,
    }


def _short_traceback(*, max_lines: int = 20) -> str:
    tb_lines = traceback.format_exc().strip().splitlines()
    return "\n".join(tb_lines[-max_lines:])


def _safe_publish(event: str, payload: dict[str, Any]) -> None:
    try:
        get_event_bus().publish(event, payload)
    except Exception:
        # Diagnostics emission must never crash processing.
        return


@contextmanager
def observe_operation(
    *,
    component: str,
    operation: str,
    base: dict[str, Any],
) -> Iterator[dict[str, Any]]:
    """Publish operation.start / operation.end around a block.

    The yielded dict is merged into the end envelope on success.
    """
    start = time.perf_counter()
    _safe_publish(
        "operation.start",
        build_envelope(event="operation.start", component=component, operation=operation, data=dict(base)),
    )

    summary: dict[str, Any] = {}
    try:
        yield summary
    except Exception as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        end_data = dict(base)
        end_data.update(
            {
                "status": "failed",
                "duration_ms": duration_ms,
                "error_type": type(e).__name__,
                "error_message": str(e),
                "traceback": _short_traceback(),
            }
        )
        _safe_publish(
            "operation.end",
            build_envelope(event="operation.end", component=component, operation=operation, data=end_data),
        )
        _logger.warning(f"{operation} status=failed duration_ms={duration_ms} {base!r}")
        raise
    else:
        duration_ms = int((time.perf_counter() - start) * 1000)
        end_data = dict(base)
        end_data.update(summary)
        end_data.update({"status": "succeeded", "duration_ms": duration_ms})
        _safe_publish(
            "operation.end",
            build_envelope(event="operation.end", component=component, operation=operation, data=end_data),
        )
        _logger.debug(f"{operation} status=succeeded duration_ms={duration_ms} {base!r}")
