from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from finadmin.utils.request_id import current_request_id


@contextmanager
def log_duration(logger: logging.Logger, operation: str, **fields: object) -> Iterator[None]:
    """Log duration of an operation.

    Uses logger.debug with a stable key=value format to keep logs parseable even without
    a JSON logging formatter.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        rid = current_request_id()
        if rid and "request_id" not in fields:
            fields = {"request_id": rid, **fields}
        extras = " ".join(f"{k}={v}" for k, v in fields.items())
        if extras:
            logger.debug("op=%s duration_ms=%.2f %s", operation, elapsed_ms, extras)
        else:
            logger.debug("op=%s duration_ms=%.2f", operation, elapsed_ms)


def format_event(event: str, **fields: object) -> str:
    """Render ``event key=value ...`` with None values dropped."""
    parts = [event]
    parts.extend(f"{k}={v}" for k, v in fields.items() if v is not None)
    return " ".join(parts)
