"""
Structured event logging for SourceFS.

Events are written as one JSON object per line: informational events go to
stdout and error events to stderr. Quiet mode suppresses all output.
"""

from __future__ import annotations

import datetime
import json
import sys
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sourcefs.errors import get_error_message, get_error_tag


class Metrics:
    """Process-wide structured event logger."""

    _quiet = False

    @classmethod
    def set_quiet(cls, quiet: bool) -> None:
        cls._quiet = quiet

    @classmethod
    def is_quiet(cls) -> bool:
        return cls._quiet

    @staticmethod
    def error_info(cause: Any) -> dict[str, str]:
        """Summarize an error as ``{"tag", "message"}`` for a log record."""
        return {"tag": get_error_tag(cause), "message": get_error_message(cause)}

    @classmethod
    def _emit(cls, level: str, event: str, fields: dict[str, Any]) -> None:
        if cls._quiet:
            return

        payload = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "level": level,
            "event": event,
            **fields,
        }
        line = json.dumps(payload, default=str)
        if level == "error":
            print(line, file=sys.stderr)
        else:
            print(line)

    @classmethod
    def info(cls, event: str, **fields: Any) -> None:
        cls._emit("info", event, fields)

    @classmethod
    def error(cls, event: str, **fields: Any) -> None:
        cls._emit("error", event, fields)

    @classmethod
    @asynccontextmanager
    async def span(cls, name: str, **fields: Any) -> AsyncIterator[None]:
        """Time the enclosed block and log ``span.ok`` or ``span.err``."""
        start = time.perf_counter()
        try:
            yield
        except BaseException as e:
            ms = round((time.perf_counter() - start) * 1000)
            cls.error("span.err", name=name, ms=ms, error=cls.error_info(e), **fields)
            raise
        ms = round((time.perf_counter() - start) * 1000)
        cls.info("span.ok", name=name, ms=ms, **fields)
