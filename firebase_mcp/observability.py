"""
Observability for the Firebase MCP server.

Correlation ids, JSON log lines and in-memory per-tool call stats. Every
call ends in one of three outcomes: ``ok``, ``error`` (an isError envelope
returned to the client) or ``fault`` (an exception the client sees as a
protocol error).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import sys
from threading import Lock
import time
from typing import Any
import uuid

from firebase_mcp.config import McpObservabilityConfig
from firebase_mcp.tools.serialize import to_iso

OUTCOMES = ("ok", "error", "fault")

# LogRecord attributes set through `extra=` by the dispatcher
_CALL_FIELDS = ("tool", "latency_ms", "status", "error", "error_code")

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def generate_correlation_id() -> str:
    """Short random id tying together the log lines of one tool call."""
    return uuid.uuid4().hex[:8]


class JsonLogFormatter(logging.Formatter):
    """One compact JSON object per record."""

    def __init__(self, include_correlation_id: bool = True):
        super().__init__()
        self.include_correlation_id = include_correlation_id

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": to_iso(datetime.fromtimestamp(record.created, tz=timezone.utc)),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        cid = getattr(record, "correlation_id", None)
        if self.include_correlation_id and cid:
            entry["cid"] = cid
        entry.update({name: getattr(record, name) for name in _CALL_FIELDS if hasattr(record, name)})
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, separators=(",", ":"), default=str)


@dataclass
class ToolStats:
    calls: int = 0
    errors: int = 0
    faults: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, outcome: str, latency_ms: float) -> None:
        self.calls += 1
        if outcome == "error":
            self.errors += 1
        elif outcome == "fault":
            self.faults += 1
        self.total_ms += latency_ms
        self.max_ms = max(self.max_ms, latency_ms)

    def summary(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "errors": self.errors,
            "faults": self.faults,
            "avg_ms": round(self.total_ms / self.calls, 2) if self.calls else 0.0,
            "max_ms": round(self.max_ms, 2),
        }


class CallStats:
    """Thread-safe per-tool outcome counters and latencies."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = Lock()
        self._tools: dict[str, ToolStats] = {}
        self._started = clock()

    def record(self, tool: str, latency_ms: float, outcome: str) -> None:
        if outcome not in OUTCOMES:
            raise ValueError(f"Unknown call outcome: {outcome!r}")
        with self._lock:
            self._tools.setdefault(tool, ToolStats()).add(outcome, latency_ms)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            tools = {name: stats.summary() for name, stats in sorted(self._tools.items())}
            uptime_s = self._clock() - self._started

        calls = sum(t["calls"] for t in tools.values())
        errors = sum(t["errors"] for t in tools.values())
        faults = sum(t["faults"] for t in tools.values())
        return {
            "uptime_s": round(uptime_s, 1),
            "calls": calls,
            "errors": errors,
            "faults": faults,
            "failure_rate": round((errors + faults) / calls, 4) if calls else 0.0,
            "tools": tools,
        }

    def reset(self) -> None:
        with self._lock:
            self._tools.clear()
            self._started = self._clock()


class ObservabilityContext:
    """
    What the dispatcher talks to.

    Correlation ids are always issued so log lines stay joinable; stats are
    only kept when observability is enabled.
    """

    def __init__(self, config: McpObservabilityConfig):
        self.config = config
        self.stats = CallStats()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def correlation_id(self) -> str:
        return generate_correlation_id()

    def record(self, tool: str, latency_ms: float, outcome: str) -> None:
        if self.enabled:
            self.stats.record(tool, latency_ms, outcome)

    def summary(self) -> dict[str, Any]:
        return self.stats.snapshot()


def setup_logging(
    config: McpObservabilityConfig, logger_name: str = "firebase_mcp"
) -> logging.Logger:
    """Give logger_name a single stderr handler in the configured format.

    stdout is never touched: it carries the MCP stream.
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    if config.log_format == "json":
        formatter: logging.Formatter = JsonLogFormatter(config.include_correlation_id)
    else:
        formatter = logging.Formatter(_TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
