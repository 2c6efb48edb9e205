"""Span recording around step execution.

Telemetry is purely observational: failures inside a telemetry backend are
logged and never change the outcome of the observed operation.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Protocol, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Span(BaseModel):
    """A named, timed unit of observed work."""

    name: str
    span_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    attributes: Dict[str, Any] = Field(default_factory=dict)
    started_at: float = Field(default_factory=time.perf_counter)
    status: Optional[str] = None
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    ended: bool = False


class Telemetry(Protocol):
    """Protocol for span recording backends."""

    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Span:
        """Open a span."""

    def record(
        self, span: Span, status: str, latency_ms: float, error: str | None = None
    ) -> None:
        """Record the outcome and latency of a span."""

    def end_span(self, span: Span) -> None:
        """Close a span."""


class NullTelemetry:
    """Telemetry backend that records nothing."""

    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Span:
        return Span(name=name, attributes=attributes or {})

    def record(
        self, span: Span, status: str, latency_ms: float, error: str | None = None
    ) -> None:
        pass

    def end_span(self, span: Span) -> None:
        span.ended = True


class LoggingTelemetry(NullTelemetry):
    """Emit spans through the ``stepflow.telemetry`` logger.

    The most recent finished spans are kept in ``spans`` for inspection.
    """

    def __init__(self, level: int = logging.INFO, keep: int = 1000) -> None:
        self.level = level
        self.spans: Deque[Span] = deque(maxlen=keep)

    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Span:
        span = super().start_span(name, attributes)
        logger.debug(f"span.start name={name} span_id={span.span_id}")
        return span

    def record(
        self, span: Span, status: str, latency_ms: float, error: str | None = None
    ) -> None:
        span.status = status
        span.latency_ms = latency_ms
        span.error = error
        logger.log(
            self.level,
            f"span.record name={span.name} status={status} latency_ms={latency_ms:.2f}"
            + (f" error={error}" if error else ""),
        )

    def end_span(self, span: Span) -> None:
        super().end_span(span)
        self.spans.append(span)


def _safe(action: str, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except Exception as e:
        logger.warning(f"Telemetry {action} failed: {e}")
        return None


async def observe(
    telemetry: Optional[Telemetry],
    span_name: str,
    fn: Callable[[], Awaitable[T]],
    attributes: dict[str, Any] | None = None,
) -> T:
    """Await ``fn()`` inside a span with standardized success/error metrics."""
    if telemetry is None:
        return await fn()

    span = _safe("start_span", lambda: telemetry.start_span(span_name, attributes))
    start = time.perf_counter()
    try:
        result = await fn()
    except Exception as e:
        if span is not None:
            latency = (time.perf_counter() - start) * 1000
            _safe("record", lambda: telemetry.record(span, "error", latency, str(e)))
        raise
    else:
        if span is not None:
            latency = (time.perf_counter() - start) * 1000
            _safe("record", lambda: telemetry.record(span, "success", latency))
        return result
    finally:
        if span is not None:
            _safe("end_span", lambda: telemetry.end_span(span))
