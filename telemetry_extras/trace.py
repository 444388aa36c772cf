"""Span contexts and the immutable context that carries them."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

TRACE_FLAG_SAMPLED = 0x01

_MAX_TRACE_ID = (1 << 128) - 1
_MAX_SPAN_ID = (1 << 64) - 1
_MAX_TRACE_FLAGS = 0xFF


def _check_range(name: str, value: int, maximum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if not 0 <= value <= maximum:
        raise ValueError(f"{name} {value} is out of range 0..{maximum}")


@dataclass(frozen=True)
class SpanContext:
    """Identifies a span: 128-bit trace id, 64-bit span id and 8-bit flags."""

    trace_id: int = 0
    span_id: int = 0
    trace_flags: int = 0
    is_remote: bool = False
    trace_state: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        _check_range("trace_id", self.trace_id, _MAX_TRACE_ID)
        _check_range("span_id", self.span_id, _MAX_SPAN_ID)
        _check_range("trace_flags", self.trace_flags, _MAX_TRACE_FLAGS)

    def is_valid(self) -> bool:
        """True when both the trace id and the span id are non-zero."""
        return self.trace_id != 0 and self.span_id != 0

    def is_sampled(self) -> bool:
        """True when the sampled bit of the trace flags is set."""
        return bool(self.trace_flags & TRACE_FLAG_SAMPLED)

    def trace_id_hex(self) -> str:
        """The trace id as 32 lower-case hex digits."""
        return f"{self.trace_id:032x}"

    def span_id_hex(self) -> str:
        """The span id as 16 lower-case hex digits."""
        return f"{self.span_id:016x}"


INVALID_SPAN_CONTEXT = SpanContext()


@dataclass(frozen=True)
class Context:
    """An immutable execution context holding the current span context."""

    span_context: SpanContext = INVALID_SPAN_CONTEXT

    def with_span_context(self, span_context: SpanContext) -> "Context":
        """Return a copy of this context carrying ``span_context``."""
        return replace(self, span_context=span_context)

    def with_remote_span_context(self, span_context: SpanContext) -> "Context":
        """Return a copy carrying ``span_context`` marked as remote."""
        return self.with_span_context(replace(span_context, is_remote=True))