"""Propagation of span context through the X-Cloud-Trace-Context header.

The header has the form ``TRACE_ID/SPAN_ID;o=FLAGS``: a 32-character hex
trace id, a decimal span id, and optional decimal trace flags (defaulting
to sampled).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping
from typing import Optional, Tuple

from .trace import Context, SpanContext

CLOUD_TRACE_CONTEXT_HEADER = "X-Cloud-Trace-Context"

_HEX_RE = re.compile(r"\+?[0-9a-fA-F]+")
_DECIMAL_RE = re.compile(r"\+?[0-9]+")

_MAX_U64 = (1 << 64) - 1
_MAX_U8 = 0xFF


def _get_header(carrier: Mapping, name: str) -> Optional[str]:
    if name in carrier:
        return carrier[name]
    lowered = name.lower()
    for key, value in carrier.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _parse_unsigned(text: str, maximum: int, what: str) -> int:
    if not _DECIMAL_RE.fullmatch(text):
        raise ValueError(f"invalid {what}: {text!r}")
    value = int(text)
    if value > maximum:
        raise ValueError(f"{what} out of range: {text!r}")
    return value


class GoogleTraceContextPropagator:
    """Injects and extracts span context in the Google Cloud Trace format."""

    def extract_span_context(self, carrier: Mapping) -> SpanContext:
        """Parse the header from ``carrier``; raise ValueError if absent or malformed."""
        raw = _get_header(carrier, CLOUD_TRACE_CONTEXT_HEADER)
        if raw is None:
            raise ValueError(f"missing {CLOUD_TRACE_CONTEXT_HEADER} header")
        header_value = raw.strip()

        trace_part, sep, rest = header_value.partition("/")
        if not sep or len(trace_part) != 32:
            raise ValueError(f"malformed trace context header: {header_value!r}")

        span_part, sep, flags_part = rest.partition(";o=")
        if not sep:
            flags_part = "1"

        if not _HEX_RE.fullmatch(trace_part):
            raise ValueError(f"invalid trace id: {trace_part!r}")
        trace_id = int(trace_part, 16)
        span_id = _parse_unsigned(span_part, _MAX_U64, "span id")
        trace_flags = _parse_unsigned(flags_part, _MAX_U8, "trace flags")

        span_context = SpanContext(
            trace_id=trace_id,
            span_id=span_id,
            trace_flags=trace_flags,
            is_remote=True,
        )
        if not span_context.is_valid():
            raise ValueError(f"invalid span context in header: {header_value!r}")
        return span_context

    def inject_context(self, context: Context, carrier: MutableMapping) -> None:
        """Write the header for the span in ``context`` if it is valid."""
        span_context = context.span_context
        if span_context.is_valid():
            carrier[CLOUD_TRACE_CONTEXT_HEADER] = (
                f"{span_context.trace_id_hex()}/{span_context.span_id};"
                f"o={span_context.trace_flags}"
            )

    def extract_with_context(self, context: Context, carrier: Mapping) -> Context:
        """Return ``context`` with the extracted remote span, or unchanged on failure."""
        try:
            span_context = self.extract_span_context(carrier)
        except ValueError:
            return context
        return context.with_remote_span_context(span_context)

    def fields(self) -> Tuple[str, ...]:
        """The header names this propagator reads and writes."""
        return (CLOUD_TRACE_CONTEXT_HEADER,)