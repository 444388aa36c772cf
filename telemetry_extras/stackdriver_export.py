"""Conversion of finished spans into Cloud Trace and Cloud Logging requests."""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from .resource import Resource
from .stackdriver_attributes import attribute_value, build_attributes, truncatable
from .trace import SpanContext

TRACE_APPEND = "https://www.googleapis.com/auth/trace.append"
LOGGING_WRITE = "https://www.googleapis.com/auth/logging.write"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Timestamp = Union[datetime, int]


class StackDriverError(Exception):
    """Base class for errors raised while exporting to Cloud Trace."""

    exporter_name = "stackdriver"
    prefix = ""

    def __init__(self, source: object) -> None:
        super().__init__(source)
        self.source = source

    def __str__(self) -> str:
        return f"{self.prefix}{self.source}"


class AuthorizerError(StackDriverError):
    """Obtaining or attaching credentials failed."""

    prefix = "authorizer error: "


class TransportError(StackDriverError):
    """Sending a request to the service failed."""

    prefix = "transport error: "


class SpanKind(enum.IntEnum):
    """Span kinds with their Cloud Trace wire values."""

    UNSPECIFIED = 0
    INTERNAL = 1
    SERVER = 2
    CLIENT = 3
    PRODUCER = 4
    CONSUMER = 5


class StatusCode(enum.Enum):
    """The status a span finished with."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class SpanStatus:
    """A span status with an optional error description."""

    code: StatusCode = StatusCode.UNSET
    description: str = ""


_RPC_OK = 0
_RPC_UNKNOWN = 2


class LogSeverity(enum.IntEnum):
    """Cloud Logging severities."""

    DEFAULT = 0
    DEBUG = 100
    INFO = 200
    WARNING = 400
    ERROR = 500


_LEVELS = {
    "DEBUG": LogSeverity.DEBUG,
    "TRACE": LogSeverity.DEBUG,
    "INFO": LogSeverity.INFO,
    "WARN": LogSeverity.WARNING,
    "ERROR": LogSeverity.ERROR,
}


def log_severity(level: str) -> LogSeverity:
    """Map a tracing level name to a log severity; unknown names give DEFAULT."""
    return _LEVELS.get(level, LogSeverity.DEFAULT)


@dataclass(frozen=True)
class MonitoredResource:
    """A monitored resource: a type name plus labels from the set fields."""

    TYPE: ClassVar[str] = ""

    project_id: str

    def to_dict(self) -> Dict[str, Any]:
        labels = {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not None
        }
        return {"type": self.TYPE, "labels": labels}


@dataclass(frozen=True)
class GlobalResource(MonitoredResource):
    TYPE: ClassVar[str] = "global"


@dataclass(frozen=True)
class GenericNode(MonitoredResource):
    TYPE: ClassVar[str] = "generic_node"

    location: Optional[str] = None
    namespace: Optional[str] = None
    node_id: Optional[str] = None


@dataclass(frozen=True)
class GenericTask(MonitoredResource):
    TYPE: ClassVar[str] = "generic_task"

    location: Optional[str] = None
    namespace: Optional[str] = None
    job: Optional[str] = None
    task_id: Optional[str] = None


@dataclass(frozen=True)
class CloudRunJob(MonitoredResource):
    TYPE: ClassVar[str] = "cloud_run_job"

    job_name: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class CloudRunRevision(MonitoredResource):
    TYPE: ClassVar[str] = "cloud_run_revision"

    service_name: Optional[str] = None
    revision_name: Optional[str] = None
    location: Optional[str] = None
    configuration_name: Optional[str] = None


@dataclass(frozen=True)
class LogContext:
    """Where span events are written as log entries."""

    log_id: str
    resource: MonitoredResource


@dataclass(frozen=True)
class Link:
    """A link from a span to another span."""

    span_context: SpanContext


@dataclass(frozen=True)
class SpanEvent:
    """A timestamped event recorded on a span."""

    name: str
    timestamp: Timestamp
    attributes: Sequence[Tuple[str, Any]] = ()


@dataclass(frozen=True)
class SpanData:
    """A finished span as handed to the exporter."""

    name: str
    span_context: SpanContext
    start_time: Timestamp
    end_time: Timestamp
    parent_span_id: int = 0
    span_kind: SpanKind = SpanKind.INTERNAL
    attributes: Sequence[Tuple[str, Any]] = ()
    events: Sequence[SpanEvent] = ()
    links: Sequence[Link] = ()
    dropped_links_count: int = 0
    status: SpanStatus = field(default_factory=SpanStatus)


def _timestamp(value: Timestamp) -> Dict[str, int]:
    """Encode a datetime (naive means UTC) or integer nanoseconds since the epoch."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        delta = value - _EPOCH
        seconds = delta.days * 86400 + delta.seconds
        return {"seconds": seconds, "nanos": delta.microseconds * 1000}
    if isinstance(value, int) and not isinstance(value, bool):
        seconds, nanos = divmod(value, 1_000_000_000)
        return {"seconds": seconds, "nanos": nanos}
    raise TypeError(f"unsupported timestamp: {value!r}")


def _value_as_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    converted = attribute_value(value)
    return converted.string_value.value if converted.string_value is not None else ""


def convert_status(status: SpanStatus) -> Optional[Dict[str, Any]]:
    """Return the RPC status for a span status, or None when unset."""
    if status.code is StatusCode.OK:
        return {"code": _RPC_OK, "message": "", "details": []}
    if status.code is StatusCode.ERROR:
        return {"code": _RPC_UNKNOWN, "message": status.description, "details": []}
    return None


def transform_links(links: Sequence[Link], dropped_count: int = 0) -> Optional[Dict[str, Any]]:
    """Return the links block of a span, or None when there are no links."""
    if not links:
        return None
    return {
        "dropped_links_count": dropped_count,
        "link": [
            {
                "trace_id": link.span_context.trace_id_hex(),
                "span_id": link.span_context.span_id_hex(),
            }
            for link in links
        ],
    }


def _log_entry(
    event: SpanEvent,
    project_id: str,
    log_context: LogContext,
    trace_id: str,
    span_id: str,
) -> Dict[str, Any]:
    level = LogSeverity.DEFAULT
    target: Optional[str] = None
    labels: Dict[str, str] = {}
    for key, value in event.attributes:
        if key == "level":
            level = log_severity(_value_as_str(value))
        elif key == "target":
            target = _value_as_str(value)
        else:
            labels[key] = _value_as_str(value)
    return {
        "log_name": f"projects/{project_id}/logs/{log_context.log_id}",
        "resource": log_context.resource.to_dict(),
        "severity": int(level),
        "timestamp": _timestamp(event.timestamp),
        "labels": labels,
        "trace": f"projects/{project_id}/traces/{trace_id}",
        "span_id": span_id,
        "source_location": (
            None if target is None else {"file": "", "line": 0, "function": target}
        ),
        "text_payload": event.name,
    }


def convert_span(
    span: SpanData,
    project_id: str,
    resource: Optional[Resource] = None,
    log_context: Optional[LogContext] = None,
) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """Convert one span to a Cloud Trace span and the log entries of its events.

    Without a log context the events become annotations on the span and no
    log entries are returned; with one they become log entries instead.
    """
    trace_id = span.span_context.trace_id_hex()
    span_id = span.span_context.span_id_hex()

    entries: List[Dict[str, Any]] = []
    time_events: List[Dict[str, Any]] = []
    if log_context is None:
        time_events = [
            {
                "time": _timestamp(event.timestamp),
                "annotation": {"description": truncatable(event.name).to_dict()},
            }
            for event in span.events
        ]
    else:
        entries = [
            _log_entry(event, project_id, log_context, trace_id, span_id)
            for event in span.events
        ]

    converted = {
        "name": f"projects/{project_id}/traces/{trace_id}/spans/{span_id}",
        "display_name": truncatable(span.name).to_dict(),
        "span_id": span_id,
        "parent_span_id": "" if span.parent_span_id == 0 else f"{span.parent_span_id:016x}",
        "start_time": _timestamp(span.start_time),
        "end_time": _timestamp(span.end_time),
        "attributes": build_attributes(span.attributes, resource).to_dict(),
        "time_events": {
            "time_event": time_events,
            "dropped_annotations_count": 0,
            "dropped_message_events_count": 0,
        },
        "links": transform_links(span.links, span.dropped_links_count),
        "status": convert_status(span.status),
        "span_kind": int(SpanKind(span.span_kind)),
    }
    return converted, entries


def build_batch_write_request(
    spans: Iterable[SpanData],
    project_id: str,
    resource: Optional[Resource] = None,
    log_context: Optional[LogContext] = None,
) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    """Build the span batch request and, with a log context, the log write request."""
    converted: List[Dict[str, Any]] = []
    entries: List[Dict[str, Any]] = []
    for span in spans:
        span_dict, span_entries = convert_span(span, project_id, resource, log_context)
        converted.append(span_dict)
        entries.extend(span_entries)

    batch = {"name": f"projects/{project_id}", "spans": converted}
    if log_context is None:
        return batch, None
    log_request = {
        "log_name": f"projects/{project_id}/logs/{log_context.log_id}",
        "entries": entries,
        "dry_run": False,
        "labels": {},
        "partial_success": True,
        "resource": None,
    }
    return batch, log_request


def required_scopes(log_context: Optional[Mapping[str, Any]] | Optional[LogContext]) -> Tuple[str, ...]:
    """The OAuth scopes needed for the requests built with ``log_context``."""
    return (TRACE_APPEND,) if log_context is None else (TRACE_APPEND, LOGGING_WRITE)