from datetime import datetime, timezone

import pytest

from telemetry_extras.resource import Resource
from telemetry_extras.stackdriver_export import (
    AuthorizerError,
    CloudRunJob,
    CloudRunRevision,
    GenericNode,
    GenericTask,
    GlobalResource,
    Link,
    LogContext,
    LogSeverity,
    SpanData,
    SpanEvent,
    SpanKind,
    SpanStatus,
    StackDriverError,
    StatusCode,
    TransportError,
    build_batch_write_request,
    convert_span,
    convert_status,
    log_severity,
    transform_links,
)
from telemetry_extras.trace import SpanContext

TRACE_ID = 0x105445AA7843BC8BF206B12000100000
TRACE_HEX = "105445aa7843bc8bf206b12000100000"
START = datetime(2024, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc)


def make_span(**overrides):
    values = dict(
        name="op",
        span_context=SpanContext(trace_id=TRACE_ID, span_id=1, trace_flags=1),
        start_time=START,
        end_time=END,
    )
    values.update(overrides)
    return SpanData(**values)


def test_error_messages_and_hierarchy():
    err = AuthorizerError("boom")
    assert str(err) == "authorizer error: boom"
    assert isinstance(err, StackDriverError)
    assert isinstance(TransportError("x"), StackDriverError)
    assert err.exporter_name == "stackdriver"


@pytest.mark.parametrize(
    "level, expected",
    [
        ("DEBUG", LogSeverity.DEBUG),
        ("TRACE", LogSeverity.DEBUG),
        ("INFO", LogSeverity.INFO),
        ("WARN", LogSeverity.WARNING),
        ("ERROR", LogSeverity.ERROR),
        ("other", LogSeverity.DEFAULT),
    ],
)
def test_log_severity(level, expected):
    assert log_severity(level) is expected


@pytest.mark.parametrize(
    "level, value",
    [
        ("other", 0),
        ("DEBUG", 100),
        ("INFO", 200),
        ("WARN", 400),
        ("ERROR", 500),
    ],
)
def test_severity_values_fixed(level, value):
    assert int(log_severity(level)) == value


def test_monitored_resources_to_dict():
    assert GlobalResource("p").to_dict() == {"type": "global", "labels": {"project_id": "p"}}
    job = CloudRunJob("p", job_name="j").to_dict()
    assert job == {"type": "cloud_run_job", "labels": {"project_id": "p", "job_name": "j"}}
    assert GenericNode("p", node_id="n").to_dict()["type"] == "generic_node"
    task = GenericTask("p", location="l", job="jb", task_id="t").to_dict()
    assert task["labels"] == {"project_id": "p", "location": "l", "job": "jb", "task_id": "t"}
    rev = CloudRunRevision("p", configuration_name="c").to_dict()
    assert rev == {
        "type": "cloud_run_revision",
        "labels": {"project_id": "p", "configuration_name": "c"},
    }


def test_convert_status():
    assert convert_status(SpanStatus()) is None
    assert convert_status(SpanStatus(StatusCode.OK))["code"] == 0
    err = convert_status(SpanStatus(StatusCode.ERROR, "bad"))
    assert err["message"] == "bad"
    assert err["code"] != convert_status(SpanStatus(StatusCode.OK))["code"]


def test_transform_links():
    assert transform_links([]) is None
    ctx = SpanContext(trace_id=TRACE_ID, span_id=10)
    result = transform_links([Link(ctx)], 3)
    assert result["dropped_links_count"] == 3
    assert result["link"] == [{"trace_id": TRACE_HEX, "span_id": ctx.span_id_hex()}]


def test_convert_root_span_with_annotations():
    span = make_span(
        events=[SpanEvent("evt", START)],
        attributes=[("http.method", "POST")],
        span_kind=SpanKind.SERVER,
    )
    converted, entries = convert_span(span, "proj")
    span_hex = span.span_context.span_id_hex()
    assert entries == []
    assert converted["name"] == f"projects/proj/traces/{TRACE_HEX}/spans/{span_hex}"
    assert converted["parent_span_id"] == ""
    assert converted["display_name"]["value"] == "op"
    assert converted["span_kind"] == int(SpanKind.SERVER)
    annotation = converted["time_events"]["time_event"][0]["annotation"]
    assert annotation["description"]["value"] == "evt"
    assert "/http/method" in converted["attributes"]["attribute_map"]
    assert converted["links"] is None


def test_parent_span_id_and_timestamps():
    converted, _ = convert_span(make_span(parent_span_id=0xAB), "proj")
    assert converted["parent_span_id"].endswith("ab")
    assert len(converted["parent_span_id"]) == 16
    delta = converted["end_time"]["seconds"] - converted["start_time"]["seconds"]
    assert delta == 1
    assert converted["start_time"]["nanos"] == 0


def test_resource_attributes_included():
    resource = Resource({"service.name": "svc"})
    converted, _ = convert_span(make_span(), "proj", resource)
    assert "service.name" in converted["attributes"]["attribute_map"]


def test_events_become_log_entries_with_log_context():
    ctx = LogContext("mylog", GlobalResource("proj"))
    event = SpanEvent("hello", START, [("level", "ERROR"), ("target", "mod"), ("k", "v")])
    converted, entries = convert_span(make_span(events=[event]), "proj", None, ctx)
    assert converted["time_events"]["time_event"] == []
    (entry,) = entries
    assert entry["log_name"] == "projects/proj/logs/mylog"
    assert entry["severity"] == int(LogSeverity.ERROR)
    assert entry["labels"] == {"k": "v"}
    assert entry["source_location"]["function"] == "mod"
    assert entry["trace"] == f"projects/proj/traces/{TRACE_HEX}"
    assert entry["text_payload"] == "hello"
    assert entry["resource"] == GlobalResource("proj").to_dict()


def test_build_batch_write_request():
    spans = [make_span(), make_span(name="second")]
    batch, log_request = build_batch_write_request(spans, "proj")
    assert batch["name"] == "projects/proj"
    assert [s["display_name"]["value"] for s in batch["spans"]] == ["op", "second"]
    assert log_request is None

    ctx = LogContext("mylog", GlobalResource("proj"))
    event_span = make_span(events=[SpanEvent("a", START), SpanEvent("b", END)])
    _, log_request = build_batch_write_request([event_span], "proj", None, ctx)
    assert log_request["partial_success"] is True
    assert log_request["dry_run"] is False
    assert [e["text_payload"] for e in log_request["entries"]] == ["a", "b"]


def test_invalid_timestamp_rejected():
    with pytest.raises(TypeError):
        convert_span(make_span(start_time="yesterday"), "proj")