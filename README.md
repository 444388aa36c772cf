# telemetry-extras

This package provides small building blocks for telemetry pipelines. It uses only the standard library.

- **Resource detectors** (`telemetry_extras.detectors`) describe where code runs: the host id and architecture, the Kubernetes pod and namespace, the operating system, and the current process.
- **A Cloud Trace context propagator** (`telemetry_extras.propagator`) reads and writes the `X-Cloud-Trace-Context` header.
- **Span conversion helpers** (`telemetry_extras.stackdriver_attributes`, `telemetry_extras.stackdriver_export`) turn finished spans into Cloud Trace batch-write request bodies and Cloud Logging write-entries request bodies. Both are plain dictionaries.

## Installation

```
pip install telemetry-extras
```

## Resources

`telemetry_extras.resource.Resource` is an immutable set of attributes.

- `Resource(attributes=None, schema_url=None)` accepts either a mapping or an iterable of `(key, value)` pairs. If a key appears more than once, the last value wins.
- It supports `len()`, iteration over `(key, value)` pairs in insertion order, `key in resource` and `resource.get(key)`. `get` returns `None` for a missing key.
- It has read-only `attributes` and `schema_url` properties.
- Two resources compare equal when their attributes and schema URL are equal.

`telemetry_extras.resource.ResourceDetector` is the base class for detectors. Each detector provides a `detect()` method that returns a `Resource`.

## Detecting resources

```python
from telemetry_extras.detectors import (
    HostResourceDetector,
    K8sResourceDetector,
    OsResourceDetector,
    ProcessResourceDetector,
)

host = HostResourceDetector().detect()
print(host.get("host.arch"), host.get("host.id"))

print(OsResourceDetector().detect().get("os.type"))
print(len(ProcessResourceDetector().detect()))  # process.command_args and process.pid
```

**`HostResourceDetector(host_id_detect=None)`**

- Always sets `host.arch`. The machine name is normalised, so `amd64` becomes `x86_64` and `arm64` becomes `aarch64`.
- Sets `host.id` when the id function returns one. The default id function is `detect_host_id()`:
  - On Linux it reads `/etc/machine-id`, falling back to `/var/lib/dbus/machine-id`, and strips whitespace.
  - On macOS it runs `ioreg -rd1 -c IOPlatformExpertDevice` and takes the `IOPlatformUUID` value.
  - On other systems it returns `None`.
- You can pass your own zero-argument function as `host_id_detect`.

**`K8sResourceDetector(namespace_path=...)`**

- Sets `k8s.pod.name` from the `HOSTNAME` environment variable.
- Sets `k8s.namespace.name` from the contents of the namespace file. The default file is `/var/run/secrets/kubernetes.io/serviceaccount/namespace`.
- If either source is missing, that attribute is left out.

**`OsResourceDetector`**

Sets `os.type` to one of `linux`, `macos`, `windows`, `freebsd`, and so on.

**`ProcessResourceDetector`**

Sets:
- `process.command_args`: a tuple of the interpreter's original command-line arguments.
- `process.pid`: the id of the current process.

No detector raises when it finds nothing. Missing information is simply left out of the resource.

## Span contexts

`telemetry_extras.trace.SpanContext` is a frozen dataclass with these fields:

| Field | Meaning |
|---|---|
| `trace_id` | 128-bit integer |
| `span_id` | 64-bit integer |
| `trace_flags` | 8-bit integer |
| `is_remote` | whether the context came from another process |
| `trace_state` | tuple of key/value pairs |

Values outside these ranges raise `ValueError`. Non-integers raise `TypeError`.

Methods:
- `is_valid()` returns true when both ids are non-zero.
- `is_sampled()` tests the sampled bit.
- `trace_id_hex()` and `span_id_hex()` return zero-padded lower-case hex.

`telemetry_extras.trace.Context` holds a `span_context`. Its methods return new contexts:
- `with_span_context(span_context)`
- `with_remote_span_context(span_context)`, which also marks the span context as remote.

## Propagating trace context

```python
from telemetry_extras.propagator import GoogleTraceContextPropagator
from telemetry_extras.trace import Context

propagator = GoogleTraceContextPropagator()
headers = {"x-cloud-trace-context": "105445aa7843bc8bf206b12000100000/1;o=1"}

context = propagator.extract_with_context(Context(), headers)
print(context.span_context.span_id_hex())  # 0000000000000001

outgoing = {}
propagator.inject_context(context, outgoing)
print(outgoing)  # {'X-Cloud-Trace-Context': '105445aa7843bc8bf206b12000100000/1;o=1'}
```

The header format is `TRACE_ID/SPAN_ID;o=FLAGS`:

- `TRACE_ID` is exactly 32 hexadecimal characters.
- `SPAN_ID` is a decimal number that fits in 64 bits.
- `;o=FLAGS` is optional. `FLAGS` is a decimal number up to 255. When this part is missing, the flags default to `1` (sampled).

The header name is matched without regard to case.

Methods of `GoogleTraceContextPropagator`:

- `extract_span_context(carrier)` returns a remote `SpanContext`. It raises `ValueError` when the header is missing, is malformed, or yields an invalid context.
- `extract_with_context(context, carrier)` returns `context` with the extracted span attached. If extraction fails, it returns `context` unchanged.
- `inject_context(context, carrier)` writes the header only when the context's span context is valid.
- `fields()` returns `("X-Cloud-Trace-Context",)`.

## Converting spans

### Attributes

`telemetry_extras.stackdriver_attributes.build_attributes(attributes, resource=None)` merges resource attributes and span attributes into an `Attributes` object.

- Resource attributes are added first.
- At most 32 attributes are kept. Further attributes are counted in `dropped_attributes_count`.
- Keys longer than 128 bytes in UTF-8 are also dropped and counted.
- Well-known keys are renamed to their Cloud Trace label names. For example, `http.method` and `http.request.method` become `/http/method`, `http.url` and `url.full` become `/http/url`, and `k8s.pod.name` becomes `g.co/r/k8s_container/pod_name`. The full table is `KEY_MAP`.

`attribute_value(value)` converts a single value:

| Input | Result |
|---|---|
| boolean | boolean |
| integer | integer |
| float | string |
| string | string |
| list or tuple | string, such as `["a","b"]` |
| anything else | empty string |

### Requests

`telemetry_extras.stackdriver_export` describes finished spans with these dataclasses:

- `SpanData`
- `SpanEvent`
- `Link`
- `SpanStatus`, which uses `StatusCode`
- `SpanKind`

Timestamps are `datetime` objects or integer nanoseconds since the epoch. A naive `datetime` is taken as UTC.

```python
from datetime import datetime, timezone
from telemetry_extras.stackdriver_export import (
    GlobalResource, LogContext, SpanData, SpanEvent, build_batch_write_request,
)
from telemetry_extras.trace import SpanContext

span = SpanData(
    name="GET /items",
    span_context=SpanContext(trace_id=0x105445aa7843bc8bf206b12000100000, span_id=1),
    start_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
    end_time=datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc),
    attributes=[("http.method", "GET")],
    events=[SpanEvent("cache miss", 1_704_067_200_000_000_000, [("level", "WARN")])],
)

batch, log_request = build_batch_write_request(
    [span], "my-project", log_context=LogContext("my-log", GlobalResource("my-project"))
)
```

`convert_span(span, project_id, resource=None, log_context=None)` returns a pair: the Cloud Trace span dictionary and a list of log entries.

- Without a log context, span events become annotations on the span, and the list of log entries is empty.
- With a log context, each event becomes a log entry instead. The event's attributes are used like this:
  - `level` sets the severity, through `log_severity`: `DEBUG`/`TRACE`, `INFO`, `WARN`, `ERROR`.
  - `target` becomes the source-location function.
  - All other attributes become labels.

`build_batch_write_request(spans, project_id, resource=None, log_context=None)` returns a pair: the batch-write body, and either the log write-entries body or `None` when no log context is given.

Helper functions:

- `convert_status` maps an unset status to `None`, OK to RPC code 0, and error to RPC code 2 with the error description.
- `transform_links` returns `None` when there are no links.
- `required_scopes(log_context)` lists the OAuth scopes the requests need. These are the trace-append scope, plus the logging-write scope when a log context is given.

Monitored resources for log entries:

| Class | Resource type |
|---|---|
| `GlobalResource` | `global` |
| `GenericNode` | `generic_node` |
| `GenericTask` | `generic_task` |
| `CloudRunJob` | `cloud_run_job` |
| `CloudRunRevision` | `cloud_run_revision` |

Each class's `to_dict()` gives the resource type and one label for every field that is set.

## What this package does not do

The package builds request bodies but does not send them. It has:

- no network or gRPC client,
- no credential handling or authorizer,
- no background exporter or queue.

`StackDriverError`, `AuthorizerError` and `TransportError` are provided for code that does the sending to raise. Nothing in this package raises them.

The package also has no metrics exporter and no command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```