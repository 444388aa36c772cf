"""Resource detectors, Cloud Trace context propagation and span-to-request conversion helpers."""

__version__ = "0.1.0"

__all__ = [
    "resource",
    "detectors",
    "trace",
    "propagator",
    "stackdriver_attributes",
    "stackdriver_export",
]