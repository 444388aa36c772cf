"""Span attributes in the Cloud Trace form, with keys renamed to trace labels."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from .resource import Resource

MAX_ATTRIBUTES_PER_SPAN = 32
MAX_ATTRIBUTE_KEY_BYTES = 128

HTTP_PATH = "http.path"
GCP_HTTP_PATH = "/http/path"

# Conventional OpenTelemetry keys and their Cloud Trace label counterparts.
# The first matching entry wins.
KEY_MAP: Tuple[Tuple[str, str], ...] = (
    (HTTP_PATH, GCP_HTTP_PATH),
    ("http.host", "/http/host"),
    ("http.request.header.host", "/http/host"),
    ("http.method", "/http/method"),
    ("http.request.method", "/http/method"),
    ("http.target", "/http/path"),
    ("url.path", "/http/path"),
    ("http.url", "/http/url"),
    ("url.full", "/http/url"),
    ("http.user_agent", "/http/user_agent"),
    ("user_agent.original", "/http/user_agent"),
    ("http.status_code", "/http/status_code"),
    ("http.response.status_code", "/http/status_code"),
    ("k8s.cluster.name", "g.co/r/k8s_container/cluster_name"),
    ("k8s.namespace.name", "g.co/r/k8s_container/namespace"),
    ("k8s.pod.name", "g.co/r/k8s_container/pod_name"),
    ("k8s.container.name", "g.co/r/k8s_container/container_name"),
    ("http.route", "/http/route"),
    (HTTP_PATH, GCP_HTTP_PATH),
)


@dataclass(frozen=True)
class TruncatableString:
    """A string that the server may have shortened."""

    value: str
    truncated_byte_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "truncated_byte_count": self.truncated_byte_count}


@dataclass(frozen=True)
class AttributeValue:
    """One of a string, an integer or a boolean attribute value."""

    string_value: Optional[TruncatableString] = None
    int_value: Optional[int] = None
    bool_value: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.bool_value is not None:
            return {"bool_value": self.bool_value}
        if self.int_value is not None:
            return {"int_value": self.int_value}
        if self.string_value is not None:
            return {"string_value": self.string_value.to_dict()}
        return {}


def truncatable(text: str) -> TruncatableString:
    """Wrap ``text`` as an untruncated string."""
    return TruncatableString(text)


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer():
        text = str(int(value))
        if value == 0 and math.copysign(1.0, value) < 0:
            return "-0"
        return text
    return format(Decimal(repr(value)), "f")


def _format_array_item(item: Any) -> str:
    if isinstance(item, bool):
        return "true" if item else "false"
    if isinstance(item, int):
        return str(item)
    if isinstance(item, float):
        return _format_float(item)
    return f'"{item}"'


def _format_array(items: Iterable[Any]) -> str:
    return "[" + ",".join(_format_array_item(item) for item in items) + "]"


def attribute_value(value: Any) -> AttributeValue:
    """Convert a plain attribute value to its Cloud Trace form.

    Booleans and integers keep their type; floats, strings and arrays
    become strings; anything else becomes the empty string.
    """
    if isinstance(value, AttributeValue):
        return value
    if isinstance(value, bool):
        return AttributeValue(bool_value=value)
    if isinstance(value, int):
        return AttributeValue(int_value=value)
    if isinstance(value, float):
        return AttributeValue(string_value=truncatable(_format_float(value)))
    if isinstance(value, str):
        return AttributeValue(string_value=truncatable(value))
    if isinstance(value, (list, tuple)):
        return AttributeValue(string_value=truncatable(_format_array(value)))
    return AttributeValue(string_value=truncatable(""))


class Attributes:
    """At most 32 span attributes, counting those that had to be dropped."""

    def __init__(self) -> None:
        self.attribute_map: Dict[str, AttributeValue] = {}
        self.dropped_attributes_count = 0

    def push(self, key: str, value: Any) -> None:
        """Add one attribute, renaming known keys, or count it as dropped."""
        if len(self.attribute_map) >= MAX_ATTRIBUTES_PER_SPAN:
            self.dropped_attributes_count += 1
            return
        if len(key.encode("utf-8")) > MAX_ATTRIBUTE_KEY_BYTES:
            self.dropped_attributes_count += 1
            return
        target = next((gcp for otel, gcp in KEY_MAP if otel == key), key)
        self.attribute_map[target] = attribute_value(value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attribute_map": {k: v.to_dict() for k, v in self.attribute_map.items()},
            "dropped_attributes_count": self.dropped_attributes_count,
        }

    def __len__(self) -> int:
        return len(self.attribute_map)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Attributes):
            return NotImplemented
        return (
            self.attribute_map == other.attribute_map
            and self.dropped_attributes_count == other.dropped_attributes_count
        )

    def __repr__(self) -> str:
        return (
            f"Attributes(attribute_map={self.attribute_map!r}, "
            f"dropped_attributes_count={self.dropped_attributes_count})"
        )


AttributePairs = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def build_attributes(
    attributes: AttributePairs, resource: Optional[Resource] = None
) -> Attributes:
    """Combine resource and span attributes, resource first, into at most 32."""
    result = Attributes()
    if resource is not None:
        for key, value in resource:
            result.push(key, value)
    pairs = attributes.items() if isinstance(attributes, Mapping) else attributes
    for key, value in pairs:
        result.push(key, value)
    return result