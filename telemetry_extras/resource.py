"""Resources: immutable sets of attributes describing a telemetry source."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, Optional, Tuple, Union

AttributeValue = Any
AttributeSource = Union[Mapping[str, AttributeValue], Iterable[Tuple[str, AttributeValue]]]


class Resource:
    """An immutable collection of key/value attributes.

    Iterating yields ``(key, value)`` pairs in insertion order; ``in`` tests
    for a key. When a key is given more than once, the last value wins.
    """

    __slots__ = ("_attributes", "_schema_url")

    def __init__(
        self,
        attributes: Optional[AttributeSource] = None,
        schema_url: Optional[str] = None,
    ) -> None:
        if attributes is None:
            pairs: Iterable[Tuple[str, AttributeValue]] = ()
        elif isinstance(attributes, Mapping):
            pairs = attributes.items()
        else:
            pairs = attributes
        self._attributes = MappingProxyType(dict(pairs))
        self._schema_url = schema_url

    @property
    def attributes(self) -> Mapping[str, AttributeValue]:
        """A read-only view of the attributes."""
        return self._attributes

    @property
    def schema_url(self) -> Optional[str]:
        """The schema URL of the resource, if any."""
        return self._schema_url

    def get(self, key: str) -> Optional[AttributeValue]:
        """Return the value for ``key``, or None when it is absent."""
        return self._attributes.get(key)

    def __len__(self) -> int:
        return len(self._attributes)

    def __iter__(self) -> Iterator[Tuple[str, AttributeValue]]:
        return iter(self._attributes.items())

    def __contains__(self, key: object) -> bool:
        return key in self._attributes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return NotImplemented
        return (
            dict(self._attributes) == dict(other._attributes)
            and self._schema_url == other._schema_url
        )

    def __hash__(self) -> int:
        return hash((tuple(sorted(self._attributes)), self._schema_url))

    def __repr__(self) -> str:
        return f"Resource({dict(self._attributes)!r}, schema_url={self._schema_url!r})"


class ResourceDetector:
    """Base class for objects that detect a resource from the environment."""

    def detect(self) -> Resource:
        """Return the detected resource."""
        raise NotImplementedError(f"{type(self).__name__} must implement detect()")