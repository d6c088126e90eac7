"""Server objects returned by the Serveradmin API."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any


class ServerObject(Mapping[str, Any]):
    """Read-only attribute map of one Serveradmin object.

    JSON has a single number type, so integral floats are handed back as
    ``int`` by :meth:`get`. Item access (``obj["x"]``, ``dict(obj)``)
    returns the values exactly as decoded.
    """

    def __init__(self, attributes: Mapping[str, Any] | None = None):
        self._attributes = dict(attributes or {})

    @property
    def attributes(self) -> Mapping[str, Any]:
        return MappingProxyType(self._attributes)

    def get(self, attribute: str, default: Any = None) -> Any:
        if attribute not in self._attributes:
            return default
        value = self._attributes[attribute]
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    def get_string(self, attribute: str) -> str | None:
        """The attribute if it is a string, else None."""
        value = self._attributes.get(attribute)
        return value if isinstance(value, str) else None

    @property
    def object_id(self) -> int | None:
        value = self.get("object_id")
        return value if isinstance(value, int) and not isinstance(value, bool) else None

    def __getitem__(self, attribute: str) -> Any:
        """The decoded value, without the integer normalisation of :meth:`get`."""
        return self._attributes[attribute]

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __repr__(self) -> str:
        return f"ServerObject({self._attributes!r})"


ServerObjects = list[ServerObject]
