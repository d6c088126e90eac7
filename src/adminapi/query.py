"""
Queries against the Serveradmin dataset API.

Example::

    query = Query.from_string("hostname=regexp(web.*) state=online")
    query.set_attributes(["hostname", "intern_ip"])
    for server in query.all():
        print(server.get("hostname"), server.get("intern_ip"))
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from adminapi.client import AdminapiClient
from adminapi.exceptions import ObjectCountError
from adminapi.filters import FilterNode, Filters
from adminapi.objects import ServerObject, ServerObjects
from adminapi.parse import parse_query

logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTES = ("hostname",)
OBJECT_ID = "object_id"


class Query:
    """Filters plus the attributes to fetch, loaded lazily from the service.

    The first call to :meth:`all`, :meth:`count` or :meth:`one` sends the
    request; later calls reuse the result.
    Without a *client*, one is built from the settings for that request
    and closed afterwards.
    """

    def __init__(
        self,
        filters: Filters | dict[str, FilterNode] | None = None,
        restrict: Iterable[str] | None = None,
        order_by: str | None = None,
        client: AdminapiClient | None = None,
    ):
        self.filters = filters if isinstance(filters, Filters) else Filters(filters or {})
        self.restrict = list(restrict) if restrict is not None else list(DEFAULT_ATTRIBUTES)
        self.order_by = order_by
        self._client = client
        self._objects: ServerObjects | None = None

    @classmethod
    def from_string(cls, query: str, **kwargs: Any) -> Query:
        """Create a query from query text, see :func:`adminapi.parse.parse_query`."""
        return cls(parse_query(query), **kwargs)

    def set_attributes(self, attributes: Iterable[str]) -> None:
        self.restrict = list(attributes)

    def add_filter(self, attribute: str, value: FilterNode) -> None:
        self.filters.add_filter(attribute, value)

    @property
    def loaded(self) -> bool:
        return self._objects is not None

    def request_payload(self) -> dict[str, Any]:
        """The JSON body sent to the query endpoint.

        ``object_id`` is always fetched since objects are addressed by it.
        """
        if OBJECT_ID not in self.restrict:
            self.restrict.append(OBJECT_ID)
        payload: dict[str, Any] = {
            "filters": self.filters.to_wire(),
            "restrict": list(self.restrict),
        }
        if self.order_by:
            payload["order_by"] = self.order_by
        return payload

    def _load(self) -> ServerObjects:
        if self._objects is None:
            payload = self.request_payload()
            logger.debug("Loading query", extra={"filters": payload["filters"]})
            if self._client is not None:
                result = self._client.query(payload)
            else:
                with AdminapiClient.from_settings() as client:
                    result = client.query(payload)
            self._objects = [ServerObject(attributes) for attributes in result]
        return self._objects

    def all(self) -> ServerObjects:
        """All matching objects."""
        return list(self._load())

    def count(self) -> int:
        return len(self._load())

    def one(self) -> ServerObject:
        """The single matching object.

        Raises:
            ObjectCountError: If zero or several objects match.
        """
        objects = self._load()
        if len(objects) != 1:
            raise ObjectCountError(len(objects))
        return objects[0]

    def __repr__(self) -> str:
        return (
            f"Query(filters={self.filters!r}, restrict={self.restrict!r}, "
            f"order_by={self.order_by!r})"
        )


def new_object(servertype: str, client: AdminapiClient | None = None) -> ServerObject:
    """Default attributes for a new object of *servertype*.

    Without *client*, a client is built from the settings and closed again.
    """
    if client is not None:
        return ServerObject(client.new_object(servertype))
    with AdminapiClient.from_settings() as owned:
        return ServerObject(owned.new_object(servertype))
