"""Query filters for reads and streams.

A filter orders the children of a location and then restricts them by
range, equality or count. It serializes to query parameters:

    Filter.order_by_property("height").start_at(3).limit_to_first(10).build()
    # {"orderBy": '"height"', "startAt": "3", "limitToFirst": "10"}
"""

from __future__ import annotations

import json
from typing import Any


class Filter:
    """An ordered set of filter query parameters."""

    def __init__(self, filters: dict[str, str]):
        self._filters = dict(filters)

    @property
    def filters(self) -> dict[str, str]:
        return dict(self._filters)

    @classmethod
    def order_by_property(cls, name: str) -> FilterBuilder:
        """Order children by the value of their child ``name``."""
        return FilterBuilder(name)

    @classmethod
    def order_by_key(cls) -> FilterBuilder:
        return FilterBuilder("$key")

    @classmethod
    def order_by_value(cls) -> FilterBuilder:
        return FilterBuilder("$value")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return self._filters == other._filters

    def __repr__(self) -> str:
        return f"Filter({self._filters!r})"


class FilterBuilder:
    """Chainable builder returned by the ``Filter.order_by_*`` constructors."""

    def __init__(self, order_by: str):
        self._filters: dict[str, str] = {"orderBy": json.dumps(order_by)}

    def limit_to_first(self, count: int) -> FilterBuilder:
        return self._limit("limitToFirst", count)

    def limit_to_last(self, count: int) -> FilterBuilder:
        return self._limit("limitToLast", count)

    def start_at(self, value: Any) -> FilterBuilder:
        return self._value("startAt", value)

    def end_at(self, value: Any) -> FilterBuilder:
        return self._value("endAt", value)

    def equal_to(self, value: Any) -> FilterBuilder:
        return self._value("equalTo", value)

    def build(self) -> Filter:
        return Filter(self._filters)

    def _limit(self, key: str, count: int) -> FilterBuilder:
        if count <= 0:
            raise ValueError(f"{key} must be positive, got {count}")
        self._filters[key] = str(count)
        return self

    def _value(self, key: str, value: Any) -> FilterBuilder:
        self._filters[key] = json.dumps(value)
        return self
