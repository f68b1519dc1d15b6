"""Unit tests for query filters."""

from __future__ import annotations

import pytest

from firebase_database_rest import Filter


class TestFilter:
    def test_order_by_property(self) -> None:
        query = Filter.order_by_property("height").build()
        assert query.filters == {"orderBy": '"height"'}

    def test_order_by_key_and_value(self) -> None:
        assert Filter.order_by_key().build().filters == {"orderBy": '"$key"'}
        assert Filter.order_by_value().build().filters == {"orderBy": '"$value"'}

    def test_values_are_json_encoded(self) -> None:
        query = Filter.order_by_property("name").start_at("a").end_at("m").build()
        assert query.filters["startAt"] == '"a"'
        assert query.filters["endAt"] == '"m"'

        numbers = Filter.order_by_value().equal_to(3.5).build()
        assert numbers.filters["equalTo"] == "3.5"

        flags = Filter.order_by_property("done").equal_to(True).build()
        assert flags.filters["equalTo"] == "true"

    def test_limits(self) -> None:
        query = Filter.order_by_key().limit_to_first(10).build()
        assert query.filters["limitToFirst"] == "10"
        query = Filter.order_by_key().limit_to_last(2).build()
        assert query.filters["limitToLast"] == "2"

    def test_limit_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            Filter.order_by_key().limit_to_first(0)

    def test_keeps_insertion_order(self) -> None:
        query = Filter.order_by_key().end_at("z").limit_to_last(5).build()
        assert list(query.filters) == ["orderBy", "endAt", "limitToLast"]

    def test_filters_is_a_copy(self) -> None:
        query = Filter.order_by_key().build()
        query.filters["orderBy"] = "changed"
        assert query.filters == {"orderBy": '"$key"'}

    def test_equality(self) -> None:
        assert Filter.order_by_key().limit_to_first(1).build() == Filter(
            {"orderBy": '"$key"', "limitToFirst": "1"}
        )
