"""Tests for row flattening and numeric helpers."""

from __future__ import annotations

import pytest

from tests.support import FakeExecutor, load_result
from pgpulse.flatten import calc_percentage, collect_rows, query_rows, safe_parse_int, value_to_text
from pgpulse.query import QueryExecutionError, QueryResult


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("", 0),
        ("abc", 0),
        ("123", 123),
        ("-42", -42),
        ("+7", 7),
        ("12.5", 0),
        (" 12", 0),
        ("1_000", 0),
        ("9223372036854775807", 9223372036854775807),
        ("9223372036854775808", 0),
    ],
)
def test_safe_parse_int(value: str, expected: int) -> None:
    assert safe_parse_int(value) == expected


def test_calc_percentage() -> None:
    assert calc_percentage(0, 0) == 0
    assert calc_percentage(3, 100) == 3
    assert calc_percentage(97, 0) == 0
    assert calc_percentage(3, 30) == 10


def test_value_to_text_handles_nulls_and_booleans() -> None:
    assert value_to_text(None) == ""
    assert value_to_text(True) == "true"
    assert value_to_text(False) == "false"
    assert value_to_text(42) == "42"


def test_collect_rows_visits_every_cell() -> None:
    result = QueryResult(columns=("datname", "size"), rows=(("postgres", 10), ("production", None)))
    seen: list[tuple[str, str]] = []

    collect_rows(result, lambda column, value: seen.append((column, value)))

    assert seen == [
        ("datname", "postgres"),
        ("size", "10"),
        ("datname", "production"),
        ("size", ""),
    ]


def test_collect_rows_ignores_missing_callback() -> None:
    collect_rows(load_result("checkpoints.txt"), None)


def test_repeated_columns_are_last_write_wins() -> None:
    result = QueryResult(columns=("value",), rows=(("1",), ("2",)))
    mx: dict[str, int] = {}

    collect_rows(result, lambda column, value: mx.__setitem__(column, safe_parse_int(value)))

    assert mx == {"value": 2}


@pytest.mark.anyio
async def test_query_rows_propagates_failures() -> None:
    executor = FakeExecutor()
    executor.expect_error("SELECT 1")

    with pytest.raises(QueryExecutionError):
        await query_rows(executor, "SELECT 1", timeout=1.0, assign=lambda column, value: None)


@pytest.mark.anyio
async def test_query_rows_passes_arguments() -> None:
    executor = FakeExecutor()
    executor.expect("SELECT $1", "database_list-2db.txt")
    names: list[str] = []

    await query_rows(executor, "SELECT $1", ["postgres"], timeout=1.0, assign=lambda _c, v: names.append(v))

    assert names == ["postgres", "production"]
    assert executor.calls == [("SELECT $1", (["postgres"],))]
