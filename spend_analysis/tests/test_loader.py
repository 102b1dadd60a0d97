from __future__ import annotations

"""
Tests del parser de órdenes: normalización por fila, reporte de descartes
y fallos fatales (entrada ilegible, esquema incompleto, fuente inexistente).
"""

import asyncio
import csv
import io
from datetime import datetime
from pathlib import Path
from typing import Any, List

import pytest

from spend_analysis.tools.orders.config import AppConfig, ColumnMap
from spend_analysis.tools.orders.exceptions import MalformedInputError, SchemaMismatch, SourceReadError
from spend_analysis.tools.orders.loader import (
    aread_source,
    clean_amounts,
    load_orders,
    parse,
    parse_with_report,
    read_source,
)

import pandas as pd


# ------------------------------ Helpers --------------------------------------

HEADERS = ["Order ID", "Order Date", "Total Owed", "Quantity", "Category"]


def _csv_text(rows: List[List[Any]], headers: List[str] = HEADERS) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(headers)
    writer.writerows(rows)
    return buf.getvalue()


# ------------------------------ Tests: normalización --------------------------


def test_scenario_drops_row_without_date():
    text = _csv_text(
        [
            ["A1", "2024-01-05", "12.18", "1", "Books"],
            ["A2", "2024-01-05", "-5.77", "1", "Electronics"],
            ["A3", "", "9.00", "1", "Books"],
        ]
    )
    orders, report = parse_with_report(text)
    assert len(orders) == 2
    assert [o.order_id for o in orders] == ["A1", "A2"]
    assert report.rows_read == 3
    assert report.dropped_missing_fields == 1
    assert report.rows_dropped == 1


@pytest.mark.parametrize("raw", ["-5.77", "'-5.77'", "(5.77)", "$-5.77"])
def test_negative_amounts_keep_their_sign(raw: str):
    orders = parse(_csv_text([["A1", "2024-01-05", raw, "1", "Books"]]))
    assert orders[0].parsed_amount == pytest.approx(-5.77)
    assert orders[0].total_owed_raw == raw


@pytest.mark.parametrize(
    "raw,expected",
    [("$1,234.56", 1234.56), ("USD 12.18", 12.18), ("12.18 EUR", 12.18), ("'7'", 7.0)],
)
def test_currency_and_separators_are_stripped(raw: str, expected: float):
    orders = parse(_csv_text([["A1", "2024-01-05", raw, "1", "Books"]]))
    assert orders[0].parsed_amount == pytest.approx(expected)


def test_non_numeric_amount_defaults_to_zero():
    orders, report = parse_with_report(_csv_text([["A1", "2024-01-05", "n/a", "1", "Books"]]))
    assert len(orders) == 1
    assert orders[0].parsed_amount == 0.0
    assert report.amounts_defaulted == 1


def test_unparseable_date_is_dropped_and_counted():
    orders, report = parse_with_report(
        _csv_text(
            [
                ["A1", "not a date", "1.00", "1", "Books"],
                ["A2", "2024-03-01T10:15:00Z", "2.00", "1", "Books"],
            ]
        )
    )
    assert [o.order_id for o in orders] == ["A2"]
    assert report.dropped_bad_date == 1


def test_dates_with_offset_are_normalized_to_utc():
    orders = parse(_csv_text([["A1", "2024-01-05T23:30:00-05:00", "1.00", "1", "Books"]]))
    assert orders[0].parsed_date == datetime(2024, 1, 6, 4, 30)
    assert orders[0].order_date_raw == "2024-01-05T23:30:00-05:00"


@pytest.mark.parametrize("raw,expected", [("3", 3), ("-2", 0), ("", 0), ("abc", 0), ("2 units", 2)])
def test_quantity_normalization(raw: str, expected: int):
    orders = parse(_csv_text([["A1", "2024-01-05", "1.00", raw, "Books"]]))
    assert orders[0].parsed_quantity == expected


def test_missing_quantity_column_defaults_to_zero():
    text = _csv_text([["2024-01-05", "4.50"]], headers=["Order Date", "Total Owed"])
    orders = parse(text)
    assert orders[0].parsed_quantity == 0
    assert orders[0].order_id == ""


def test_attributes_hold_every_non_core_column():
    orders = parse(_csv_text([["A1", "2024-01-05", "1.00", "1", "Books"]]))
    assert orders[0].attributes == {"Category": "Books"}
    assert orders[0].value_of("Category") == "Books"
    assert orders[0].value_of("Nope") == ""


def test_input_order_is_preserved():
    rows = [[f"A{i}", f"2024-01-{i:02d}", "1.00", "1", "Books"] for i in (9, 3, 7, 1)]
    orders = parse(_csv_text(rows))
    assert [o.order_id for o in orders] == ["A9", "A3", "A7", "A1"]


def test_bom_is_ignored():
    text = "\ufeff" + _csv_text([["A1", "2024-01-05", "1.00", "1", "Books"]])
    orders = parse(text.encode("utf-8"))
    assert len(orders) == 1


def test_header_only_yields_no_orders():
    orders, report = parse_with_report(_csv_text([]))
    assert orders == ()
    assert report.rows_read == 0


def test_clean_amounts_flags_defaulted_values():
    values, defaulted = clean_amounts(pd.Series(["1.50", "", "x"]))
    assert values.tolist() == [1.5, 0.0, 0.0]
    assert defaulted.tolist() == [False, True, True]


# ------------------------------ Tests: errores -------------------------------


@pytest.mark.parametrize("raw", ["", "\n\n"])
def test_empty_input_is_malformed(raw: str):
    with pytest.raises(MalformedInputError):
        parse(raw)


def test_undecodable_bytes_are_malformed():
    with pytest.raises(MalformedInputError):
        parse(b"\xff\xfe\xfa\x00Order Date")


def test_missing_required_columns_is_schema_mismatch():
    with pytest.raises(SchemaMismatch):
        parse("Foo,Bar\n1,2\n")


def test_schema_mismatch_is_a_malformed_input():
    assert issubclass(SchemaMismatch, MalformedInputError)


def test_missing_file_is_source_read_error(tmp_path: Path):
    with pytest.raises(SourceReadError):
        read_source(tmp_path / "missing.csv")


def test_read_source_accepts_streams():
    data = _csv_text([["A1", "2024-01-05", "1.00", "1", "Books"]]).encode("utf-8")
    assert read_source(io.BytesIO(data)).startswith("Order ID")


def test_aread_source_reads_file(tmp_path: Path):
    p = tmp_path / "orders.csv"
    p.write_text(_csv_text([["A1", "2024-01-05", "1.00", "1", "Books"]]), encoding="utf-8")
    text = asyncio.run(aread_source(p))
    assert "A1" in text


def test_load_orders_token_tracks_content(tmp_path: Path):
    p = tmp_path / "orders.csv"
    p.write_text(_csv_text([["A1", "2024-01-05", "1.00", "1", "Books"]]), encoding="utf-8")
    cfg = AppConfig(csv_path=p)
    first = load_orders(p, cfg)
    again = load_orders(p, cfg)
    assert first.token == again.token
    assert first.source == str(p)

    p.write_text(_csv_text([["A1", "2024-01-05", "2.00", "1", "Books"]]), encoding="utf-8")
    changed = load_orders(p, cfg)
    assert changed.token != first.token


@pytest.mark.parametrize("raw", ["18446744073709551615", "99999999999999999999"])
def test_quantity_out_of_int64_range_defaults_to_zero(raw: str):
    orders, report = parse_with_report(_csv_text([["A1", "2024-01-05", "1.00", raw, "Books"]]))
    assert orders[0].parsed_quantity == 0
    assert report.quantities_defaulted == 1


def test_huge_quantities_never_turn_negative():
    text = "Order Date,Total Owed,Quantity\n2024-01-05,1.00,18446744073709551615\n2024-01-06,1.00,99999999999999999999\n2024-01-07,1.00,4\n"
    orders = parse(text)
    assert [o.parsed_quantity for o in orders] == [0, 0, 4]


def test_token_depends_on_column_map(tmp_path: Path):
    p = tmp_path / "orders.csv"
    p.write_text("Order Date,Total Owed,Alt Total\n2024-01-05,10.00,1000.00\n", encoding="utf-8")
    default = load_orders(p, AppConfig(csv_path=p))
    alt = load_orders(p, AppConfig(csv_path=p, columns=ColumnMap(total_owed="Alt Total")))
    assert default.token != alt.token
    assert alt.orders[0].parsed_amount == 1000.0
