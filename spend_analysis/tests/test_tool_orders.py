from __future__ import annotations

"""
Tests de integración ligera para spend_analysis.tools.tool_orders.order_insights.

Principios:
- Datos sintéticos mínimos (rápidos y deterministas).
- Validación del contrato: ok/count/data/meta y forma básica de los registros.
- Verificación de orden y top_n en el breakdown.
- Manejo de errores (modo inválido, parámetros inválidos, CSV inexistente o sin esquema).
"""

from pathlib import Path
from typing import Any, List
import csv
import json
import pytest

from spend_analysis.tools.tool_orders import order_insights
from spend_analysis.tools.orders.config import AppConfig, ColumnMap


# ------------------------------ Helpers --------------------------------------


def _write_csv(path: Path, rows: List[List[Any]]) -> None:
    """Escribe CSV con encabezados del export de órdenes."""
    headers = [
        "Order ID",
        "Order Date",
        "Total Owed",
        "Quantity",
        "Category",
        "Payment Instrument Type",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        writer.writerows(rows)


@pytest.fixture()
def mini_csv(tmp_path: Path) -> Path:
    """
    CSV sintético con 5 filas (una sin fecha), 3 categorías y 3 medios de pago en 3 meses.
    """
    p = tmp_path / "orders.csv"
    rows = [
        # id,  date,                    owed,    qty, category,      payment
        ["O1", "2024-01-05",            "12.18", "1", "Books",       "Visa"],
        ["O2", "2024-01-05",            "-5.77", "1", "Electronics", "Visa"],
        ["O3", "",                      "9.00",  "1", "Books",       "Visa"],
        ["O4", "2024-02-10",            "$20.00", "2", "Toys",       "Mastercard"],
        ["O5", "2024-03-15T10:00:00Z",  "7.50",  "3", "Books",       "Gift Card"],
    ]
    _write_csv(p, rows)
    return p


def _cfg_for(path: Path) -> AppConfig:
    """Configura la tool para leer el CSV sintético temporal."""
    return AppConfig(csv_path=path)


# ------------------------------ Tests: happy paths ----------------------------


def test_summary_all_orders(mini_csv: Path) -> None:
    out = order_insights("summary", app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    assert out["count"] == 1
    row = out["data"][0]
    assert row["count"] == 4
    assert row["total"] == pytest.approx(33.91)
    assert row["total_fmt"] == "$33.91"
    assert row["date_range_label"] == "Jan 5, 2024 - Mar 15, 2024"
    assert out["meta"]["orders_total"] == 4


def test_summary_with_date_range(mini_csv: Path) -> None:
    out = order_insights("summary", date_from="2024-01-01", date_to="2024-01-31", app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    row = out["data"][0]
    assert row["count"] == 2
    assert row["total"] == pytest.approx(6.41)
    assert row["average"] == pytest.approx(3.205)
    assert out["meta"]["orders_matched"] == 2
    assert out["filters"]["date_to"] == "2024-01-31T23:59:59.999999"


def test_summary_quantity_metric(mini_csv: Path) -> None:
    out = order_insights("kpis", metric="quantity", app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    assert out["mode"] == "summary"
    assert out["data"][0]["total"] == 7
    assert out["data"][0]["total_fmt"] == "7"


def test_summary_with_exclusions(mini_csv: Path) -> None:
    out = order_insights("summary", exclusions={"Category": ["Toys"]}, app_cfg=_cfg_for(mini_csv))
    assert out["data"][0]["total"] == pytest.approx(13.91)
    assert out["filters"]["exclusions"] == {"Category": ["Toys"]}


def test_over_time_month(mini_csv: Path) -> None:
    out = order_insights("over_time", granularity="month", app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    assert out["count"] == 3
    keys = [r["bucket_key"] for r in out["data"]]
    assert keys == ["2024-01-01", "2024-02-01", "2024-03-01"]
    assert [r["bucket_label"] for r in out["data"]] == ["Jan 2024", "Feb 2024", "Mar 2024"]
    assert out["data"][0]["value"] == pytest.approx(6.41)


def test_over_time_accepts_granularity_aliases(mini_csv: Path) -> None:
    out = order_insights("time_series", granularity="quarterly", app_cfg=_cfg_for(mini_csv))  # type: ignore[arg-type]
    assert out["ok"] is True
    assert [r["bucket_label"] for r in out["data"]] == ["Q1 2024"]


def test_breakdown_default_column(mini_csv: Path) -> None:
    out = order_insights("breakdown", app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    assert out["filters"]["column"] == "Payment Instrument Type"
    assert [r["dimension_value"] for r in out["data"]] == ["Mastercard", "Gift Card", "Visa"]
    values = [r["value"] for r in out["data"]]
    assert all(values[i] >= values[i + 1] for i in range(len(values) - 1))


def test_breakdown_top_n_and_others(mini_csv: Path) -> None:
    out = order_insights("tops", column="Category", top_n=1, app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    assert out["count"] == 2
    first, others = out["data"]
    assert first["dimension_value"] == "Toys"
    assert others["is_others"] is True
    assert others["dimension_value"] == "Others (1)"
    assert others["value"] == pytest.approx(19.68)
    # Electronics (suma negativa) no aparece ni en el top ni en others
    assert out["filters"]["top_n"] == 1


def test_columns_catalog(mini_csv: Path) -> None:
    out = order_insights("columns", exclusions={"Category": ["Toys"]}, app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    by_col = {r["column"]: r for r in out["data"]}
    assert list(by_col) == ["Category", "Payment Instrument Type"]
    assert by_col["Category"]["distinct_values"] == 3
    assert by_col["Category"]["excluded_count"] == 1


def test_values_search_and_paging(mini_csv: Path) -> None:
    cfg = _cfg_for(mini_csv)
    out = order_insights("values", column="Category", search="OO", app_cfg=cfg)
    assert [v["value"] for v in out["data"][0]["values"]] == ["Books"]

    paged = order_insights("values", column="Category", visible=1, exclusions={"Category": ["Books"]}, app_cfg=cfg)
    page = paged["data"][0]
    assert page["values"] == [{"value": "Books", "excluded": True}]
    assert page["total"] == 3
    assert page["remaining"] == 2


def test_diagnostics_report(mini_csv: Path) -> None:
    out = order_insights("diagnostics", app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    report = out["data"][0]
    assert report["rows_read"] == 5
    assert report["rows_kept"] == 4
    assert report["dropped_missing_fields"] == 1


def test_payload_is_json_serializable(mini_csv: Path) -> None:
    out = order_insights("over_time", granularity="week", app_cfg=_cfg_for(mini_csv))
    json.dumps(out)


def test_inverted_range_warns_and_matches_nothing(mini_csv: Path) -> None:
    out = order_insights("summary", date_from="2024-03-01", date_to="2024-01-01", app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is True
    assert out["warnings"]
    assert out["data"][0]["count"] == 0
    assert out["data"][0]["date_range_label"] == "No Data"


# ------------------------------ Tests: errores -------------------------------


def test_invalid_mode(mini_csv: Path) -> None:
    out = order_insights("by_merchant", app_cfg=_cfg_for(mini_csv))  # type: ignore[arg-type]
    assert out["ok"] is False
    assert out["error"]


def test_invalid_top_n(mini_csv: Path) -> None:
    out = order_insights("breakdown", top_n=-1, app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is False
    assert "top_n" in out["error"]


def test_values_requires_column(mini_csv: Path) -> None:
    out = order_insights("values", app_cfg=_cfg_for(mini_csv))
    assert out["ok"] is False
    assert "column" in out["error"]


def test_invalid_metric(mini_csv: Path) -> None:
    out = order_insights("summary", metric="revenue", app_cfg=_cfg_for(mini_csv))  # type: ignore[arg-type]
    assert out["ok"] is False


def test_missing_csv(tmp_path: Path) -> None:
    out = order_insights("summary", app_cfg=_cfg_for(tmp_path / "nope.csv"))
    assert out["ok"] is False
    assert out["error"]


def test_schema_mismatch(tmp_path: Path) -> None:
    p = tmp_path / "bad.csv"
    p.write_text("foo,bar\n1,2\n", encoding="utf-8")
    out = order_insights("summary", app_cfg=_cfg_for(p))
    assert out["ok"] is False
    assert "Faltan columnas" in out["error"]


# ------------------------------ Tests: config por consulta --------------------


def test_column_maps_over_same_file_do_not_share_results(tmp_path: Path) -> None:
    p = tmp_path / "alt.csv"
    with p.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["Order Date", "Total Owed", "Alt Total", "Category"])
        writer.writerow(["2024-01-05", "10.00", "1000.00", "Books"])

    default = order_insights("summary", app_cfg=AppConfig(csv_path=p))
    alt = order_insights("summary", app_cfg=AppConfig(csv_path=p, columns=ColumnMap(total_owed="Alt Total")))
    assert default["data"][0]["total"] == pytest.approx(10.0)
    assert alt["data"][0]["total"] == pytest.approx(1000.0)

    again = order_insights("summary", app_cfg=AppConfig(csv_path=p))
    assert again["data"][0]["total"] == pytest.approx(10.0)


def test_breakdown_shares_cover_visible_total(mini_csv: Path) -> None:
    out = order_insights("breakdown", column="Category", top_n=1, app_cfg=_cfg_for(mini_csv))
    shares = [r["share"] for r in out["data"]]
    assert sum(shares) == pytest.approx(1.0)
    assert shares[0] == pytest.approx(20.0 / 39.68)
