# spend_analysis/tools/tool_orders.py
from __future__ import annotations

from typing import Optional, Literal, List, Dict, Any, Mapping
import dataclasses
from datetime import date, datetime
from decimal import Decimal
import math

import numpy as np
from pydantic import ValidationError

# === Capa de dominio =========================================================
from .orders.config import AppConfig
from .orders.dto import DateRange, FilterSpec, InsightsQuery
from .orders.exceptions import InvalidParam
from .orders.service import run_insights_query
from .orders.time_features import resolve_granularity

# Config por defecto
DEFAULT_CFG = AppConfig()


# ------------------------------- Helpers -------------------------------------
def _norm_mode(x: Optional[str]) -> Optional[str]:
    if not x:
        return x
    v = x.lower().strip()
    # Normalizamos parametros
    mapping = {
        # summary
        "summary": "summary",
        "totals": "summary",
        "kpis": "summary",
        "resumen": "summary",
        # over_time
        "over_time": "over_time",
        "overtime": "over_time",
        "over-time": "over_time",
        "time_series": "over_time",
        "temporal": "over_time",
        # breakdown
        "breakdown": "breakdown",
        "by_column": "breakdown",
        "by-column": "breakdown",
        "top": "breakdown",
        "tops": "breakdown",
        # catálogo de dimensiones
        "columns": "columns",
        "dimensions": "columns",
        "values": "values",
        "column_values": "values",
        # carga
        "diagnostics": "diagnostics",
        "report": "diagnostics",
    }
    return mapping.get(v, v)


def _norm_exclusions(x: Optional[Mapping[str, Any]]) -> Dict[str, List[str]]:
    if not x:
        return {}
    out: Dict[str, List[str]] = {}
    for col, values in x.items():
        if isinstance(values, str):
            values = [values]
        out[str(col)] = [str(v) for v in (values or [])]
    return out


def _json_safe(obj: Any) -> Any:
    """Convierte recursivamente a tipos JSON-serializables."""
    # escalares especiales
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        return None

    # numpy
    if isinstance(obj, np.generic):
        return _json_safe(obj.item())
    if isinstance(obj, np.ndarray):
        return [_json_safe(x) for x in obj.tolist()]

    # estructuras
    if isinstance(obj, dict):
        return {str(k): _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (set, frozenset)):
        return [_json_safe(v) for v in sorted(obj, key=str)]
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]

    # dataclass
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _json_safe(dataclasses.asdict(obj))

    # pydantic v2
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        return _json_safe(model_dump())

    return obj


def _normalize_result(result_obj: Any) -> Dict[str, Any]:
    """Normaliza y asegura JSON-safe para el payload de salida."""
    if isinstance(result_obj, dict):
        out = _json_safe(result_obj)
    else:
        model_dump = getattr(result_obj, "model_dump", None)
        if callable(model_dump):
            out = _json_safe(model_dump())
        else:
            out = _json_safe({
                "ok": False,
                "data": [],
                "error": f"Unserializable result: {type(result_obj).__name__}",
            })
    out["count"] = len(out.get("data") or [])
    return out


def _error(mode: Optional[str], message: str) -> Dict[str, Any]:
    return {"ok": False, "mode": mode, "data": [], "count": 0, "warnings": [], "error": message}


# ------------------------------- Tool pública ---------------------------------
def order_insights(
    mode: Literal["summary", "over_time", "breakdown", "columns", "values", "diagnostics"],
    metric: Optional[Literal["amount", "quantity"]] = None,
    date_from: Optional[str] = None,   # "YYYY-MM-DD" o ISO-8601 con hora
    date_to: Optional[str] = None,     # "YYYY-MM-DD" (incluye el día completo)
    exclusions: Optional[Dict[str, List[str]]] = None,
    granularity: Optional[Literal["day", "week", "month", "quarter", "year"]] = None,
    column: Optional[str] = None,
    top_n: Optional[int] = None,
    search: Optional[str] = None,
    visible: Optional[int] = None,
    app_cfg: Optional[AppConfig] = None,
) -> Dict[str, Any]:
    """
    Tool pública: KPIs, series y breakdowns sobre el historial de órdenes.

    Parámetros:
      - mode: "summary" | "over_time" | "breakdown" | "columns" | "values" | "diagnostics".
        Se aceptan sinónimos ("kpis", "time_series", "tops", "dimensions", ...).
      - metric: "amount" (Total Owed) | "quantity".
      - date_from/date_to: rango cerrado; un extremo ausente queda abierto.
      - exclusions: {columna: [valores excluidos]}.
      - granularity: solo para "over_time".
      - column/top_n: dimensión y tamaño del top para "breakdown".
      - column/search/visible: catálogo de valores para "values".

    Retorna:
      dict JSON-serializable con llaves: ok, mode, filters, warnings, meta, data, count, error.
    """
    cfg = app_cfg or DEFAULT_CFG
    mode_norm = _norm_mode(mode)

    # Validaciones ligeras
    if top_n is not None and (isinstance(top_n, bool) or not isinstance(top_n, int) or top_n < 0):
        return _error(mode_norm, f"top_n inválido: {top_n}")

    try:
        spec = FilterSpec(
            date_range=DateRange(start=date_from, end=date_to),
            metric=(metric or "amount").lower().strip(),
            column_exclusions=_norm_exclusions(exclusions),
        )
        q = InsightsQuery(
            mode=mode_norm,
            filters=spec,
            granularity=resolve_granularity(granularity) if granularity else None,
            column=column,
            top_n=top_n,
            search=search,
            visible=visible,
            locale=cfg.locale,
            currency=cfg.currency,
        )
    except InvalidParam as exc:
        return _error(mode_norm, str(exc))
    except ValidationError as exc:
        return _error(mode_norm, f"Parámetros inválidos: {exc.errors()[0].get('msg', exc)}")

    try:
        result_obj = run_insights_query(q=q, app_cfg=cfg)
        return _normalize_result(result_obj)
    except Exception as exc:
        return _error(mode_norm, f"{type(exc).__name__}: {exc}")
