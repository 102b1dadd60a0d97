# spend_analysis/tools/orders/formatters.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

from .dto import FilterEcho, InsightsQuery, InsightsResult, MetaInfo


def build_filter_echo(
    q: InsightsQuery,
    top_n_resolved: Optional[int],
    column_resolved: Optional[str] = None,
) -> FilterEcho:
    spec = q.filters
    return FilterEcho(
        date_from=spec.date_range.start,
        date_to=spec.date_range.end,
        metric=spec.metric,
        exclusions={col: sorted(values) for col, values in sorted(spec.column_exclusions.items())},
        granularity=q.granularity,
        column=column_resolved or q.column,
        top_n=top_n_resolved,
        locale=q.locale,
        currency=q.currency,
    )


def build_meta(row_count: int, orders_total: int, orders_matched: int, locale: str, currency: str) -> MetaInfo:
    ts = datetime.now(tz=timezone.utc).isoformat(timespec="seconds")
    return MetaInfo(
        row_count=row_count,
        orders_total=orders_total,
        orders_matched=orders_matched,
        generated_at=ts,
        currency=currency,
        locale=locale,
    )


def to_result(
    mode: str,
    filters: FilterEcho,
    data: List[Dict[str, Any]],
    warnings: Optional[List[str]] = None,
    orders_total: int = 0,
    orders_matched: int = 0,
) -> InsightsResult:
    meta = build_meta(
        row_count=len(data),
        orders_total=orders_total,
        orders_matched=orders_matched,
        locale=filters.locale,
        currency=filters.currency,
    )
    return InsightsResult(ok=True, mode=mode, filters=filters, warnings=warnings or [], meta=meta, data=data)


def to_error(mode: str, filters: FilterEcho, error: str, detail: Optional[str] = None) -> InsightsResult:
    """Respuesta ok=False con el mismo sobre que un resultado exitoso."""
    meta = build_meta(row_count=0, orders_total=0, orders_matched=0, locale=filters.locale, currency=filters.currency)
    data: List[Dict[str, Any]] = [{"error": error, "detail": detail}] if detail else [{"error": error}]
    return InsightsResult(ok=False, mode=mode, filters=filters, warnings=[], meta=meta, data=data, error=error)
