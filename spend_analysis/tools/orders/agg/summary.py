# spend_analysis/tools/orders/agg/summary.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
import logging

import pandas as pd

from ..cache import build_query_key, get_or_compute, handler_cache
from ..config import AppConfig
from ..dto import InsightsQuery, MetricLiteral, Order, SummaryStats
from ..filters import apply_filter
from ..i18n import add_formatted_fields, format_date_range
from ..loader import OrderRepository
from ..schema import PARSED_AMOUNT, PARSED_DATE, PARSED_QUANTITY
from .base import IModeHandler, resolve_metric

logger = logging.getLogger(__name__)


def summarize(records: Sequence[Order], metric: MetricLiteral = "amount") -> SummaryStats:
    """Totales del conjunto filtrado. Con 0 órdenes: total 0, promedio 0 y fechas None."""
    metric = resolve_metric(metric)
    if not records:
        return SummaryStats(metric=metric)

    df = pd.DataFrame(
        {
            PARSED_DATE: pd.Series([o.parsed_date for o in records], dtype="datetime64[ns]"),
            PARSED_AMOUNT: pd.Series([o.parsed_amount for o in records], dtype=float),
            PARSED_QUANTITY: pd.Series([o.parsed_quantity for o in records], dtype="int64"),
        }
    )
    count = int(len(df))
    total_amount = float(df[PARSED_AMOUNT].sum())
    total_quantity = int(df[PARSED_QUANTITY].sum())
    total = float(total_quantity) if metric == "quantity" else total_amount

    return SummaryStats(
        metric=metric,
        total=total,
        count=count,
        average=total / count,
        date_min=df[PARSED_DATE].min().to_pydatetime(),
        date_max=df[PARSED_DATE].max().to_pydatetime(),
        total_amount=total_amount,
        total_quantity=total_quantity,
        average_amount=total_amount / count,
    )


class SummaryHandler(IModeHandler):
    """Tarjetas de resumen: total de la métrica, # de órdenes, ticket promedio y rango de fechas."""

    def __init__(self, cfg: Optional[AppConfig] = None) -> None:
        self._cfg = cfg or AppConfig()

    def run(self, repo: OrderRepository, q: InsightsQuery) -> List[Dict[str, Any]]:
        key = build_query_key(repo.token, q, extra={"handler": "summary"})

        def _compute() -> List[Dict[str, Any]]:
            filtered = apply_filter(repo.orders, q.filters)
            stats = summarize(filtered, q.filters.metric)
            row = add_formatted_fields(
                stats.model_dump(),
                metric_fields=("total", "average"),
                metric=stats.metric,
                currency_fields=("total_amount", "average_amount"),
            )
            row["date_range_label"] = format_date_range(stats.date_min, stats.date_max)
            return [row]

        return get_or_compute(handler_cache("summary", self._cfg.cache_max_items), key, _compute)
