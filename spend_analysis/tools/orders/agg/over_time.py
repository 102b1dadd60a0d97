# spend_analysis/tools/orders/agg/over_time.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
import logging

from ..cache import build_query_key, get_or_compute, handler_cache
from ..config import AppConfig
from ..dto import GranularityLiteral, InsightsQuery, MetricLiteral, Order, TimeBucket, TimeSeries
from ..filters import apply_filter
from ..i18n import format_metric
from ..loader import OrderRepository
from ..schema import PARSED_DATE, VALUE
from ..time_features import bucket_key, bucket_label, bucket_starts, resolve_granularity
from .base import IModeHandler, records_frame, resolve_metric

logger = logging.getLogger(__name__)


def bucket_by_time(
    records: Sequence[Order],
    metric: MetricLiteral = "amount",
    granularity: GranularityLiteral = "day",
    week_start: str = "monday",
) -> TimeSeries:
    """Suma la métrica por periodo (day | week | month | quarter | year).

    - Clave de cada bucket = fecha ISO del inicio del periodo.
    - Semana: inicia en `week_start` (lunes por defecto), fijo e independiente del locale.
    - Orden CRONOLÓGICO ascendente por inicio de periodo, nunca por etiqueta.
    """
    metric = resolve_metric(metric)
    grain = resolve_granularity(granularity)
    series = TimeSeries(metric=metric, granularity=grain, week_start=week_start)  # type: ignore[arg-type]
    if not records:
        return series

    df = records_frame(records, metric)
    df = df.assign(period_start=bucket_starts(df[PARSED_DATE], grain, week_start))

    # groupby ordena por la clave temporal (sort=True)
    g = df.groupby("period_start", sort=True)
    ot = g.agg(value=(VALUE, "sum"), orders=(VALUE, "size")).reset_index()

    series.buckets = [
        TimeBucket(
            bucket_key=bucket_key(start),
            bucket_label=bucket_label(start, grain),
            bucket_start=start.to_pydatetime(),
            value=float(value),
            orders=int(orders),
        )
        for start, value, orders in zip(ot["period_start"], ot["value"], ot["orders"])
    ]
    return series


class OverTimeHandler(IModeHandler):
    """Serie temporal de la métrica seleccionada sobre el conjunto filtrado."""

    def __init__(self, cfg: Optional[AppConfig] = None) -> None:
        self._cfg = cfg or AppConfig()

    def run(self, repo: OrderRepository, q: InsightsQuery) -> List[Dict[str, Any]]:
        grain = resolve_granularity(q.granularity or self._cfg.granularity)
        key = build_query_key(repo.token, q, extra={"handler": "over_time", "grain": grain, "week_start": self._cfg.week_start})

        def _compute() -> List[Dict[str, Any]]:
            filtered = apply_filter(repo.orders, q.filters)
            ts = bucket_by_time(filtered, q.filters.metric, grain, self._cfg.week_start)  # type: ignore[arg-type]
            return [
                {**b.model_dump(), "value_fmt": format_metric(b.value, ts.metric)}
                for b in ts.buckets
            ]

        return get_or_compute(handler_cache("over_time", self._cfg.cache_max_items), key, _compute)
