# spend_analysis/tools/orders/agg/breakdown.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..cache import build_query_key, get_or_compute, handler_cache
from ..config import AppConfig
from ..dimensions import default_breakdown_column, selectable_columns
from ..dto import Breakdown, BreakdownEntry, InsightsQuery, MetricLiteral, Order, OthersBucket
from ..exceptions import InvalidParam
from ..filters import apply_filter
from ..i18n import format_metric
from ..loader import OrderRepository
from ..schema import DIMENSION, EMPTY_LABEL, VALUE
from ..validators import resolve_top_n
from .base import IModeHandler, records_frame, resolve_metric

logger = logging.getLogger(__name__)


def breakdown_by(
    records: Sequence[Order],
    metric: MetricLiteral,
    column: str,
    top_n: int,
    drop_non_positive: bool = True,
) -> Breakdown:
    """Top-N de la métrica agrupada por `column` más un bucket 'others' con el resto.

    - Valor vacío/ausente -> grupo '(empty)' (no se descarta la fila).
    - drop_non_positive: los grupos con suma <= 0 no se muestran ni se pliegan en 'others'.
    - Orden descendente estable: ante empates se conserva el orden de primera aparición.
    """
    metric = resolve_metric(metric)
    if top_n < 0:
        raise InvalidParam(f"top_n no puede ser negativo ({top_n}).")
    out = Breakdown(column=column, metric=metric, top_n=top_n)
    if not records:
        return out
    if column not in selectable_columns(records):
        logger.warning("Columna %r no existe en las órdenes: todo cae en %r.", column, EMPTY_LABEL)

    df = records_frame(records, metric, column=column)
    # sort=False: grupos en orden de primera aparición (base del desempate)
    totals = df.groupby(DIMENSION, sort=False)[VALUE].sum()

    if drop_non_positive:
        positive = totals[totals > 0]
        out.dropped_non_positive = int(len(totals) - len(positive))
        totals = positive

    totals = totals.sort_values(ascending=False, kind="mergesort")
    top = totals.iloc[:top_n]
    rest = totals.iloc[top_n:]

    out.entries = [BreakdownEntry(dimension_value=str(name), value=float(value)) for name, value in top.items()]
    out.others = OthersBucket(count=int(len(rest)), sum=float(rest.sum()) if len(rest) else 0.0)
    return out


class BreakdownHandler(IModeHandler):
    """Breakdown por una dimensión libre del export (categoría, medio de pago, estado, ...)."""

    def __init__(self, cfg: Optional[AppConfig] = None) -> None:
        self._cfg = cfg or AppConfig()

    def run(self, repo: OrderRepository, q: InsightsQuery) -> List[Dict[str, Any]]:
        column = q.column or default_breakdown_column(selectable_columns(repo.orders), self._cfg.breakdown_column)
        if column is None:
            return []
        top_n = resolve_top_n(q.top_n, self._cfg).value
        key = build_query_key(
            repo.token, q, extra={"handler": "breakdown", "column": column, "top_n": top_n, "drop": self._cfg.drop_non_positive}
        )

        def _compute() -> List[Dict[str, Any]]:
            filtered = apply_filter(repo.orders, q.filters)
            bd = breakdown_by(filtered, q.filters.metric, column, top_n, self._cfg.drop_non_positive)
            visible = bd.visible_total
            rows: List[Dict[str, Any]] = [
                {
                    "column": column,
                    "dimension_value": e.dimension_value,
                    "value": e.value,
                    "share": e.value / visible if visible > 0 else 0.0,
                    "value_fmt": format_metric(e.value, bd.metric),
                    "is_others": False,
                }
                for e in bd.entries
            ]
            if not bd.others.is_empty:
                rows.append(
                    {
                        "column": column,
                        "dimension_value": f"Others ({bd.others.count})",
                        "value": bd.others.sum,
                        "share": bd.others.sum / visible if visible > 0 else 0.0,
                        "value_fmt": format_metric(bd.others.sum, bd.metric),
                        "is_others": True,
                        "others_count": bd.others.count,
                    }
                )
            return rows

        return get_or_compute(handler_cache("breakdown", self._cfg.cache_max_items), key, _compute)
