# spend_analysis/tools/orders/agg/base.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence
import logging

import numpy as np
import pandas as pd

from ..config import AppConfig
from ..dto import InsightsQuery, MetricLiteral, Order
from ..exceptions import InvalidParam
from ..loader import OrderRepository
from ..schema import DIMENSION, EMPTY_LABEL, PARSED_DATE, VALUE

logger = logging.getLogger(__name__)


def resolve_metric(metric: Optional[str]) -> MetricLiteral:
    m = (metric or "amount").strip().lower()
    if m not in ("amount", "quantity"):
        raise InvalidParam(f"metric debe ser 'amount' o 'quantity', no {metric!r}.")
    return m  # type: ignore[return-value]


def records_frame(records: Sequence[Order], metric: MetricLiteral, column: Optional[str] = None) -> pd.DataFrame:
    """Frame mínimo para agregar: fecha, valor de la métrica y (opcional) la dimensión.

    Conserva el orden de entrada; un valor vacío/ausente de la dimensión se agrupa como '(empty)'.
    """
    dtype = np.int64 if metric == "quantity" else float
    data: Dict[str, Any] = {
        PARSED_DATE: pd.Series([o.parsed_date for o in records], dtype="datetime64[ns]"),
        VALUE: pd.Series([o.metric_value(metric) for o in records], dtype=dtype),
    }
    if column is not None:
        data[DIMENSION] = pd.Series([o.value_of(column) or EMPTY_LABEL for o in records], dtype=object)
    return pd.DataFrame(data)


class IModeHandler(Protocol):
    """Contrato de los agregadores por modo de la fachada."""
    def run(self, repo: OrderRepository, q: InsightsQuery) -> List[Dict[str, Any]]: ...


def get_handler(mode: str, cfg: Optional[AppConfig] = None) -> IModeHandler:
    """Devuelve el handler adecuado para el modo."""
    cfg = cfg or AppConfig()
    if mode == "summary":
        from .summary import SummaryHandler
        return SummaryHandler(cfg)
    if mode == "over_time":
        from .over_time import OverTimeHandler
        return OverTimeHandler(cfg)
    if mode == "breakdown":
        from .breakdown import BreakdownHandler
        return BreakdownHandler(cfg)
    if mode in ("columns", "values"):
        from ..dimensions import DimensionsHandler
        return DimensionsHandler(cfg)
    if mode == "diagnostics":
        from ..diagnostics import DiagnosticsHandler
        return DiagnosticsHandler()
    raise InvalidParam(f"Modo no soportado: {mode}")
