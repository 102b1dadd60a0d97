# spend_analysis/tools/orders/service.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import List, Dict, Any, Optional, Tuple
import logging

from .agg.base import get_handler
from .agg.breakdown import breakdown_by
from .agg.over_time import bucket_by_time
from .agg.summary import summarize
from .cache import ResultGate
from .config import AppConfig
from .dimensions import default_breakdown_column, selectable_columns
from .dto import ActiveFilter, Breakdown, FilterSpec, InsightsQuery, InsightsResult, Order, SummaryStats, TimeSeries
from .exceptions import OrdersError
from .filter_state import FilterStateManager, default_filter_spec
from .filters import apply_filter
from .formatters import build_filter_echo, to_error, to_result
from .loader import OrderRepository, Source, aread_source, get_repo, load_orders
from .validators import filter_warnings, resolve_top_n, validate_query

logger = logging.getLogger(__name__)


def run_insights_query(
    q: InsightsQuery,
    app_cfg: Optional[AppConfig] = None,
    repo: Optional[OrderRepository] = None,
) -> InsightsResult:
    """
    Punto de entrada del core. Orquesta:
    validación -> repo -> handler -> payload (InsightsResult).
    """
    cfg = app_cfg or AppConfig()
    try:
        validate_query(q, cfg)

        top_n = resolve_top_n(q.top_n, cfg).value if q.mode == "breakdown" else None
        filters = build_filter_echo(q, top_n_resolved=top_n)
        warnings = filter_warnings(q.filters)

        repo = repo or get_repo(cfg)
        handler = get_handler(q.mode, cfg)

        data: List[Dict[str, Any]] = handler.run(repo, q)
        if q.mode == "breakdown" and data:
            filters = build_filter_echo(q, top_n_resolved=top_n, column_resolved=data[0]["column"])
        if repo.is_empty:
            warnings.append("no orders loaded.")
        return to_result(
            mode=q.mode,
            filters=filters,
            data=data,
            warnings=warnings,
            orders_total=len(repo.orders),
            orders_matched=len(apply_filter(repo.orders, q.filters)),
        )

    except OrdersError as oe:
        logger.exception("Error de dominio en orders service.")
        return to_error(q.mode, build_filter_echo(q, top_n_resolved=None), str(oe))
    except Exception as ex:
        logger.exception("Fallo no controlado en orders service.")
        return to_error(q.mode, build_filter_echo(q, top_n_resolved=None), "Unexpected error", detail=str(ex))


# ------------------------------- Sesión interactiva -------------------------------


@dataclass(frozen=True)
class DashboardView:
    """Todo lo que necesita una vista para renderizar un estado de filtros."""
    spec: FilterSpec
    summary: SummaryStats
    series: TimeSeries
    breakdown: Optional[Breakdown]
    active_filters: Tuple[ActiveFilter, ...]
    columns: Tuple[str, ...]


class InsightsSession:
    """Repositorio vigente + estado de filtros + parámetros de vista.

    Un upload fallido deja intacta la carga anterior. Los recálculos
    asíncronos pasan por un ResultGate: uno superado nunca se publica.
    """

    def __init__(self, cfg: Optional[AppConfig] = None, now: Optional[datetime] = None) -> None:
        self._cfg = cfg or AppConfig()
        self._repo: Optional[OrderRepository] = None
        self._gate: ResultGate[DashboardView] = ResultGate()
        self.filters = FilterStateManager(default_filter_spec(now or datetime.now()))
        self.granularity: str = self._cfg.granularity
        self.breakdown_column: Optional[str] = None
        self.top_n: int = self._cfg.top_n_default

    @property
    def repo(self) -> Optional[OrderRepository]:
        return self._repo

    @property
    def orders(self) -> Tuple[Order, ...]:
        return self._repo.orders if self._repo is not None else tuple()

    @property
    def latest(self) -> Optional[DashboardView]:
        return self._gate.latest

    def _install(self, repo: OrderRepository) -> OrderRepository:
        self._repo = repo
        columns = selectable_columns(repo.orders)
        if self.breakdown_column not in columns:
            self.breakdown_column = default_breakdown_column(columns, self._cfg.breakdown_column)
        return repo

    def upload(self, source: Source) -> OrderRepository:
        try:
            repo = load_orders(source, self._cfg)
        except OrdersError:
            logger.warning("Upload rechazado; se conserva la carga anterior.")
            raise
        return self._install(repo)

    def upload_text(self, raw: str) -> OrderRepository:
        try:
            repo = load_orders("<memory>", self._cfg, text=raw)
        except OrdersError:
            logger.warning("Upload rechazado; se conserva la carga anterior.")
            raise
        return self._install(repo)

    async def aupload(self, source: Source) -> OrderRepository:
        try:
            text = await aread_source(source, self._cfg.encoding)
            repo = load_orders(source, self._cfg, text=text)
        except OrdersError:
            logger.warning("Upload rechazado; se conserva la carga anterior.")
            raise
        return self._install(repo)

    def filtered(self) -> Tuple[Order, ...]:
        return apply_filter(self.orders, self.filters.current)

    def summary(self) -> SummaryStats:
        return summarize(self.filtered(), self.filters.current.metric)

    def time_series(self, granularity: Optional[str] = None) -> TimeSeries:
        return bucket_by_time(
            self.filtered(),
            self.filters.current.metric,
            granularity or self.granularity,  # type: ignore[arg-type]
            self._cfg.week_start,
        )

    def breakdown(self, column: Optional[str] = None, top_n: Optional[int] = None) -> Optional[Breakdown]:
        column = column or self.breakdown_column
        if column is None:
            return None
        n = resolve_top_n(top_n if top_n is not None else self.top_n, self._cfg).value
        return breakdown_by(self.filtered(), self.filters.current.metric, column, n, self._cfg.drop_non_positive)

    def dashboard(self) -> DashboardView:
        return DashboardView(
            spec=self.filters.current,
            summary=self.summary(),
            series=self.time_series(),
            breakdown=self.breakdown(),
            active_filters=tuple(self.filters.active_filters()),
            columns=tuple(selectable_columns(self.orders)),
        )

    async def refresh_async(self) -> Optional[DashboardView]:
        """Recalcula en un hilo; devuelve None si otro refresh lo superó."""
        ticket = self._gate.issue()
        view = await asyncio.to_thread(self.dashboard)
        if not self._gate.publish(ticket, view):
            logger.debug("Refresh %s descartado: existe uno más reciente.", ticket)
            return None
        return view
