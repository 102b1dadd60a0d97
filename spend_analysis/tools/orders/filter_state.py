# spend_analysis/tools/orders/filter_state.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional

import pandas as pd

from .dto import (
    ActiveFilter,
    DateRange,
    FilterSpec,
    MetricLiteral,
    PresetLiteral,
    to_naive_utc,
)
from .exceptions import InvalidParam

logger = logging.getLogger(__name__)

PRESETS: tuple[str, ...] = ("last_year", "ytd", "last_month", "past_6_months")


# ------------------------------ Transiciones puras ------------------------------
# Cada función devuelve un FilterSpec nuevo; el mapping de exclusiones se
# reconstruye siempre y ningún frozenset se comparte mutablemente.


def _with_exclusions(spec: FilterSpec, exclusions: Dict[str, FrozenSet[str]]) -> FilterSpec:
    return spec.model_copy(update={"column_exclusions": exclusions})


def set_date_range(spec: FilterSpec, start: Optional[datetime], end: Optional[datetime]) -> FilterSpec:
    date_range = DateRange(start=start, end=end)
    if date_range.is_inverted:
        logger.warning("Rango de fechas invertido (%s > %s): no coincidirá ninguna orden.", start, end)
    return spec.model_copy(update={"date_range": date_range})


def set_metric(spec: FilterSpec, metric: MetricLiteral) -> FilterSpec:
    if metric not in ("amount", "quantity"):
        raise InvalidParam(f"metric debe ser 'amount' o 'quantity', no {metric!r}.")
    return spec.model_copy(update={"metric": metric})


def exclude_value(spec: FilterSpec, column: str, value: str) -> FilterSpec:
    exclusions = dict(spec.column_exclusions)
    exclusions[column] = spec.excluded(column) | {value}
    return _with_exclusions(spec, exclusions)


def include_value(spec: FilterSpec, column: str, value: str) -> FilterSpec:
    exclusions = dict(spec.column_exclusions)
    exclusions[column] = spec.excluded(column) - {value}
    return _with_exclusions(spec, exclusions)


def toggle_value(spec: FilterSpec, column: str, value: str) -> FilterSpec:
    if value in spec.excluded(column):
        return include_value(spec, column, value)
    return exclude_value(spec, column, value)


def include_all(spec: FilterSpec, column: str) -> FilterSpec:
    """Vacía el set de exclusiones de la columna (la clave se conserva)."""
    exclusions = dict(spec.column_exclusions)
    exclusions[column] = frozenset()
    return _with_exclusions(spec, exclusions)


def exclude_all(spec: FilterSpec, column: str, candidate_values: Iterable[str]) -> FilterSpec:
    """El set de la columna pasa a ser exactamente `candidate_values` (no se une al anterior)."""
    exclusions = dict(spec.column_exclusions)
    exclusions[column] = frozenset(str(v) for v in candidate_values)
    return _with_exclusions(spec, exclusions)


def remove_column_filter(spec: FilterSpec, column: str) -> FilterSpec:
    """Elimina la entrada de la columna por completo."""
    exclusions = {c: v for c, v in spec.column_exclusions.items() if c != column}
    return _with_exclusions(spec, exclusions)


def active_filters(spec: FilterSpec) -> List[ActiveFilter]:
    """Columnas con al menos un valor excluido (chips de filtro activos)."""
    return [
        ActiveFilter(column=column, excluded_count=len(excluded))
        for column, excluded in spec.column_exclusions.items()
        if excluded
    ]


# ------------------------------ Presets de fechas ------------------------------


def _end_of_day(d: datetime) -> datetime:
    return d.replace(hour=23, minute=59, second=59, microsecond=999999)


def preset_range(preset: PresetLiteral, now: datetime) -> DateRange:
    """Calcula el rango de un preset a partir de un 'now' provisto por el llamador."""
    now = to_naive_utc(now)
    if preset == "last_year":
        return DateRange(start=datetime(now.year - 1, 1, 1), end=_end_of_day(datetime(now.year - 1, 12, 31)))
    if preset == "ytd":
        return DateRange(start=datetime(now.year, 1, 1), end=now)
    if preset == "last_month":
        month_start = datetime(now.year, now.month, 1)
        prev_end = month_start - timedelta(microseconds=1)
        return DateRange(start=datetime(prev_end.year, prev_end.month, 1), end=prev_end)
    if preset == "past_6_months":
        # DateOffset recorta el día al fin de mes (31-ago - 6 meses = 28/29-feb)
        start = (pd.Timestamp(now) - pd.DateOffset(months=6)).to_pydatetime()
        return DateRange(start=start, end=now)
    raise InvalidParam(f"Preset no soportado: {preset!r}. Opciones: {', '.join(PRESETS)}")


def apply_preset(spec: FilterSpec, preset: PresetLiteral, now: datetime) -> FilterSpec:
    rng = preset_range(preset, now)
    return set_date_range(spec, rng.start, rng.end)


def default_filter_spec(now: datetime) -> FilterSpec:
    """Estado inicial del tablero: año calendario anterior, métrica 'amount', sin exclusiones."""
    return apply_preset(FilterSpec(), "last_year", now)


class FilterStateManager:
    """Mantiene el FilterSpec vigente. Cada acción lo reemplaza por uno nuevo."""

    def __init__(self, initial: Optional[FilterSpec] = None) -> None:
        self._current = initial or FilterSpec()

    @property
    def current(self) -> FilterSpec:
        return self._current

    def _replace(self, spec: FilterSpec) -> FilterSpec:
        self._current = spec
        return spec

    def reset(self, spec: Optional[FilterSpec] = None) -> FilterSpec:
        return self._replace(spec or FilterSpec())

    def set_date_range(self, start: Optional[datetime], end: Optional[datetime]) -> FilterSpec:
        return self._replace(set_date_range(self._current, start, end))

    def apply_preset(self, preset: PresetLiteral, now: datetime) -> FilterSpec:
        return self._replace(apply_preset(self._current, preset, now))

    def set_metric(self, metric: MetricLiteral) -> FilterSpec:
        return self._replace(set_metric(self._current, metric))

    def exclude_value(self, column: str, value: str) -> FilterSpec:
        return self._replace(exclude_value(self._current, column, value))

    def include_value(self, column: str, value: str) -> FilterSpec:
        return self._replace(include_value(self._current, column, value))

    def toggle_value(self, column: str, value: str) -> FilterSpec:
        return self._replace(toggle_value(self._current, column, value))

    def include_all(self, column: str) -> FilterSpec:
        return self._replace(include_all(self._current, column))

    def exclude_all(self, column: str, candidate_values: Iterable[str]) -> FilterSpec:
        return self._replace(exclude_all(self._current, column, candidate_values))

    def remove_column_filter(self, column: str) -> FilterSpec:
        return self._replace(remove_column_filter(self._current, column))

    def active_filters(self) -> List[ActiveFilter]:
        return active_filters(self._current)
