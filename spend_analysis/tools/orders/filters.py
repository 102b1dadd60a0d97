# spend_analysis/tools/orders/filters.py
from __future__ import annotations

from datetime import datetime
from typing import FrozenSet, Iterable, Mapping, Tuple

from .dto import DateRange, FilterSpec, Order


def in_date_range(ts: datetime, date_range: DateRange) -> bool:
    """Intervalo cerrado; cada extremo en None deja ese lado abierto.
    Un rango invertido (start > end) no deja pasar ninguna orden."""
    if date_range.is_inverted:
        return False
    if date_range.start is not None and ts < date_range.start:
        return False
    if date_range.end is not None and ts > date_range.end:
        return False
    return True


def passes_exclusions(order: Order, exclusions: Mapping[str, FrozenSet[str]]) -> bool:
    # Columna ausente o set vacío: sin restricción
    for column, excluded in exclusions.items():
        if excluded and order.value_of(column) in excluded:
            return False
    return True


def matches(order: Order, spec: FilterSpec) -> bool:
    """Conjunción de rango de fechas y todas las exclusiones por columna."""
    return in_date_range(order.parsed_date, spec.date_range) and passes_exclusions(
        order, spec.column_exclusions
    )


def apply_filter(orders: Iterable[Order], spec: FilterSpec) -> Tuple[Order, ...]:
    if spec.date_range.is_inverted:
        return tuple()
    return tuple(o for o in orders if matches(o, spec))
