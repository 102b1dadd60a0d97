# spend_analysis/tools/orders/dimensions.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import AppConfig
from .dto import InsightsQuery, Order
from .loader import OrderRepository
from .schema import PREFERRED_BREAKDOWN_COL

logger = logging.getLogger(__name__)


def selectable_columns(orders: Sequence[Order]) -> List[str]:
    """Columnas usables como dimensión/filtro: todos los atributos, nunca las columnas núcleo."""
    if not orders:
        return []
    return sorted(orders[0].attributes.keys())


def unique_values(orders: Iterable[Order], column: str) -> List[str]:
    """Valores distintos no vacíos de la columna, ordenados."""
    values = set()
    for o in orders:
        v = o.value_of(column)
        if v.strip():
            values.add(v)
    return sorted(values)


def search_values(values: Iterable[str], query: Optional[str]) -> List[str]:
    """Filtro por subcadena sin distinguir mayúsculas."""
    if not query:
        return list(values)
    needle = query.lower()
    return [v for v in values if needle in v.lower()]


@dataclass(frozen=True)
class ValuesPage:
    values: Tuple[str, ...]
    total: int
    remaining: int


def page_values(values: Sequence[str], visible: int) -> ValuesPage:
    shown = tuple(values[: max(visible, 0)])
    return ValuesPage(values=shown, total=len(values), remaining=len(values) - len(shown))


def default_breakdown_column(columns: Sequence[str], preferred: str = PREFERRED_BREAKDOWN_COL) -> Optional[str]:
    if preferred in columns:
        return preferred
    return columns[0] if columns else None


class DimensionsHandler:
    """Catálogo de dimensiones ('columns') y valores buscables de una columna ('values')."""

    def __init__(self, cfg: Optional[AppConfig] = None) -> None:
        self._cfg = cfg or AppConfig()

    def run(self, repo: OrderRepository, q: InsightsQuery) -> List[Dict[str, Any]]:
        if q.mode == "columns":
            return [
                {
                    "column": c,
                    "distinct_values": len(unique_values(repo.orders, c)),
                    "excluded_count": len(q.filters.excluded(c)),
                }
                for c in selectable_columns(repo.orders)
            ]

        column = q.column or ""
        matching = search_values(unique_values(repo.orders, column), q.search)
        page = page_values(matching, q.visible if q.visible is not None else self._cfg.values_page_size)
        excluded = q.filters.excluded(column)
        return [
            {
                "column": column,
                "values": [{"value": v, "excluded": v in excluded} for v in page.values],
                "total": page.total,
                "remaining": page.remaining,
            }
        ]
