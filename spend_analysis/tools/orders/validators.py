# spend_analysis/tools/orders/validators.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from .config import AppConfig
from .dto import FilterSpec, InsightsQuery
from .exceptions import InvalidParam
from .time_features import resolve_granularity


@dataclass(frozen=True)
class TopNResolution:
    value: int
    reason: str  # "default" | "clamped" | "explicit"


def resolve_top_n(top_n: Any, cfg: AppConfig) -> TopNResolution:
    """Resuelve top_n aplicando límites.
    - None => default
    - entero >= 0 => se respeta (0 manda todo a 'others'); por encima del máximo se recorta
    """
    if top_n is None:
        return TopNResolution(cfg.top_n_default, "default")
    if isinstance(top_n, bool):
        raise InvalidParam("top_n debe ser un entero >= 0.")
    try:
        v = int(top_n)
    except (TypeError, ValueError) as exc:
        raise InvalidParam("top_n debe ser un entero >= 0.") from exc
    if v != top_n and not isinstance(top_n, str):
        raise InvalidParam("top_n debe ser un entero >= 0.")
    if v < 0:
        raise InvalidParam(f"top_n no puede ser negativo ({v}).")
    if v > cfg.top_n_max:
        return TopNResolution(cfg.top_n_max, "clamped")
    return TopNResolution(v, "explicit")


def validate_mode_params(q: InsightsQuery) -> None:
    if q.mode == "over_time" and q.granularity is not None:
        resolve_granularity(q.granularity)
    if q.mode == "values" and not q.column:
        raise InvalidParam("column es requerido cuando mode='values'.")
    if q.visible is not None and q.visible < 0:
        raise InvalidParam("visible no puede ser negativo.")


def filter_warnings(spec: FilterSpec) -> List[str]:
    """Avisos no fatales sobre el estado de filtros."""
    warnings: List[str] = []
    if spec.date_range.is_inverted:
        warnings.append(
            f"date range start ({spec.date_range.start}) is after end ({spec.date_range.end}); no orders match."
        )
    return warnings


def validate_query(q: InsightsQuery, cfg: Optional[AppConfig] = None) -> None:
    """Valida aspectos semánticos de la query."""
    validate_mode_params(q)
    if q.top_n is not None:
        resolve_top_n(q.top_n, cfg or AppConfig())
