# spend_analysis/tools/orders/time_features.py
from __future__ import annotations

import logging
from typing import Final, Tuple

import pandas as pd

from .exceptions import InvalidParam

logger = logging.getLogger(__name__)

GRANULARITIES: Final[Tuple[str, ...]] = ("day", "week", "month", "quarter", "year")
WEEK_STARTS: Final[Tuple[str, ...]] = ("monday", "sunday")

# Tabla fija: las etiquetas no dependen del locale del proceso
MONTH_ABBR: Final[Tuple[str, ...]] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def resolve_granularity(grain: str | None) -> str:
    """Normaliza sinónimos ('daily', 'iso_week', 'monthly', ...) al grain canónico."""
    g = (grain or "day").strip().lower()
    aliases = {
        "daily": "day",
        "weekly": "week",
        "iso_week": "week",
        "monthly": "month",
        "quarterly": "quarter",
        "yearly": "year",
        "annual": "year",
    }
    g = aliases.get(g, g)
    if g not in GRANULARITIES:
        raise InvalidParam(f"Granularidad no soportada: {grain!r}. Opciones: {', '.join(GRANULARITIES)}")
    return g


def bucket_starts(dates: pd.Series, granularity: str, week_start: str = "monday") -> pd.Series:
    """Inicio de periodo de cada fecha (timestamp a medianoche)."""
    if week_start not in WEEK_STARTS:
        raise InvalidParam(f"week_start debe ser 'monday' o 'sunday', no {week_start!r}.")
    day = dates.dt.normalize()
    if granularity == "day":
        return day
    if granularity == "week":
        # dayofweek: lunes=0 ... domingo=6
        offset = day.dt.dayofweek if week_start == "monday" else (day.dt.dayofweek + 1) % 7
        return day - pd.to_timedelta(offset, unit="D")
    if granularity == "month":
        return day.dt.to_period("M").dt.start_time
    if granularity == "quarter":
        return day.dt.to_period("Q").dt.start_time
    if granularity == "year":
        return day.dt.to_period("Y").dt.start_time
    raise InvalidParam(f"Granularidad no soportada: {granularity!r}")


def bucket_key(start: pd.Timestamp) -> str:
    """Clave canónica y ordenable: fecha ISO del inicio del periodo."""
    return start.strftime("%Y-%m-%d")


def bucket_label(start: pd.Timestamp, granularity: str) -> str:
    mon = MONTH_ABBR[start.month - 1]
    if granularity == "week":
        return f"Wk {mon} {start.day}"
    if granularity == "month":
        return f"{mon} {start.year}"
    if granularity == "quarter":
        return f"Q{start.quarter} {start.year}"
    if granularity == "year":
        return str(start.year)
    return f"{mon} {start.day}, {start.year}"
