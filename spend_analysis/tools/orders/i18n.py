# spend_analysis/tools/orders/i18n.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional

from .time_features import MONTH_ABBR


@dataclass(frozen=True)
class LocaleConfig:
    """Configuración mínima de formato (un solo locale: en-US / USD).
    No usamos Babel para evitar dependencia; ajusta aquí símbolos y separadores.
    """
    locale: str = "en-US"
    currency: str = "USD"
    currency_symbol: str = "$"
    decimal_sep: str = "."
    thousand_sep: str = ","


DEFAULT_LOCALE = LocaleConfig()


def _group(value: float, ndigits: int, cfg: LocaleConfig) -> str:
    # "{:,.2f}" usa separador US, lo sustituimos por el deseado si difiere.
    s = f"{value:,.{ndigits}f}"
    if cfg.thousand_sep != "," or cfg.decimal_sep != ".":
        s = s.replace(",", "X").replace(".", cfg.decimal_sep).replace("X", cfg.thousand_sep)
    return s


def format_currency(value: Optional[float], cfg: LocaleConfig = DEFAULT_LOCALE, ndigits: int = 2) -> str:
    """Formatea un float como moneda ('-$5.77' para negativos). Si value es None, devuelve '-'."""
    if value is None:
        return "-"
    q = round(float(value), ndigits)
    sign = "-" if q < 0 else ""
    return f"{sign}{cfg.currency_symbol}{_group(abs(q), ndigits, cfg)}"


def format_quantity(value: Optional[float], cfg: LocaleConfig = DEFAULT_LOCALE) -> str:
    if value is None:
        return "-"
    return _group(float(value), 0, cfg)


def format_metric(value: Optional[float], metric: str, cfg: LocaleConfig = DEFAULT_LOCALE) -> str:
    return format_quantity(value, cfg) if metric == "quantity" else format_currency(value, cfg)


def format_date(value: datetime) -> str:
    return f"{MONTH_ABBR[value.month - 1]} {value.day}, {value.year}"


def format_date_range(start: Optional[datetime], end: Optional[datetime]) -> str:
    """'Jan 5, 2024 - Feb 1, 2024'; 'No Data' cuando no hay órdenes."""
    if start is None or end is None:
        return "No Data"
    return f"{format_date(start)} - {format_date(end)}"


def add_formatted_fields(
    row: Mapping[str, object],
    metric_fields: Iterable[str],
    metric: str,
    currency_fields: Iterable[str] = (),
    cfg: LocaleConfig = DEFAULT_LOCALE,
    suffix: str = "_fmt",
) -> Dict[str, object]:
    """Devuelve un nuevo dict con campos formateados añadidos para UI.
    Ej.: 'total' -> 'total_fmt'
    """
    out: Dict[str, object] = dict(row)
    for c in metric_fields:
        v = row.get(c)
        out[f"{c}{suffix}"] = format_metric(v if isinstance(v, (int, float)) else None, metric, cfg)
    for c in currency_fields:
        v = row.get(c)
        out[f"{c}{suffix}"] = format_currency(v if isinstance(v, (int, float)) else None, cfg)
    return out
