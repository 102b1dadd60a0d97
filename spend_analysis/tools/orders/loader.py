# spend_analysis/tools/orders/loader.py
from __future__ import annotations

import asyncio
import hashlib
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .config import AppConfig, ColumnMap, CSV_ENCODING
from .dto import Order, ParseReport
from .exceptions import MalformedInputError, SchemaMismatch, SourceReadError

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, bytearray, BinaryIO]
RawInput = Union[str, bytes, bytearray]

# Comillas, separadores de miles, espacios y símbolos de moneda
_AMOUNT_NOISE = r"['\"$€£¥₹,\s]"
# Código ISO de moneda pegado al inicio o al final ("USD12.18", "12.18EUR")
_CURRENCY_CODE = r"^[A-Za-z]{3}|[A-Za-z]{3}$"
_LEADING_INT = r"^([+-]?\d+)"


@dataclass(frozen=True)
class OrderRepository:
    """Repositorio inmutable de una carga. Se reemplaza completo en cada upload."""
    orders: Tuple[Order, ...]
    report: ParseReport
    source: str = "<memory>"
    columns: ColumnMap = field(default_factory=ColumnMap)
    token: str = ""
    loaded_at: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.orders


# ------------------------------- Lectura de la fuente -------------------------------


def _decode(data: bytes, encoding: str = CSV_ENCODING) -> str:
    try:
        text = data.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise MalformedInputError(f"No se pudo decodificar la entrada como {encoding}: {exc}") from exc
    return text.lstrip("\ufeff")


def read_source(source: Source, encoding: str = CSV_ENCODING) -> str:
    """Obtiene el texto crudo desde una ruta, bytes o stream binario.

    - Fallos de I/O (no existe, permisos) -> SourceReadError.
    - Bytes que no decodifican -> MalformedInputError.
    """
    if isinstance(source, (bytes, bytearray)):
        return _decode(bytes(source), encoding)

    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.warning("No se pudo leer la fuente %s: %s", path, exc)
            raise SourceReadError(f"No se pudo leer {path}: {exc}") from exc
        return _decode(data, encoding)

    read = getattr(source, "read", None)
    if not callable(read):
        raise SourceReadError(f"Fuente no soportada: {type(source).__name__}")
    try:
        data = read()
    except OSError as exc:
        raise SourceReadError(f"Fallo leyendo el stream: {exc}") from exc
    if isinstance(data, str):
        return data.lstrip("\ufeff")
    return _decode(data, encoding)


async def aread_source(source: Source, encoding: str = CSV_ENCODING) -> str:
    """Versión async de read_source (la lectura es el único borde asíncrono)."""
    return await asyncio.to_thread(read_source, source, encoding)


# ------------------------- Helpers de tokenización / coerción ---------------------


def tokenize(text: str) -> pd.DataFrame:
    """CSV -> DataFrame de strings. Filas con campos de más se omiten; las cortas se rellenan con ''."""
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            on_bad_lines="skip",
            index_col=False,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise MalformedInputError(f"La entrada no es un CSV válido: {exc}") from exc
    return frame.fillna("")


def clean_amounts(raw: pd.Series) -> Tuple[pd.Series, pd.Series]:
    """Limpia montos ("$1,234.56", "'-5.77'", "(5.77)") y conserva el signo.

    Devuelve (montos float, máscara de montos que cayeron a 0 por no ser numéricos).
    """
    s = raw.astype(str).str.replace(_AMOUNT_NOISE, "", regex=True)
    s = s.str.replace(_CURRENCY_CODE, "", regex=True)
    # Formato contable: (5.77) == -5.77
    paren = s.str.fullmatch(r"\(.*\)")
    s = s.where(~paren, "-" + s.str.slice(1, -1))

    values = pd.to_numeric(s, errors="coerce").astype(float)
    values = values.where(np.isfinite(values))
    defaulted = values.isna()
    return values.fillna(0.0), defaulted


def clean_quantities(raw: pd.Series) -> Tuple[pd.Series, pd.Series]:
    """Entero inicial de la celda (como parseInt). No numérico, negativo o fuera de rango -> 0."""
    s = raw.astype(str).str.replace(",", "", regex=False).str.strip()
    lead = s.str.extract(_LEADING_INT, expand=False)
    qty = pd.to_numeric(lead, errors="coerce")
    # Fuera de rango int64 (uint64 o float enorme) también cae a 0
    as_float = qty.astype(float)
    defaulted = qty.isna() | (as_float < 0) | (as_float >= float(np.iinfo(np.int64).max))
    return qty.where(~defaulted, 0).astype("int64"), defaulted


def parse_order_dates(raw: pd.Series) -> pd.Series:
    """ISO 8601 con hora y zona opcionales -> datetime naive en UTC. Inválidas -> NaT."""
    parsed = pd.to_datetime(raw.astype(str).str.strip(), format="ISO8601", utc=True, errors="coerce")
    return parsed.dt.tz_localize(None)


def _validate_schema(frame: pd.DataFrame, columns: ColumnMap) -> None:
    """Garantiza que el CSV traiga las columnas mínimas (fecha y monto)."""
    missing = [c for c in (columns.order_date, columns.total_owed) if c not in frame.columns]
    if missing:
        raise SchemaMismatch(f"Faltan columnas requeridas: {missing}")


def _column_or_blank(frame: pd.DataFrame, column: str) -> pd.Series:
    if column in frame.columns:
        return frame[column].astype(str)
    return pd.Series([""] * len(frame), index=frame.index, dtype=object)


# ------------------------------- Parser (puro) ------------------------------------


def parse_with_report(raw: RawInput, columns: Optional[ColumnMap] = None) -> Tuple[Tuple[Order, ...], ParseReport]:
    """Texto CSV -> (órdenes normalizadas en orden de entrada, reporte de normalización).

    Filas sin fecha/monto o con fecha no parseable se descartan; montos y
    cantidades inválidos se normalizan a 0. Solo falla (MalformedInputError)
    si la entrada completa no se puede tokenizar.
    """
    cols = columns or ColumnMap()
    text = _decode(bytes(raw)) if isinstance(raw, (bytes, bytearray)) else raw.lstrip("\ufeff")

    frame = tokenize(text)
    _validate_schema(frame, cols)

    date_raw = frame[cols.order_date].astype(str)
    amount_raw = frame[cols.total_owed].astype(str)
    qty_raw = _column_or_blank(frame, cols.quantity)
    id_raw = _column_or_blank(frame, cols.order_id)

    viable = (date_raw.str.strip() != "") & (amount_raw.str.strip() != "")
    dates = parse_order_dates(date_raw)
    keep = viable & dates.notna()

    amounts, amount_defaulted = clean_amounts(amount_raw)
    quantities, qty_defaulted = clean_quantities(qty_raw)

    report = ParseReport(
        rows_read=int(len(frame)),
        rows_kept=int(keep.sum()),
        dropped_missing_fields=int((~viable).sum()),
        dropped_bad_date=int((viable & dates.isna()).sum()),
        amounts_defaulted=int((amount_defaulted & keep).sum()),
        quantities_defaulted=int((qty_defaulted & keep).sum()),
    )

    attr_cols = [c for c in frame.columns if c not in cols.core]
    kept = frame.loc[keep]
    attrs = kept[attr_cols].to_dict(orient="records") if attr_cols else [{} for _ in range(len(kept))]

    # Ya vienen tipados: model_construct evita re-validar miles de filas
    orders = tuple(
        Order.model_construct(
            order_id=oid,
            order_date_raw=d_raw,
            parsed_date=ts.to_pydatetime(),
            total_owed_raw=a_raw,
            parsed_amount=float(amount),
            quantity_raw=q_raw,
            parsed_quantity=int(qty),
            attributes=attr,
        )
        for oid, d_raw, ts, a_raw, amount, q_raw, qty, attr in zip(
            id_raw[keep],
            date_raw[keep],
            dates[keep],
            amount_raw[keep],
            amounts[keep],
            qty_raw[keep],
            quantities[keep],
            attrs,
        )
    )
    return orders, report


def parse(raw: RawInput, columns: Optional[ColumnMap] = None) -> Tuple[Order, ...]:
    """Punto de entrada del parser: texto CSV -> tupla inmutable de Order."""
    orders, report = parse_with_report(raw, columns)
    logger.info(
        "CSV parseado: filas=%s, órdenes=%s, descartadas=%s (sin campos=%s, fecha inválida=%s)",
        report.rows_read,
        report.rows_kept,
        report.rows_dropped,
        report.dropped_missing_fields,
        report.dropped_bad_date,
    )
    return orders


# -------------------------- Carga total del repositorio --------------------


def load_orders(source: Source, cfg: Optional[AppConfig] = None, text: Optional[str] = None) -> OrderRepository:
    """Lee y parsea una fuente completa. Cualquier fallo fatal se propaga sin estado parcial."""
    cfg = cfg or AppConfig()
    if text is None:
        text = read_source(source, cfg.encoding)
    orders, report = parse_with_report(text, cfg.columns)
    name = str(source) if isinstance(source, (str, Path)) else getattr(source, "name", "<memory>")
    # El token cubre contenido y mapeo de columnas: mismo texto con otro ColumnMap es otra carga
    token = hashlib.sha1((text + "\x00" + repr(cfg.columns)).encode("utf-8")).hexdigest()[:16]
    logger.info("Repo cargado desde %s: órdenes=%s (token=%s)", name, len(orders), token)
    return OrderRepository(
        orders=orders,
        report=report,
        source=str(name),
        columns=cfg.columns,
        token=token,
        loaded_at=datetime.now(tz=timezone.utc).isoformat(timespec="seconds"),
    )


class _LazyRepo:
    """Carga perezosa del CSV configurado. Se recarga completo si el archivo cambia."""
    def __init__(self) -> None:
        self._repo: Optional[OrderRepository] = None
        self._signature: Optional[Tuple[str, int, int, str, ColumnMap]] = None

    def get(self, cfg: AppConfig) -> OrderRepository:
        path = Path(cfg.csv_path)
        try:
            st = path.stat()
        except OSError as exc:
            logger.warning("CSV no encontrado en %s.", path)
            raise SourceReadError(f"No se pudo leer {path}: {exc}") from exc
        signature = (str(path.resolve()), st.st_mtime_ns, st.st_size, cfg.encoding, cfg.columns)
        if self._repo is None or signature != self._signature:
            self._repo = load_orders(path, cfg)
            self._signature = signature
        return self._repo

    def clear(self) -> None:
        self._repo = None
        self._signature = None


_lazy_repo = _LazyRepo()


def get_repo(cfg: Optional[AppConfig] = None) -> OrderRepository:
    """Punto de acceso al repositorio del CSV configurado (singleton perezoso)."""
    cfg = cfg or AppConfig()
    return _lazy_repo.get(cfg)
