# spend_analysis/tools/orders/dto.py
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# -- Literales y tipos --
MetricLiteral = Literal["amount", "quantity"]
GranularityLiteral = Literal["day", "week", "month", "quarter", "year"]
WeekStartLiteral = Literal["monday", "sunday"]
PresetLiteral = Literal["last_year", "ytd", "last_month", "past_6_months"]
ModeLiteral = Literal["summary", "over_time", "breakdown", "columns", "values", "diagnostics"]
Number = Union[int, float]


def to_naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Fechas con zona se llevan a UTC sin tzinfo (mismo reloj que parsed_date)."""
    if v is None or v.tzinfo is None:
        return v
    return v.astimezone(timezone.utc).replace(tzinfo=None)


def _as_plain_date(v: Any) -> Optional[date]:
    """Detecta fechas sin hora ('YYYY-MM-DD' o date) para ampliarlas al día completo."""
    if isinstance(v, datetime):
        return None
    if isinstance(v, date):
        return v
    if isinstance(v, str) and len(v.strip()) == 10:
        try:
            return date.fromisoformat(v.strip())
        except ValueError:
            return None
    return None


class Order(BaseModel):
    """Orden normalizada. Los campos tipados son los que consume la agregación;
    el resto de columnas del export viaja tal cual en `attributes`."""
    model_config = ConfigDict(frozen=True)

    order_id: str = ""
    order_date_raw: str
    parsed_date: datetime
    total_owed_raw: str
    parsed_amount: float
    quantity_raw: str = ""
    parsed_quantity: int = 0
    attributes: Dict[str, str] = Field(default_factory=dict)

    def value_of(self, column: str) -> str:
        return self.attributes.get(column, "")

    def metric_value(self, metric: MetricLiteral) -> Number:
        return self.parsed_quantity if metric == "quantity" else self.parsed_amount


class DateRange(BaseModel):
    """Intervalo cerrado [start, end]; un extremo en None queda abierto."""
    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", mode="before")
    @classmethod
    def _widen_start(cls, v: Any) -> Any:
        d = _as_plain_date(v)
        return datetime.combine(d, time.min) if d is not None else v

    @field_validator("end", mode="before")
    @classmethod
    def _widen_end(cls, v: Any) -> Any:
        d = _as_plain_date(v)
        return datetime.combine(d, time.max) if d is not None else v

    @field_validator("start", "end")
    @classmethod
    def _drop_tz(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    @property
    def is_inverted(self) -> bool:
        return self.start is not None and self.end is not None and self.start > self.end

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None


class FilterSpec(BaseModel):
    """Estado de filtros. Inmutable: cada transición construye un FilterSpec nuevo."""
    model_config = ConfigDict(frozen=True)

    date_range: DateRange = Field(default_factory=DateRange)
    metric: MetricLiteral = "amount"
    column_exclusions: Dict[str, FrozenSet[str]] = Field(default_factory=dict)

    @field_validator("column_exclusions", mode="before")
    @classmethod
    def _normalize_exclusions(cls, v: Any) -> Any:
        if v is None:
            return {}
        return {str(col): frozenset(str(x) for x in values) for col, values in dict(v).items()}

    def excluded(self, column: str) -> FrozenSet[str]:
        return self.column_exclusions.get(column, frozenset())

    def cache_key(self) -> Tuple[Any, ...]:
        """Clave hashable y determinista (no depende del orden de inserción)."""
        exclusions = tuple(
            (col, tuple(sorted(values))) for col, values in sorted(self.column_exclusions.items())
        )
        return (self.date_range.start, self.date_range.end, self.metric, exclusions)


# -- Salidas de agregación --

class SummaryStats(BaseModel):
    metric: MetricLiteral = "amount"
    total: float = 0.0
    count: int = 0
    average: float = 0.0
    date_min: Optional[datetime] = None
    date_max: Optional[datetime] = None
    total_amount: float = 0.0
    total_quantity: int = 0
    average_amount: float = 0.0


class TimeBucket(BaseModel):
    bucket_key: str
    bucket_label: str
    bucket_start: datetime
    value: float
    orders: int = 0


class TimeSeries(BaseModel):
    metric: MetricLiteral
    granularity: GranularityLiteral
    week_start: WeekStartLiteral = "monday"
    buckets: List[TimeBucket] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return float(sum(b.value for b in self.buckets))


class BreakdownEntry(BaseModel):
    dimension_value: str
    value: float


class OthersBucket(BaseModel):
    count: int = 0
    sum: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.count == 0


class Breakdown(BaseModel):
    column: str
    metric: MetricLiteral
    top_n: int
    entries: List[BreakdownEntry] = Field(default_factory=list)
    others: OthersBucket = Field(default_factory=OthersBucket)
    dropped_non_positive: int = 0

    @property
    def visible_total(self) -> float:
        return float(sum(e.value for e in self.entries)) + self.others.sum


class ActiveFilter(BaseModel):
    column: str
    excluded_count: int


# -- Contrato de la fachada --

class InsightsQuery(BaseModel):
    """Contrato de entrada para la fachada de órdenes."""
    mode: ModeLiteral
    filters: FilterSpec = Field(default_factory=FilterSpec)
    granularity: Optional[GranularityLiteral] = Field(
        default=None, description="Solo para mode='over_time'."
    )
    column: Optional[str] = Field(default=None, description="Dimensión para 'breakdown' y 'values'.")
    top_n: Optional[int] = None  # None => usar default de config
    search: Optional[str] = None  # solo para mode='values'
    visible: Optional[int] = None  # paginado de 'values'

    # locales / meta
    locale: str = "en-US"
    currency: str = "USD"

    @field_validator("column", "search")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class FilterEcho(BaseModel):
    """Se devuelve en la respuesta para transparencia de filtros aplicados."""
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    metric: MetricLiteral = "amount"
    exclusions: Dict[str, List[str]] = Field(default_factory=dict)
    granularity: Optional[GranularityLiteral] = None
    column: Optional[str] = None
    top_n: Optional[int] = None
    locale: str = "en-US"
    currency: str = "USD"


class MetaInfo(BaseModel):
    row_count: int
    orders_total: int
    orders_matched: int
    generated_at: str
    currency: str
    locale: str


class InsightsResult(BaseModel):
    """Contrato de salida: estable, serializable y amigable para UI."""
    ok: bool
    mode: str
    filters: FilterEcho
    warnings: List[str] = Field(default_factory=list)
    meta: MetaInfo
    data: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


class ParseReport(BaseModel):
    """Conteos de la normalización (los defectos por fila no son errores)."""
    rows_read: int = 0
    rows_kept: int = 0
    dropped_missing_fields: int = 0
    dropped_bad_date: int = 0
    amounts_defaulted: int = 0
    quantities_defaulted: int = 0

    @property
    def rows_dropped(self) -> int:
        return self.dropped_missing_fields + self.dropped_bad_date
