# spend_analysis/tools/orders/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

from . import schema

load_dotenv()

# -- Rutas --
DATA_DIR: Final[Path] = Path(os.getenv("SPEND_DATA_DIR", "."))
CSV_FILENAME: Final[str] = os.getenv("SPEND_ORDERS_CSV", "Retail.OrderHistory.csv")
CSV_PATH: Final[Path] = DATA_DIR / CSV_FILENAME
CSV_ENCODING: Final[str] = os.getenv("SPEND_CSV_ENCODING", "utf-8-sig")

# -- Columnas del export --
ORDER_ID_COL: Final[str] = os.getenv("SPEND_COL_ORDER_ID", schema.ORDER_ID)
ORDER_DATE_COL: Final[str] = os.getenv("SPEND_COL_ORDER_DATE", schema.ORDER_DATE)
TOTAL_OWED_COL: Final[str] = os.getenv("SPEND_COL_TOTAL_OWED", schema.TOTAL_OWED)
QUANTITY_COL: Final[str] = os.getenv("SPEND_COL_QUANTITY", schema.QUANTITY)

# -- Localización (un solo locale) --
DEFAULT_LOCALE: Final[str] = os.getenv("SPEND_LOCALE", "en-US")
DEFAULT_CURRENCY: Final[str] = os.getenv("SPEND_CURRENCY", "USD")

# -- Top-N y series --
TOP_N_DEFAULT: Final[int] = int(os.getenv("SPEND_TOP_N_DEFAULT", "5"))
TOP_N_MAX: Final[int] = int(os.getenv("SPEND_TOP_N_MAX", "100"))
DEFAULT_GRANULARITY: Final[str] = os.getenv("SPEND_GRANULARITY", "day")
WEEK_START: Final[str] = os.getenv("SPEND_WEEK_START", "monday").lower()
DEFAULT_BREAKDOWN_COL: Final[str] = os.getenv("SPEND_BREAKDOWN_COL", schema.PREFERRED_BREAKDOWN_COL)

# -- Varios --
DROP_NON_POSITIVE_GROUPS: Final[bool] = os.getenv("SPEND_DROP_NON_POSITIVE", "true").lower() == "true"
VALUES_PAGE_SIZE: Final[int] = int(os.getenv("SPEND_VALUES_PAGE_SIZE", "50"))
CACHE_MAX_ITEMS: Final[int] = int(os.getenv("SPEND_CACHE_MAX_ITEMS", "128"))


@dataclass(frozen=True)
class ColumnMap:
    """Nombres de las columnas núcleo dentro del CSV de entrada."""
    order_id: str = ORDER_ID_COL
    order_date: str = ORDER_DATE_COL
    total_owed: str = TOTAL_OWED_COL
    quantity: str = QUANTITY_COL

    @property
    def core(self) -> frozenset[str]:
        return frozenset((self.order_id, self.order_date, self.total_owed, self.quantity))


@dataclass(frozen=True)
class AppConfig:
    """Snapshot inmutable de configuración consumida por el servicio."""
    csv_path: Path = CSV_PATH
    encoding: str = CSV_ENCODING
    columns: ColumnMap = field(default_factory=ColumnMap)
    locale: str = DEFAULT_LOCALE
    currency: str = DEFAULT_CURRENCY
    top_n_default: int = TOP_N_DEFAULT
    top_n_max: int = TOP_N_MAX
    granularity: str = DEFAULT_GRANULARITY
    week_start: str = WEEK_START
    breakdown_column: str = DEFAULT_BREAKDOWN_COL
    drop_non_positive: bool = DROP_NON_POSITIVE_GROUPS
    values_page_size: int = VALUES_PAGE_SIZE
    cache_max_items: int = CACHE_MAX_ITEMS
