# spend_analysis/tools/orders/schema.py
from __future__ import annotations

from typing import Final

# Nombres canónicos de columnas del export (evita strings sueltos en el resto del código)
ORDER_ID: Final[str] = "Order ID"
ORDER_DATE: Final[str] = "Order Date"
TOTAL_OWED: Final[str] = "Total Owed"
QUANTITY: Final[str] = "Quantity"

# Columnas derivadas en los frames internos de agregación
PARSED_DATE: Final[str] = "parsed_date"
PARSED_AMOUNT: Final[str] = "parsed_amount"
PARSED_QUANTITY: Final[str] = "parsed_quantity"
VALUE: Final[str] = "value"
DIMENSION: Final[str] = "dimension_value"

# Etiqueta del grupo para valores vacíos/ausentes en breakdowns
EMPTY_LABEL: Final[str] = "(empty)"

# Columna de breakdown preferida (si existe en el export)
PREFERRED_BREAKDOWN_COL: Final[str] = "Payment Instrument Type"
