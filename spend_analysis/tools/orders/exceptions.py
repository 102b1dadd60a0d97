# spend_analysis/tools/orders/exceptions.py
from __future__ import annotations

class OrdersError(Exception):
    """Base para errores del dominio de órdenes."""

class SourceReadError(OrdersError):
    """No se pudo obtener el contenido de la fuente (permisos, I/O)."""

class MalformedInputError(OrdersError):
    """La entrada no se pudo decodificar/tokenizar como tabla."""

class SchemaMismatch(MalformedInputError):
    """El CSV no trae las columnas mínimas (fecha y monto)."""

class InvalidParam(OrdersError):
    """Parámetro inválido o faltante."""
