# spend_analysis/tools/orders/diagnostics.py
from __future__ import annotations

from typing import Any, Dict, List
import logging

from .dto import InsightsQuery
from .loader import OrderRepository

logger = logging.getLogger(__name__)


class DiagnosticsHandler:
    """Devuelve el reporte de normalización de la carga vigente."""

    def run(self, repo: OrderRepository, q: InsightsQuery) -> List[Dict[str, Any]]:
        report = repo.report
        out: Dict[str, Any] = {
            "source": repo.source,
            "loaded_at": repo.loaded_at,
            **report.model_dump(),
            "rows_dropped": report.rows_dropped,
        }
        if repo.is_empty:
            out["message"] = "No hay órdenes válidas en la carga."
        return [out]
