# spend_analysis/tools/orders/cache.py
from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from .config import CACHE_MAX_ITEMS
from .dto import InsightsQuery

T = TypeVar("T")


@dataclass(frozen=True)
class CacheConfig:
    max_items: int = CACHE_MAX_ITEMS


class LRUCache:
    """Cache LRU en memoria con claves hashables. Thread-unsafe por simplicidad."""
    def __init__(self, cfg: CacheConfig | None = None) -> None:
        self._cfg = cfg or CacheConfig()
        self._store: OrderedDict[Hashable, Any] = OrderedDict()

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: Hashable) -> Any:
        if key not in self._store:
            return None
        val = self._store.pop(key)
        self._store[key] = val  # move to end (most-recent)
        return val

    def put(self, key: Hashable, value: Any) -> None:
        if key in self._store:
            self._store.pop(key)
        self._store[key] = value
        if len(self._store) > self._cfg.max_items:
            self._store.popitem(last=False)  # evict least-recently used

    def clear(self) -> None:
        self._store.clear()


_HANDLER_CACHES: Dict[Tuple[str, int], LRUCache] = {}


def handler_cache(handler: str, max_items: int = CACHE_MAX_ITEMS) -> LRUCache:
    """LRU compartido por handler; el tamaño lo fija AppConfig.cache_max_items."""
    key = (handler, max_items)
    cache = _HANDLER_CACHES.get(key)
    if cache is None:
        cache = LRUCache(CacheConfig(max_items=max_items))
        _HANDLER_CACHES[key] = cache
    return cache


def build_query_key(token: str, q: InsightsQuery, extra: Optional[Dict[str, Any]] = None) -> Tuple[Any, ...]:
    """Convierte (carga, query) en una clave hashable para cachear resultados.
    - `token` identifica el contenido cargado: una carga nueva invalida todo.
    - No incluye locale/currency (no afectan el cálculo).
    """
    key = (
        token,
        q.mode,
        q.filters.cache_key(),
        q.granularity,
        q.column,
        q.top_n,
        q.search,
        q.visible,
    )
    if extra:
        return key + tuple(sorted(extra.items()))
    return key


def get_or_compute(cache: LRUCache, key: Tuple[Any, ...], compute_fn: Callable[[], Any]) -> Any:
    """Devuelve el valor cacheado si existe; si no, lo calcula, lo guarda y lo devuelve."""
    val = cache.get(key)
    if val is not None:
        return val
    val = compute_fn()
    cache.put(key, val)
    return val


class ResultGate(Generic[T]):
    """Solo el recálculo pedido más recientemente puede publicar su resultado.

    issue() entrega un ticket creciente; publish() descarta resultados de
    tickets superados en lugar de dejarlos llegar a la vista.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issued = 0
        self._published: Optional[T] = None

    def issue(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def is_current(self, ticket: int) -> bool:
        with self._lock:
            return ticket == self._issued

    def publish(self, ticket: int, value: T) -> bool:
        with self._lock:
            if ticket != self._issued:
                return False
            self._published = value
            return True

    @property
    def latest(self) -> Optional[T]:
        with self._lock:
            return self._published
