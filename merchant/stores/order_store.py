# merchant/stores/order_store.py
import asyncio
from typing import Callable, Dict, List, Optional

from merchant.models import OrderRecord

class OrderStore:
    """
    In-memory order mirror keyed by vendor order id.
    Records are frozen and only ever swapped whole, so readers see either the
    old or the new record.
    """

    def __init__(self) -> None:
        self._by_id: Dict[str, OrderRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, order_id: str) -> Optional[OrderRecord]:
        async with self._lock:
            return self._by_id.get(order_id)

    async def put(self, order_id: str, record: OrderRecord) -> None:
        """Insert or replace the record for order_id."""
        async with self._lock:
            self._by_id[order_id] = record

    async def update(self, order_id: str,
                     fn: Callable[[OrderRecord], OrderRecord]) -> Optional[OrderRecord]:
        """Replace the current record with fn(current) under the store lock; None if absent."""
        async with self._lock:
            cur = self._by_id.get(order_id)
            if cur is None:
                return None
            new = fn(cur)
            self._by_id[order_id] = new
            return new

    async def list_all(self) -> List[OrderRecord]:
        async with self._lock:
            return list(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)
