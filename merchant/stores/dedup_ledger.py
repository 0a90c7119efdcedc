# merchant/stores/dedup_ledger.py
import asyncio
from typing import Set

class DedupLedger:
    """
    Ids of feed events already applied. No removal: the feed redelivers
    unacknowledged events, so the set lives as long as the process.
    """

    def __init__(self) -> None:
        self._applied: Set[str] = set()
        self._lock = asyncio.Lock()

    async def already_applied(self, event_id: str) -> bool:
        async with self._lock:
            return event_id in self._applied

    async def mark_applied(self, event_id: str) -> None:
        async with self._lock:
            self._applied.add(event_id)

    def __len__(self) -> int:
        return len(self._applied)
