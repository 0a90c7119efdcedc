# tests/fakes.py
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from merchant.errors import AuthError, TransportError
from merchant.models import RemoteEvent, TickStats


def make_event(event_id: str, code: str, order_id: str, created_at: str = "2026-10-17T12:00:00Z") -> RemoteEvent:
    return RemoteEvent.from_wire({"id": event_id, "code": code, "orderId": order_id, "createdAt": created_at})


class FixedClock:
    def __init__(self, now: datetime = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeGateway:
    """Scriptable stand-in for OrderGateway."""

    def __init__(self, batches: Optional[List[Any]] = None, details: Optional[Dict[str, dict]] = None):
        # each batch is a list of events or an exception to raise
        self.batches = list(batches or [])
        self.details = dict(details or {})
        self.fail_detail: Dict[str, int] = {}      # order_id -> remaining failures
        self.fail_actions: Optional[Exception] = None
        self.fetch_calls = 0
        self.detail_calls: List[str] = []
        self.actions: List[tuple] = []
        self.block: Optional[asyncio.Event] = None

    async def fetch_events(self) -> List[RemoteEvent]:
        self.fetch_calls += 1
        if self.block is not None:
            await self.block.wait()
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return list(batch)

    async def fetch_order_detail(self, order_id: str) -> dict:
        self.detail_calls.append(order_id)
        left = self.fail_detail.get(order_id, 0)
        if left:
            self.fail_detail[order_id] = left - 1
            raise TransportError(f"order {order_id}: upstream down", status=503)
        return self.details.get(order_id, {"id": order_id, "totalPrice": 25.0})

    async def _action(self, name: str, *args):
        if self.fail_actions is not None:
            raise self.fail_actions
        self.actions.append((name,) + args)

    async def confirm(self, order_id):
        await self._action("confirm", order_id)

    async def start_preparation(self, order_id):
        await self._action("start_preparation", order_id)

    async def ready_to_pickup(self, order_id):
        await self._action("ready_to_pickup", order_id)

    async def dispatch(self, order_id):
        await self._action("dispatch", order_id)

    async def request_cancellation(self, order_id, code):
        await self._action("request_cancellation", order_id, code)

    async def fetch_tracking(self, order_id):
        await self._action("fetch_tracking", order_id)
        return {"status": "ON_THE_WAY", "courierName": "Ana"}


class FakeCredentials:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.invalidated = 0

    async def get_valid_credential(self):
        if self.fail:
            raise AuthError("token exchange failed")
        return object()

    async def auth_headers(self) -> Dict[str, str]:
        await self.get_valid_credential()
        return {"Authorization": "Bearer test-token"}

    def invalidate(self) -> None:
        self.invalidated += 1


class FakePoller:
    def __init__(self, stats: Optional[TickStats] = None):
        self.stats = stats or TickStats(fetched=1, applied=1)
        self.started = 0
        self.running = False

    def start(self, *, immediate: bool = True) -> None:
        self.started += 1
        self.running = True

    async def tick(self) -> TickStats:
        return self.stats
