# merchant/app/order_api.py
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from merchant.enums import OrderStatus
from merchant.models import OrderRecord
from merchant.stores.order_store import OrderStore
from utils.logger import logger
from utils.time import utc_now, within_trailing

DASHBOARD_WINDOW = timedelta(hours=24)


class OrderAPI:
    """
    Application-facing order API used by operators and dashboards.

    Manual transitions call the platform first and then overwrite the local
    status directly; they do not append an event and do not touch the
    DedupLedger. Errors from the platform are raised to the caller.
    """

    def __init__(self, gateway, store: OrderStore, *,
                 clock: Callable[[], datetime] = utc_now,
                 log=None) -> None:
        self._gateway = gateway
        self._store = store
        self._clock = clock
        self._log = log or logger

    # ---- reads ----
    async def list_orders(self) -> List[OrderRecord]:
        return await self._store.list_all()

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        """Local record if known, else the remote detail (not stored)."""
        rec = await self._store.get(order_id)
        if rec is not None:
            return rec.to_dict()
        return await self._gateway.fetch_order_detail(order_id)

    async def force_fetch(self, order_id: str) -> OrderRecord:
        """Fetch an order by id and store it as NEW with an empty history, replacing any local copy."""
        self._log.info(f"Force fetching order {order_id}")
        detail = await self._gateway.fetch_order_detail(order_id)
        rec = OrderRecord(
            order_id=order_id,
            detail=detail,
            status=OrderStatus.NEW,
            created_at=self._clock(),
        )
        await self._store.put(order_id, rec)
        return rec

    async def tracking(self, order_id: str) -> Dict[str, Any]:
        return await self._gateway.fetch_tracking(order_id)

    # ---- manual transitions ----
    async def confirm(self, order_id: str) -> Optional[OrderRecord]:
        await self._gateway.confirm(order_id)
        return await self._set_status(order_id, OrderStatus.CONFIRMED)

    async def start_preparation(self, order_id: str) -> Optional[OrderRecord]:
        await self._gateway.start_preparation(order_id)
        return await self._set_status(order_id, OrderStatus.IN_PREPARATION)

    async def ready_to_pickup(self, order_id: str) -> Optional[OrderRecord]:
        await self._gateway.ready_to_pickup(order_id)
        return await self._set_status(order_id, OrderStatus.READY_FOR_PICKUP)

    async def dispatch(self, order_id: str) -> Optional[OrderRecord]:
        await self._gateway.dispatch(order_id)
        return await self._set_status(order_id, OrderStatus.DISPATCHED)

    async def request_cancellation(self, order_id: str, cancellation_code: str) -> None:
        # the platform answers with a CAN event once the cancellation is accepted
        if not cancellation_code:
            raise ValueError("cancellation code is required")
        await self._gateway.request_cancellation(order_id, cancellation_code)

    async def _set_status(self, order_id: str, status: OrderStatus) -> Optional[OrderRecord]:
        rec = await self._store.update(order_id, lambda r: r.with_status(status))
        if rec is None:
            self._log.warning(f"Order {order_id} not tracked locally, status {status.value} not recorded")
        return rec

    # ---- dashboard ----
    async def dashboard(self) -> Dict[str, Any]:
        """Aggregates computed from the store at call time."""
        now = self._clock()
        records = await self._store.list_all()
        by_status = Counter(r.status.value for r in records)
        return {
            "total": len(records),
            "byStatus": {s.value: by_status.get(s.value, 0) for s in OrderStatus},
            "totalValue": round(sum(r.total_value for r in records), 2),
            "last24h": sum(1 for r in records if within_trailing(r.created_at, DASHBOARD_WINDOW, now)),
            "asOf": now.isoformat(),
        }
