# merchant/services/projector.py
from datetime import datetime
from typing import Callable, Dict, Optional

from merchant.enums import EventCode, OrderStatus, ProjectionOutcome
from merchant.errors import MerchantError
from merchant.models import OrderRecord, RemoteEvent
from merchant.stores.order_store import OrderStore
from utils.logger import logger
from utils.time import utc_now

# PLACED and OTHER are handled separately
STATUS_BY_CODE: Dict[EventCode, OrderStatus] = {
    EventCode.CONFIRMED: OrderStatus.CONFIRMED,
    EventCode.PREPARATION_STARTED: OrderStatus.IN_PREPARATION,
    EventCode.READY_FOR_PICKUP: OrderStatus.READY_FOR_PICKUP,
    EventCode.DISPATCHED: OrderStatus.DISPATCHED,
    EventCode.CONCLUDED: OrderStatus.CONCLUDED,
    EventCode.CANCELLED: OrderStatus.CANCELLED,
}


class EventProjector:
    """
    Maps one feed event onto the OrderStore.

    PLACED fetches the full order and (re)creates the record as NEW. Every
    other code only touches orders already known locally: status codes move
    the status, unknown codes are appended to the history without a status
    change, and events for unknown orders are ignored. Backward transitions
    (e.g. CONFIRMED arriving after DISPATCHED) are applied as received.
    """

    def __init__(self, gateway, store: OrderStore, *,
                 clock: Callable[[], datetime] = utc_now,
                 log=None) -> None:
        self._gateway = gateway
        self._store = store
        self._clock = clock
        self._log = log or logger

    async def apply(self, event: RemoteEvent) -> ProjectionOutcome:
        self._log.debug(f"Projecting event {event.id} code={event.raw_code or event.code.value} order={event.order_id}")
        if event.code is EventCode.PLACED:
            return await self._on_placed(event)

        new_status: Optional[OrderStatus] = STATUS_BY_CODE.get(event.code)
        updated = await self._store.update(
            event.order_id, lambda rec: rec.with_event(event, new_status)
        )
        if updated is None:
            self._log.debug(f"Event {event.id} references unknown order {event.order_id}, ignoring")
            return ProjectionOutcome.IGNORED

        self._log.info(f"Order {event.order_id} -> {updated.status.value} (event {event.id})")
        return ProjectionOutcome.UPDATED

    async def _on_placed(self, event: RemoteEvent) -> ProjectionOutcome:
        try:
            detail = await self._gateway.fetch_order_detail(event.order_id)
        except MerchantError as e:
            self._log.error(f"Failed to fetch new order {event.order_id} (event {event.id}), will retry: {e}")
            return ProjectionOutcome.RETRY

        record = OrderRecord(
            order_id=event.order_id,
            detail=detail,
            status=OrderStatus.NEW,
            created_at=self._clock(),
            event_history=(event,),
        )
        await self._store.put(event.order_id, record)
        self._log.info(f"New order received: {event.order_id}")
        return ProjectionOutcome.CREATED
