# merchant/models.py
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Dict, Any, Tuple

from merchant.enums import EventCode, OrderStatus
from utils.time import parse_iso


@dataclass(frozen=True)
class Credential:
    token: str
    expires_at: float          # epoch seconds, nominal expiry reported by the issuer

    def is_usable(self, now: float, safety_margin_s: float = 0.0) -> bool:
        return now < self.expires_at - safety_margin_s


@dataclass(frozen=True)
class RemoteEvent:
    id: str
    code: EventCode
    order_id: str
    occurred_at: Optional[datetime] = None
    raw_code: str = ""                     # wire code as received, e.g. "CFM"
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_wire(cls, it: Dict[str, Any]) -> "RemoteEvent":
        """Build from a polling payload item; raises KeyError/ValueError on missing identity fields."""
        event_id = it["id"]
        order_id = it["orderId"]
        if not event_id or not order_id:
            raise ValueError(f"event without id/orderId: {it}")
        raw_code = str(it.get("code") or it.get("fullCode") or "")
        return cls(
            id=str(event_id),
            code=EventCode.from_wire(raw_code),
            order_id=str(order_id),
            occurred_at=parse_iso(it.get("createdAt")),
            raw_code=raw_code,
            metadata=dict(it.get("metadata") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.raw_code or self.code.value,
            "orderId": self.order_id,
            "createdAt": self.occurred_at.isoformat() if self.occurred_at else None,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class OrderRecord:
    """
    Local projection of one vendor order.
    Frozen: every change produces a new record which the OrderStore swaps in whole.
    """
    order_id: str
    detail: Dict[str, Any]
    status: OrderStatus
    created_at: datetime
    event_history: Tuple[RemoteEvent, ...] = ()

    def with_event(self, event: RemoteEvent, status: Optional[OrderStatus] = None) -> "OrderRecord":
        return replace(
            self,
            status=status or self.status,
            event_history=self.event_history + (event,),
        )

    def with_status(self, status: OrderStatus) -> "OrderRecord":
        return replace(self, status=status)

    @property
    def total_value(self) -> float:
        return order_value(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.detail)
        out.update({
            "id": self.order_id,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "events": [e.to_dict() for e in self.event_history],
        })
        return out


def order_value(detail: Dict[str, Any]) -> float:
    """Order amount from either the flat (totalPrice) or nested (total.orderAmount) payload shape."""
    v = detail.get("totalPrice")
    if v is None:
        v = (detail.get("total") or {}).get("orderAmount")
    try:
        return float(v) if v is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


@dataclass
class TickStats:
    fetched: int = 0
    applied: int = 0
    duplicates: int = 0
    retried: int = 0
    failed: bool = False
