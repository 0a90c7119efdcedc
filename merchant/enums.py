# merchant/enums.py
from enum import Enum
from typing import Dict

class EventCode(Enum):
    PLACED = "PLACED"
    CONFIRMED = "CONFIRMED"
    PREPARATION_STARTED = "PREPARATION_STARTED"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    DISPATCHED = "DISPATCHED"
    CONCLUDED = "CONCLUDED"
    CANCELLED = "CANCELLED"
    OTHER = "OTHER"

    @classmethod
    def from_wire(cls, code: str | None) -> "EventCode":
        """Map a feed code (short or long form) onto EventCode; unknown codes become OTHER."""
        if not code:
            return cls.OTHER
        return _WIRE_CODES.get(str(code).strip().upper(), cls.OTHER)

# PLC is the legacy short code for PLACED
_WIRE_CODES: Dict[str, EventCode] = {
    "PLACED": EventCode.PLACED,
    "PLC": EventCode.PLACED,
    "CFM": EventCode.CONFIRMED,
    "CONFIRMED": EventCode.CONFIRMED,
    "PRS": EventCode.PREPARATION_STARTED,
    "PREPARATION_STARTED": EventCode.PREPARATION_STARTED,
    "RTP": EventCode.READY_FOR_PICKUP,
    "READY_TO_PICKUP": EventCode.READY_FOR_PICKUP,
    "DSP": EventCode.DISPATCHED,
    "DISPATCHED": EventCode.DISPATCHED,
    "CON": EventCode.CONCLUDED,
    "CONCLUDED": EventCode.CONCLUDED,
    "CAN": EventCode.CANCELLED,
    "CANCELLED": EventCode.CANCELLED,
}

class OrderStatus(Enum):
    NEW = "NEW"
    CONFIRMED = "CONFIRMED"
    IN_PREPARATION = "IN_PREPARATION"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    DISPATCHED = "DISPATCHED"
    CONCLUDED = "CONCLUDED"
    CANCELLED = "CANCELLED"

class ProjectionOutcome(Enum):
    CREATED = "created"     # new record from a PLACED event
    UPDATED = "updated"     # existing record mutated
    IGNORED = "ignored"     # nothing to update, event still counts as applied
    RETRY = "retry"         # transient failure, leave the event unmarked
