# merchant/services/order_gateway.py
from typing import Any, Dict, Iterable, List, Optional

from infra.http_client import HttpError
from merchant.errors import AuthError, MerchantError, NotFoundError, TransportError
from merchant.models import RemoteEvent
from utils.logger import logger


def _map_http_error(e: HttpError, what: str) -> Exception:
    if e.status in (401, 403):
        return AuthError(f"{what}: unauthorized", status=e.status)
    if e.status == 404:
        return NotFoundError(f"{what}: not found")
    return TransportError(f"{what}: {e.message}", status=e.status)


class OrderGateway:
    """
    Request issuer for the merchant order endpoints.
    Every call fetches a bearer header from the CredentialCache first, so an
    AuthError from the cache fails the call before anything is sent.
    """

    def __init__(self, http_client, endpoints, credentials, log=None) -> None:
        self._http = http_client
        self._ep = endpoints
        self._creds = credentials
        self._log = log or logger

    async def _call(self, method: str, path: str, what: str, *,
                    json_body: Optional[Any] = None, retry: bool = True) -> Any:
        headers = await self._creds.auth_headers()
        try:
            if method == "GET":
                return await self._http.get(path, headers=headers)
            return await self._http.post(path, json_body=json_body, headers=headers, retry=retry)
        except HttpError as e:
            if e.status == 401:
                # token revoked server-side; force a fresh exchange next time
                self._creds.invalidate()
            raise _map_http_error(e, what) from e

    # ---- event feed ---------------------------------------------------------------
    async def fetch_events(self) -> List[RemoteEvent]:
        """GET events:polling. An empty batch (204 / []) is a normal outcome."""
        payload = await self._call("GET", self._ep.events_polling, "poll events")
        if not payload:
            return []
        if not isinstance(payload, list):
            raise TransportError(f"poll events: unexpected payload type {type(payload).__name__}")

        events: List[RemoteEvent] = []
        for it in payload:
            try:
                events.append(RemoteEvent.from_wire(it))
            except (KeyError, ValueError, TypeError) as e:
                self._log.warning(f"Dropping malformed event {it!r}: {e}")
        return events

    async def acknowledge_events(self, event_ids: Iterable[str]) -> int:
        """
        POST events/acknowledgment, one id per request.
        Returns how many were accepted; per-id failures are logged, not raised.
        """
        ok = 0
        for event_id in event_ids:
            try:
                await self._call("POST", self._ep.events_ack, f"ack event {event_id}", json_body={"id": event_id})
                ok += 1
            except MerchantError as e:
                self._log.warning(f"Failed to acknowledge event {event_id}: {e}")
        return ok

    # ---- orders -------------------------------------------------------------------
    async def fetch_order_detail(self, order_id: str) -> Dict[str, Any]:
        self._log.debug(f"Fetching order detail {order_id}")
        payload = await self._call("GET", self._ep.order(order_id), f"order {order_id}")
        # a non-JSON 2xx body (proxy or maintenance page) comes back as {"raw": text}
        if not isinstance(payload, dict) or "id" not in payload:
            raise TransportError(f"order {order_id}: unexpected payload")
        return payload

    async def _action(self, order_id: str, action: str, what: str, body: Dict[str, Any]) -> None:
        # state-changing POSTs are sent once; a timed-out request may already have been applied
        await self._call("POST", self._ep.order_action(order_id, action), what, json_body=body, retry=False)

    async def confirm(self, order_id: str) -> None:
        await self._action(order_id, "confirm", f"confirm {order_id}", {})
        self._log.info(f"Order {order_id} confirmed")

    async def start_preparation(self, order_id: str) -> None:
        await self._action(order_id, "startPreparation", f"start preparation {order_id}", {})
        self._log.info(f"Order {order_id} preparation started")

    async def ready_to_pickup(self, order_id: str) -> None:
        await self._action(order_id, "readyToPickup", f"ready to pickup {order_id}", {})
        self._log.info(f"Order {order_id} ready for pickup")

    async def dispatch(self, order_id: str) -> None:
        await self._action(order_id, "dispatch", f"dispatch {order_id}", {})
        self._log.info(f"Order {order_id} dispatched")

    async def request_cancellation(self, order_id: str, cancellation_code: str) -> None:
        await self._action(order_id, "requestCancellation", f"cancel {order_id}",
                           {"cancellationCode": cancellation_code})
        self._log.info(f"Cancellation requested for order {order_id} code={cancellation_code}")

    async def fetch_tracking(self, order_id: str) -> Dict[str, Any]:
        payload = await self._call("GET", self._ep.order_action(order_id, "tracking"), f"tracking {order_id}")
        return payload if isinstance(payload, dict) else {}
