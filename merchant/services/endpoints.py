# merchant/services/endpoints.py
from dataclasses import dataclass

@dataclass
class Endpoints:
    # REST path constants, joined onto HttpClient.base_url
    oauth_token: str = "/authentication/v1.0/oauth/token"
    events_polling: str = "/order/v1.0/events:polling"
    events_ack: str = "/order/v1.0/events/acknowledgment"
    orders: str = "/order/v1.0/orders"

    def order(self, order_id: str) -> str:
        return f"{self.orders}/{order_id}"

    def order_action(self, order_id: str, action: str) -> str:
        """e.g. order_action("o1", "confirm") -> /order/v1.0/orders/o1/confirm"""
        return f"{self.orders}/{order_id}/{action}"


def make_endpoints_from_cfg(cfg: dict) -> Endpoints:
    overrides = (cfg.get("merchant", {}) or {}).get("paths") or {}
    try:
        return Endpoints(**overrides)
    except TypeError as e:
        raise ValueError(f"Invalid merchant.paths override: {e}") from e
