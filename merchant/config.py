# merchant/config.py
from dataclasses import dataclass
from typing import Any, Mapping

@dataclass
class MerchantSettings:
    """Reconciler runtime configuration."""
    client_id: str
    client_secret: str

    base_url: str = "https://merchant-api.ifood.com.br"
    poll_interval_s: float = 30.0       # vendor rate-limit guidance
    token_safety_margin_s: float = 300.0

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any]) -> "MerchantSettings":
        m = cfg.get("merchant", {}) or {}
        return cls(
            client_id=str(m.get("client_id") or ""),
            client_secret=str(m.get("client_secret") or ""),
            base_url=str(m.get("base_url") or cls.base_url).rstrip("/"),
            poll_interval_s=float(m.get("poll_interval_s", cls.poll_interval_s)),
            token_safety_margin_s=float(m.get("token_safety_margin_s", cls.token_safety_margin_s)),
        )
