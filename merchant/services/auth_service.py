# merchant/services/auth_service.py
import asyncio
import time
from typing import Any, Callable, Dict, Optional

from infra.http_client import HttpError, _mask
from merchant.errors import AuthError
from merchant.models import Credential
from utils.logger import logger

# lifetime assumed when the issuer omits or garbles the expiry field
DEFAULT_TOKEN_LIFETIME_S = 21600.0


class CredentialCache:
    """
    Holds the bearer credential for the merchant API and refreshes it lazily.

    The first caller after expiry (minus the safety margin) pays the refresh;
    concurrent callers during that window wait on the same lock and reuse the
    freshly issued credential instead of issuing their own exchange.
    """

    def __init__(self,
                 http_client,
                 endpoints,
                 client_id: str,
                 client_secret: str,
                 *,
                 safety_margin_s: float = 300.0,
                 clock: Callable[[], float] = time.time,
                 log=None) -> None:
        self._http = http_client
        self._ep = endpoints
        self._client_id = client_id
        self._client_secret = client_secret
        self._margin = float(safety_margin_s)
        # margin applied to the current credential, never more than half its lifetime
        self._cred_margin = self._margin
        self._clock = clock
        self._log = log or logger
        self._cred: Optional[Credential] = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[Credential]:
        return self._cred

    def _usable(self, cred: Optional[Credential]) -> bool:
        return cred is not None and cred.is_usable(self._clock(), self._cred_margin)

    async def get_valid_credential(self) -> Credential:
        cred = self._cred
        if self._usable(cred):
            return cred
        async with self._lock:
            # another caller may have refreshed while we waited
            cred = self._cred
            if self._usable(cred):
                return cred
            self._cred = await self._issue()
            return self._cred

    async def auth_headers(self) -> Dict[str, str]:
        cred = await self.get_valid_credential()
        return {"Authorization": f"Bearer {cred.token}"}

    def invalidate(self) -> None:
        """Drop the cached credential; the next caller exchanges a new one."""
        self._cred = None

    async def _issue(self) -> Credential:
        if not (self._client_id and self._client_secret):
            raise AuthError("client id/secret not configured")

        self._log.info(f"Requesting new access token client_id={_mask(self._client_id)}")
        form = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        try:
            payload = await self._http.post_form(self._ep.oauth_token, form)
        except HttpError as e:
            self._log.error(f"Token exchange failed: status={e.status} body={e.payload or e.message}")
            raise AuthError("token exchange failed", status=e.status) from e

        token, expires_in = _parse_token_payload(payload)
        if not token:
            self._log.error(f"Token response without access token: keys={sorted((payload or {}).keys()) if isinstance(payload, dict) else type(payload).__name__}")
            raise AuthError("token response missing access token")

        if expires_in is None or expires_in <= 0:
            self._log.warning(f"Token response without usable expiry, assuming {DEFAULT_TOKEN_LIFETIME_S:.0f}s")
            expires_in = DEFAULT_TOKEN_LIFETIME_S

        margin = self._margin
        if expires_in <= 2 * margin:
            margin = expires_in / 2
            self._log.warning(f"Token lifetime {expires_in:.0f}s too short for safety margin "
                              f"{self._margin:.0f}s, using {margin:.0f}s")
        self._cred_margin = margin

        cred = Credential(token=token, expires_at=self._clock() + expires_in)
        self._log.info(f"Access token obtained, expires_in={expires_in:.0f}s")
        return cred


def _parse_token_payload(payload: Any) -> tuple[Optional[str], Optional[float]]:
    # camelCase is the current wire form; snake_case is still seen on older tenants
    if not isinstance(payload, dict):
        return None, None
    token = payload.get("accessToken") or payload.get("access_token")
    raw_exp = payload.get("expiresIn", payload.get("expires_in"))
    try:
        expires_in = float(raw_exp) if raw_exp is not None else None
    except (TypeError, ValueError):
        expires_in = None
    return token, expires_in
