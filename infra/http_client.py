# infra/http_client.py
from __future__ import annotations

import aiohttp
import asyncio
import json
import random
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode
import logging
from utils.logger import logger

JSON_SEPARATORS = (",", ":")
DEFAULT_BASE_URL = "https://merchant-api.ifood.com.br"

class HttpError(Exception):
    def __init__(self, status: int, message: str, payload: Optional[Any] = None):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.message = message
        self.payload = payload if payload is not None else {}


def _json_dumps_compact(obj: Any) -> str:
    return json.dumps(obj, separators=JSON_SEPARATORS, ensure_ascii=False)

def _build_query(params: Optional[Mapping[str, Any]]) -> str:
    if not params:
        return ""
    return "?" + urlencode(params, doseq=True, safe=":/")

def _mask(s: Optional[str]) -> str:
    if not s:
        return ""
    if len(s) <= 8:
        return "*" * len(s)
    return s[:4] + "*" * (len(s) - 8) + s[-4:]

def _try_json(text: str) -> Any:
    try:
        return json.loads(text) if text else None
    except json.JSONDecodeError:
        return None

class HttpClient:
    def __init__(self,
                 cfg: Mapping[str, Any],
                 logger: Optional[logging.Logger] = None,
                 *,
                 timeout_ms: Optional[int] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 ) -> None:
        self.cfg = cfg
        self.log = logger or logging.getLogger("HttpClient")
        self.session = session
        self._owned_session = session is None

        merchant_cfg = cfg.get("merchant", {}) or {}
        self.base_url = str(merchant_cfg.get("base_url") or DEFAULT_BASE_URL).rstrip("/")

        # timeouts & retries
        timeouts_cfg = cfg.get("timeouts", {}) or {}
        retries_cfg = cfg.get("retries", {}) or {}
        self.timeout_ms = int(timeout_ms or timeouts_cfg.get("rest_ms", 10000))
        self.max_attempts = int(retries_cfg.get("rest_max_attempts", 3))
        self.backoff_ms = int(retries_cfg.get("backoff_ms", 200))

        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000)
            self.session = aiohttp.ClientSession(timeout=timeout, raise_for_status=False, trust_env=True)

        self.log.debug(
            f"HttpClient init base_url={self.base_url} timeout_ms={self.timeout_ms} "
            f"max_attempts={self.max_attempts}"
        )

    # ---- async context manager ----------------------------------------------------
    async def __aenter__(self) -> "HttpClient":
        if self._owned_session and (self.session is None or self.session.closed):
            timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000.0)
            self.session = aiohttp.ClientSession(timeout=timeout, raise_for_status=False, trust_env=True)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owned_session and self.session is not None and not self.session.closed:
            await self.session.close()

    async def request(
            self,
            method: str,
            path: str,
            *,
            params: Optional[Mapping[str, Any]] = None,
            json_body: Optional[Any] = None,
            form_body: Optional[Mapping[str, Any]] = None,
            headers: Optional[Mapping[str, str]] = None,
            timeout_ms: Optional[int] = None,
            retry: bool = True,
        ) -> Any:
        """
        Single entry point for every vendor call.
        - method: "GET" | "POST" | "DELETE" | "PUT"
        - path: starts with "/", joined onto base_url
        - params: querystring
        - json_body / form_body: JSON or x-www-form-urlencoded body (mutually exclusive)
        - timeout_ms: overrides the session default
        - retry: exponential backoff on 429/5xx and network errors

        Returns the decoded JSON payload, None for empty bodies (e.g. 204),
        or {"raw": text} when a 2xx body is not JSON.
        """
        assert path.startswith("/"), "path must start with /"
        assert json_body is None or form_body is None, "json_body and form_body are exclusive"
        method = method.upper()
        url = self.base_url + path + _build_query(params)

        req_headers = {"Accept": "application/json"}
        if form_body is not None:
            body_str = urlencode(form_body)
            req_headers["Content-Type"] = "application/x-www-form-urlencoded"
        elif json_body is not None:
            body_str = _json_dumps_compact(json_body)
            req_headers["Content-Type"] = "application/json"
        else:
            body_str = ""
        if headers:
            req_headers.update(headers)

        timeout_ctx = aiohttp.ClientTimeout(total=timeout_ms / 1000.0) if timeout_ms else None

        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.session.request(
                    method,
                    url,
                    data=body_str if body_str else None,
                    headers=req_headers,
                    timeout=timeout_ctx,
                ) as resp:
                    text = await resp.text()
                    status = resp.status
                    if status >= 400:
                        if retry and (status >= 500 or status == 429) and attempt < self.max_attempts:
                            self.log.warning(f"HTTP {status} from {method} {path}, retrying (attempt {attempt})")
                            await self._sleep_backoff(attempt)
                            continue
                        raise HttpError(status, text[:512], _try_json(text))

                    if not text:
                        return None
                    try:
                        return json.loads(text)
                    except json.JSONDecodeError:
                        return {"raw": text}
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if retry and attempt < self.max_attempts:
                    logger.warning(f"Network error: {e} when requesting {method} {path}, retrying...")
                    await self._sleep_backoff(attempt)
                    continue
                raise HttpError(599, f"Network error: {e}") from e
            except HttpError:
                raise
            except Exception as e:
                raise HttpError(599, f"Unexpected error: {e}") from e

    async def _sleep_backoff(self, attempt: int) -> None:
        base = self.backoff_ms * (2 ** (attempt - 1))
        jitter = random.randint(0, self.backoff_ms)
        await asyncio.sleep((base + jitter) / 1000.0)

    # ---- convenience wrappers -------------------------------------------------------
    async def get(self, path: str, *, params: Optional[Mapping[str, Any]] = None,
                  headers: Optional[Mapping[str, str]] = None) -> Any:
        return await self.request("GET", path, params=params, headers=headers)

    async def post(self, path: str, *, json_body: Optional[Any] = None,
                   headers: Optional[Mapping[str, str]] = None, retry: bool = True) -> Any:
        return await self.request("POST", path, json_body=json_body, headers=headers, retry=retry)

    async def post_form(self, path: str, form_body: Mapping[str, Any], *,
                        headers: Optional[Mapping[str, str]] = None) -> Any:
        # credential exchange must not be replayed blindly
        return await self.request("POST", path, form_body=form_body, headers=headers, retry=False)
