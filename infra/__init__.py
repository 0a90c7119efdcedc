# infra/__init__.py
from __future__ import annotations

from typing import Protocol, Mapping, Any, Optional

from infra.http_client import HttpClient, HttpError

# Services depend on this port rather than on the concrete HttpClient.
class HttpPort(Protocol):
    async def get(self, path: str, *, params: Optional[Mapping[str, Any]] = None,
                  headers: Optional[Mapping[str, str]] = None) -> Any: ...
    async def post(self, path: str, *, json_body: Optional[Any] = None,
                   headers: Optional[Mapping[str, str]] = None, retry: bool = True) -> Any: ...
    async def post_form(self, path: str, form_body: Mapping[str, Any], *,
                        headers: Optional[Mapping[str, str]] = None) -> Any: ...


__all__ = ["HttpClient", "HttpError", "HttpPort"]
