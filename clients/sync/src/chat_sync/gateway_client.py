"""Async HTTP client for the chat gateway's auth and message routes."""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from typing import Any, Callable, Dict, List, Optional, TypeVar

import aiohttp

from .errors import RemoteFailure
from .models import Identity, Message

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _build_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}{path}"


def _quote(segment: str) -> str:
    return urllib.parse.quote(str(segment), safe="")


def _error_detail(raw: str) -> Optional[str]:
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return None


class GatewayClient:
    """Stateless request/response calls; the session itself is a server-set cookie."""

    def __init__(
        self,
        api_url: str,
        *,
        timeout_s: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _client_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # unsafe=True keeps cookies set by IP-addressed hosts (local dev servers).
            self._session = aiohttp.ClientSession(
                cookie_jar=aiohttp.CookieJar(unsafe=True),
                timeout=self._timeout,
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request_json(self, method: str, path: str, payload: Dict[str, Any] | None = None) -> Any:
        url = _build_url(self.api_url, path)
        session = self._client_session()
        try:
            async with session.request(method, url, json=payload) as resp:
                status = resp.status
                raw = await resp.text()
        except asyncio.TimeoutError as exc:
            raise RemoteFailure(None, method=method, url=url, detail="Request timed out") from exc
        except aiohttp.ClientError as exc:
            raise RemoteFailure(None, method=method, url=url, detail=str(exc) or type(exc).__name__) from exc

        if status >= 400:
            logger.warning("%s %s -> HTTP %s", method, url, status)
            raise RemoteFailure(status, method=method, url=url, detail=_error_detail(raw))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RemoteFailure(status, method=method, url=url, detail="Malformed response body") from exc

    def _decode(self, method: str, path: str, data: Any, decoder: Callable[[Any], T]) -> T:
        try:
            return decoder(data)
        except (TypeError, ValueError) as exc:
            raise RemoteFailure(
                None,
                method=method,
                url=_build_url(self.api_url, path),
                detail=f"Unexpected response: {exc}",
            ) from exc

    async def _identity(self, method: str, path: str, payload: Dict[str, Any] | None = None) -> Identity:
        data = await self.request_json(method, path, payload)
        return self._decode(method, path, data, Identity.from_payload)

    async def check_auth(self) -> Identity:
        return await self._identity("GET", "/auth/check")

    async def signup(self, full_name: str, email: str, password: str) -> Identity:
        payload = {"fullName": full_name, "email": email, "password": password}
        return await self._identity("POST", "/auth/signup", payload)

    async def login(self, email: str, password: str) -> Identity:
        return await self._identity("POST", "/auth/login", {"email": email, "password": password})

    async def logout(self) -> None:
        await self.request_json("POST", "/auth/logout")

    async def update_profile(self, fields: Dict[str, Any]) -> Identity:
        return await self._identity("PUT", "/auth/update-profile", dict(fields))

    async def list_users(self) -> List[Identity]:
        path = "/messages/users"
        data = await self.request_json("GET", path)
        return self._decode("GET", path, data, _decode_list(Identity.from_payload))

    async def list_messages(self, partner_id: str) -> List[Message]:
        path = f"/messages/{_quote(partner_id)}"
        data = await self.request_json("GET", path)
        return self._decode("GET", path, data, _decode_list(Message.from_payload))

    async def send_message(self, partner_id: str, *, text: str | None = None, image: str | None = None) -> Message:
        payload: Dict[str, Any] = {}
        if text is not None:
            payload["text"] = text
        if image is not None:
            payload["image"] = image
        path = f"/messages/send/{_quote(partner_id)}"
        data = await self.request_json("POST", path, payload)
        return self._decode("POST", path, data, Message.from_payload)


def _decode_list(decoder: Callable[[Any], T]) -> Callable[[Any], List[T]]:
    def _decode(data: Any) -> List[T]:
        if not isinstance(data, list):
            raise ValueError("expected a list")
        return [decoder(item) for item in data]

    return _decode
