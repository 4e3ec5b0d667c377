"""ThingsBoard REST transport: login, relation queries, telemetry and attributes."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import jwt

from lampctl.core.errors import AuthenticationError, TransportError, TransportTimeoutError
from lampctl.core.model import PlatformSettings

LOGGER = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_S = 300.0


class TokenSession:
    """Cached bearer token with single-flight refresh.

    Concurrent callers that find the token missing or expired all await the
    same login task, so at most one login request is in flight at a time.
    """

    def __init__(
        self,
        login: Callable[[], Awaitable[str]],
        *,
        clock: Callable[[], float] = time.time,
        default_ttl_s: float = DEFAULT_TOKEN_TTL_S,
    ) -> None:
        self._login = login
        self._clock = clock
        self._default_ttl_s = default_ttl_s
        self._token: str | None = None
        self._expires_at = 0.0
        self._refresh: asyncio.Future[str] | None = None

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0

    async def access_token(self) -> str:
        if self._token is not None and self._clock() < self._expires_at:
            return self._token

        refresh = self._refresh
        if refresh is None or refresh.done():
            refresh = asyncio.ensure_future(self._refresh_token())
            self._refresh = refresh
        return await refresh

    async def _refresh_token(self) -> str:
        token = await self._login()
        self._token = token
        self._expires_at = self._expiry_for(token)
        return token

    def _expiry_for(self, token: str) -> float:
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            claims = {}
        exp = claims.get("exp")
        if isinstance(exp, (int, float)):
            return float(exp)
        return self._clock() + self._default_ttl_s


class ThingsBoardClient:
    def __init__(
        self,
        settings: PlatformSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self.session = TokenSession(self._login, clock=clock)

    async def access_token(self) -> str:
        return await self.session.access_token()

    async def find_relations(self, query: dict[str, Any], token: str) -> list[dict[str, Any]]:
        data = await self._request("POST", "/api/relations", token=token, json=query)
        if not isinstance(data, list):
            raise TransportError("Relation query returned an unexpected response body")
        return data

    async def latest_telemetry(self, device_id: str, key: str, token: str) -> str | None:
        data = await self._request(
            "GET",
            f"/api/plugins/telemetry/DEVICE/{device_id}/values/timeseries",
            token=token,
            params={"keys": key},
        )
        if not isinstance(data, dict):
            return None
        series = data.get(key)
        if not series:
            return None
        return _entry_value(series[0])

    async def latest_attribute(self, device_id: str, key: str, token: str) -> str | None:
        data = await self._request(
            "GET",
            f"/api/plugins/telemetry/DEVICE/{device_id}/values/attributes",
            token=token,
            params={"keys": key},
        )
        if not isinstance(data, list):
            return None
        for entry in data:
            if isinstance(entry, dict) and entry.get("key", key) == key:
                return _entry_value(entry)
        return None

    async def _login(self) -> str:
        payload = {"username": self.settings.username, "password": self.settings.password}
        try:
            data = await self._request("POST", "/api/auth/login", json=payload)
        except TransportError as exc:
            LOGGER.error("Error logging in to ThingsBoard: %s", exc)
            raise AuthenticationError(f"Unable to authenticate with ThingsBoard: {exc}") from exc

        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthenticationError("ThingsBoard login response did not include a token")
        LOGGER.info("Successfully logged in to ThingsBoard")
        return token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        **kwargs: Any,
    ) -> Any:
        headers = {"accept": "application/json"}
        if token is not None:
            headers["X-Authorization"] = f"Bearer {token}"

        timeout = httpx.Timeout(self.settings.timeout_s)
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.url,
                timeout=timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportTimeoutError(f"{method} {path} timed out") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 401 and token is not None:
            self.session.invalidate()
        if response.status_code >= 400:
            raise TransportError(
                f"{method} {path} returned HTTP {response.status_code}: {_error_detail(response)}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"{method} {path} returned invalid JSON") from exc


def _entry_value(entry: Any) -> str | None:
    if not isinstance(entry, dict):
        return None
    value = entry.get("value")
    if value is None or value == "":
        return None
    return str(value)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or "no detail"
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return "no detail"
