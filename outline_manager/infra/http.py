"""Async JSON transport for the Google REST APIs.

One ``HttpClient`` per API host; all of an account's clients share a single
``Auth`` so the access token is fetched once.
"""

from __future__ import annotations

import asyncio
import json as jsonlib
import time
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import aiohttp

from outline_manager.observability.logger import logger

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Refresh this many seconds before the token's advertised expiry.
_EXPIRY_MARGIN = 60.0

# ─── Errors ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    status: int
    body: str
    method: str = ""
    url: str = ""

    @property
    def reason(self) -> str:
        """``error.message`` of a Google error envelope, else the raw body."""
        try:
            payload = jsonlib.loads(self.body)
        except ValueError:
            return self.body
        match payload:
            case {"error": {"message": str(message)}}:
                return message
            case {"error": str(code), "error_description": str(description)}:
                return f"{code}: {description}"
            case {"error": str(code)}:
                return code
            case _:
                return self.body

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.reason}"


# ─── Auth ────────────────────────────────────────────────────────────


@runtime_checkable
class Auth(Protocol):
    async def headers(self) -> dict[str, str]: ...
    async def on_401(self) -> None: ...


class BearerAuth:
    """Fixed access token. Useful for tests and short-lived scripts."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }

    async def on_401(self) -> None:
        pass


class RefreshTokenAuth:
    """OAuth2 refresh-token grant, shared by every client of one account.

    The access token is fetched lazily, reused until shortly before it
    expires, and dropped on a 401 so the next request fetches a fresh one.
    """

    def __init__(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
        token_url: str = GOOGLE_TOKEN_URL,
    ) -> None:
        self._refresh_token = refresh_token
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()
        self._log = logger.bind(component="auth")

    async def _exchange(self) -> tuple[str, float]:
        self._log.debug("Exchanging refresh token for an access token")
        form = {
            "grant_type": "refresh_token",
            "refresh_token": self._refresh_token,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        timeout = aiohttp.ClientTimeout(total=30)
        async with (
            aiohttp.ClientSession(timeout=timeout) as session,
            session.post(self._token_url, data=form) as resp,
        ):
            if resp.status >= 400:
                error = HttpError(
                    status=resp.status, body=await resp.text(), method="POST", url=self._token_url,
                )
                self._log.error("Token exchange rejected: {err}", err=error)
                raise error
            grant = await resp.json()
        lifetime = float(grant.get("expires_in", 3600))
        return grant["access_token"], time.monotonic() + lifetime - _EXPIRY_MARGIN

    async def headers(self) -> dict[str, str]:
        async with self._lock:
            if self._token is None or time.monotonic() >= self._expires_at:
                self._token, self._expires_at = await self._exchange()
            token = self._token
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    async def on_401(self) -> None:
        async with self._lock:
            self._token = None


# ─── Client ──────────────────────────────────────────────────────────


class HttpClient:
    def __init__(
        self,
        base_url: str,
        auth: Auth | None = None,
        *,
        timeout: float = 30,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._default_headers = default_headers or {}
        self._session: aiohttp.ClientSession | None = None
        self._log = logger.bind(component="http", host=self._base_url)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _build_headers(self) -> dict[str, str]:
        headers = dict(self._default_headers)
        if self._auth:
            headers.update(await self._auth.headers())
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return its decoded JSON body (None when empty).

        A 401 is retried once with fresh credentials.

        Raises:
            HttpError: Non-2xx response, or a transport failure (status 0).
        """
        session = await self._ensure_session()
        url = f"{self._base_url}{path}"
        started = time.perf_counter()

        try:
            for attempt in (1, 2):
                headers = await self._build_headers()
                async with session.request(
                    method, url, headers=headers, json=json, params=params,
                ) as resp:
                    if resp.status == 401 and self._auth and attempt == 1:
                        self._log.debug("401 on {method} {path}, refreshing credentials",
                                        method=method, path=path)
                        await self._auth.on_401()
                        continue
                    data = await self._decode(method, resp)
                self._log.debug(
                    "{method} {path} -> {status} in {ms:.0f}ms",
                    method=method, path=path, status=resp.status,
                    ms=(time.perf_counter() - started) * 1000,
                )
                return data
        except aiohttp.ClientError as e:
            raise HttpError(status=0, body=str(e), method=method, url=url) from e
        raise AssertionError("unreachable")

    async def _decode(self, method: str, resp: aiohttp.ClientResponse) -> Any:
        raw = await resp.read()
        if resp.status >= 400:
            error = HttpError(
                status=resp.status,
                body=raw.decode(errors="replace"),
                method=method,
                url=str(resp.url),
            )
            self._log.warning("{method} {url} failed: {err}", method=method, url=error.url, err=error)
            raise error
        return jsonlib.loads(raw) if raw else None

    # ─── Lifecycle ───────────────────────────────────────────────────

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> HttpClient:
        await self._ensure_session()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
