from __future__ import annotations

import json as jsonlib
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlencode

import aiohttp
from loguru import logger

# ─── Errors ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    """Non-2xx response or transport failure.

    ``status`` is 0 when no response was received at all.
    """

    status: int
    body: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def request_id(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "x-request-id":
                return value
        return ""

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.body}"


def is_transport_error(e: Exception) -> bool:
    return isinstance(e, HttpError) and e.status == 0


# ─── Auth ────────────────────────────────────────────────────────────


@runtime_checkable
class Auth(Protocol):
    """Produces per-request headers.

    The signer sees the exact method, URL and body bytes that go on the wire.
    """

    def headers(self, method: str, url: str, body: bytes) -> dict[str, str]: ...


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
        self._log = logger.bind(component="http")

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str, params: dict[str, Any] | None) -> str:
        url = f"{self._base_url}{path}"
        if params:
            url = f"{url}?{urlencode(sorted((k, str(v)) for k, v in params.items()))}"
        return url

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _build_headers(self, method: str, url: str, body: bytes) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **self._default_headers}
        if self._auth:
            headers.update(self._auth.headers(method, url, body))
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a JSON request and return the decoded body (``None`` when empty)."""
        session = await self._ensure_session()
        url = self._url(path, params)
        body = jsonlib.dumps(json).encode() if json is not None else b""
        headers = self._build_headers(method, url, body)
        self._log.debug("{method} {path}", method=method, path=path)

        try:
            async with session.request(
                method, url, headers=headers, data=body or None
            ) as resp:
                return await self._parse(resp)
        except aiohttp.ClientResponseError as e:
            raise HttpError(status=e.status, body=e.message) from e
        except TimeoutError as e:
            raise HttpError(status=0, body=f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise HttpError(status=0, body=str(e)) from e

    async def _parse(self, resp: aiohttp.ClientResponse) -> Any:
        if resp.status >= 400:
            body = await resp.text()
            self._log.debug(
                "HTTP {status} from {url}: {body}",
                status=resp.status, url=str(resp.url), body=body[:500],
            )
            raise HttpError(status=resp.status, body=body, headers=dict(resp.headers))
        raw = await resp.read()
        return jsonlib.loads(raw) if raw else None

    # ─── Lifecycle ───────────────────────────────────────────────────

    async def close(self) -> None:
        if self._session and not self._session.closed:
            self._log.debug("Closing HTTP session")
            await self._session.close()

    async def __aenter__(self) -> HttpClient:
        await self._ensure_session()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
