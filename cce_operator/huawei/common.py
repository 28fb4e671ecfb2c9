"""Shared plumbing for the Huawei Cloud service clients."""

from __future__ import annotations

import random
import string
from dataclasses import dataclass
from typing import Any

from loguru import logger

from cce_operator.infra.http import HttpClient, HttpError, is_transport_error
from cce_operator.retry import any_of, on_status_code, retry

from .errors import HuaweiError
from .signer import AkSkAuth

DEFAULT_ENDPOINT_TEMPLATE = "https://{service}.{region}.myhuaweicloud.com"
RESOURCE_NAME_PREFIX = "cce-operator-managed"
DEFAULT_RESOURCE_DESCRIPTION = "Managed by cce-operator, do not edit!"

# A dropped connection or a 503 may come after the service did the work, so
# only lookups and deletes are resent. A 429 is rejected before any work.
IDEMPOTENT_METHODS = frozenset({"GET", "DELETE"})

retry_idempotent = retry(
    on=any_of(on_status_code(429, 503), is_transport_error),
    max_attempts=3,
    base_delay=1.0,
)
retry_throttled = retry(on=on_status_code(429), max_attempts=3, base_delay=1.0)


def gen_resource_name(kind: str) -> str:
    """``cce-operator-managed-<kind>-<5 random chars>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"{RESOURCE_NAME_PREFIX}-{kind}-{suffix}"


@dataclass(frozen=True, slots=True)
class ClientAuth:
    access_key: str
    secret_key: str
    region: str
    project_id: str
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE
    request_timeout: float = 30.0

    def endpoint(self, service: str) -> str:
        return self.endpoint_template.format(service=service, region=self.region)

    def __repr__(self) -> str:
        return f"ClientAuth(region={self.region!r}, project_id={self.project_id!r})"


class ServiceClient:
    """Base for a single Huawei Cloud service.

    Subclasses set ``service`` to the endpoint prefix (``cce``, ``vpc``, ...).
    """

    service: str = ""

    def __init__(self, auth: ClientAuth) -> None:
        self._project_id = auth.project_id
        self._region = auth.region
        self._log = logger.bind(provider="huawei", component=self.service)
        self._http = HttpClient(
            auth.endpoint(self.service),
            AkSkAuth(auth.access_key, auth.secret_key, auth.project_id),
            timeout=auth.request_timeout,
        )

    async def __aenter__(self) -> ServiceClient:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        if method.upper() in IDEMPOTENT_METHODS:
            return await self._send_idempotent(method, path, json, params)
        return await self._send_once(method, path, json, params)

    @retry_idempotent
    async def _send_idempotent(
        self, method: str, path: str, json: dict[str, Any] | None, params: dict[str, Any] | None
    ) -> Any:
        return await self._send(method, path, json, params)

    @retry_throttled
    async def _send_once(
        self, method: str, path: str, json: dict[str, Any] | None, params: dict[str, Any] | None
    ) -> Any:
        return await self._send(method, path, json, params)

    async def _send(
        self, method: str, path: str, json: dict[str, Any] | None, params: dict[str, Any] | None
    ) -> Any:
        try:
            return await self._http.request(method, path, json=json, params=params)
        except HttpError as e:
            if e.status == 0:
                raise
            err = HuaweiError.from_http(e)
            self._log.debug(
                "API error {method} {path}: {err}",
                method=method, path=path, err=err,
            )
            raise err from e
