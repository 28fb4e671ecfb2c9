"""Per-credential bundles of Huawei Cloud service clients."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from cce_operator.api.types import ClusterSpec
from cce_operator.exceptions import CredentialError, NotFoundError
from cce_operator.store.base import SecretStore

from .cce import CCEClient
from .common import DEFAULT_ENDPOINT_TEMPLATE, ClientAuth
from .elb import ELBClient
from .network import DNSClient, EIPClient, NATClient, VPCClient, VPCEPClient

ACCESS_KEY_FIELD = "huaweicredentialConfig-accessKey"
SECRET_KEY_FIELD = "huaweicredentialConfig-secretKey"
PROJECT_ID_FIELD = "huaweicredentialConfig-projectID"

log = logger.bind(component="driver")


@dataclass(slots=True)
class Driver:
    cce: CCEClient
    vpc: VPCClient
    eip: EIPClient
    nat: NATClient
    dns: DNSClient
    vpcep: VPCEPClient
    elb: ELBClient

    async def close(self) -> None:
        await asyncio.gather(
            self.cce.close(), self.vpc.close(), self.eip.close(), self.nat.close(),
            self.dns.close(), self.vpcep.close(), self.elb.close(),
        )


def build_driver(auth: ClientAuth) -> Driver:
    return Driver(
        cce=CCEClient(auth),
        vpc=VPCClient(auth),
        eip=EIPClient(auth),
        nat=NATClient(auth),
        dns=DNSClient(auth),
        vpcep=VPCEPClient(auth),
        elb=ELBClient(auth),
    )


def parse_secret_ref(ref: str) -> tuple[str, str]:
    """Split ``namespace:name``. A bare name has an empty namespace."""
    namespace, sep, name = ref.partition(":")
    return (namespace, name) if sep else ("", namespace)


async def resolve_client_auth(
    secrets: SecretStore,
    spec: ClusterSpec,
    default_namespace: str = "",
    *,
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE,
    request_timeout: float = 30.0,
) -> ClientAuth:
    if not spec.region_id:
        raise CredentialError("regionID not provided")
    if not spec.credential_secret:
        raise CredentialError("huawei credential secret not provided")

    namespace, name = parse_secret_ref(spec.credential_secret)
    namespace = namespace or default_namespace
    try:
        data = await secrets.get_secret(namespace, name)
    except NotFoundError as e:
        raise CredentialError(f"error getting secret {namespace}/{name}: {e}") from e

    try:
        access_key = data[ACCESS_KEY_FIELD]
        secret_key = data[SECRET_KEY_FIELD]
        project_id = data[PROJECT_ID_FIELD]
    except KeyError as e:
        raise CredentialError("invalid huawei cloud credential") from e

    return ClientAuth(
        access_key=access_key,
        secret_key=secret_key,
        region=spec.region_id,
        project_id=project_id,
        endpoint_template=endpoint_template,
        request_timeout=request_timeout,
    )


class DriverCache:
    """Drivers keyed by credential reference.

    A driver is rebuilt only when the credentials it was built from change.
    When the credential secret cannot be read the last good driver is kept.
    """

    def __init__(
        self,
        secrets: SecretStore,
        *,
        endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE,
        request_timeout: float = 30.0,
        factory: Callable[[ClientAuth], Driver] = build_driver,
    ) -> None:
        self._secrets = secrets
        self._endpoint_template = endpoint_template
        self._request_timeout = request_timeout
        self._factory = factory
        self._drivers: dict[str, tuple[ClientAuth, Driver]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._drivers)

    async def get(self, spec: ClusterSpec, default_namespace: str = "") -> Driver:
        namespace, name = parse_secret_ref(spec.credential_secret)
        key = f"{namespace or default_namespace}:{name}@{spec.region_id}"
        async with self._lock:
            cached = self._drivers.get(key)
            try:
                auth = await resolve_client_auth(
                    self._secrets, spec, default_namespace,
                    endpoint_template=self._endpoint_template,
                    request_timeout=self._request_timeout,
                )
            except CredentialError as e:
                if cached is None:
                    raise
                log.warning(
                    "Keeping cached driver for {key}, credential refresh failed: {err}",
                    key=key, err=e,
                )
                return cached[1]

            if cached is not None and cached[0] == auth:
                return cached[1]

            if cached is not None:
                log.info("Credentials for {key} changed, rebuilding driver", key=key)
                await cached[1].close()
            driver = self._factory(auth)
            self._drivers[key] = (auth, driver)
            return driver

    async def close(self) -> None:
        drivers = [d for _, d in self._drivers.values()]
        self._drivers.clear()
        for driver in drivers:
            await driver.close()
