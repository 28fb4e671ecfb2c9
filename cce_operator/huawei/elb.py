"""Elastic Load Balance client."""

from __future__ import annotations

from .common import ServiceClient
from .types import LoadBalancer


class ELBClient(ServiceClient):
    service = "elb"

    async def list_load_balancers(self, vpc_id: str = "") -> list[LoadBalancer]:
        """Load balancers of the project, optionally only those inside ``vpc_id``."""
        params = {"vpc_id": vpc_id} if vpc_id else None
        result = await self._request(
            "GET", f"/v3/{self._project_id}/elb/loadbalancers", params=params
        )
        return list((result or {}).get("loadbalancers") or [])
