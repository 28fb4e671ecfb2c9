"""VPC, subnet, EIP, NAT, DNS and VPC endpoint clients."""

from __future__ import annotations

from cce_operator.api.types import Eip
from cce_operator.exceptions import InvalidResponseError

from .common import DEFAULT_RESOURCE_DESCRIPTION, ServiceClient, gen_resource_name
from .types import (
    EndpointService,
    NameServer,
    NatGatewayBody,
    PublicIP,
    SnatRule,
    Subnet,
    Vpc,
)

DEFAULT_VPC_CIDR = "10.224.0.0/16"
DEFAULT_SUBNET_CIDR = "10.224.0.0/16"
DEFAULT_SUBNET_GATEWAY = "10.224.0.1"
DEFAULT_CONTAINER_NETWORK_MODE = "eni"
DEFAULT_CONTAINER_NETWORK_CIDR = "10.101.0.0/16"


def _required(result: dict | None, key: str, what: str) -> dict:
    if not result or not result.get(key) or not result[key].get("id"):
        raise InvalidResponseError(f"{what} returned invalid data")
    return result[key]


# =============================================================================
# VPC and subnets
# =============================================================================


class VPCClient(ServiceClient):
    service = "vpc"

    async def show_vpc(self, vpc_id: str) -> Vpc:
        result = await self._request("GET", f"/v1/{self._project_id}/vpcs/{vpc_id}")
        return _required(result, "vpc", f"show vpc [{vpc_id}]")

    async def create_vpc(self, name: str, cidr: str = DEFAULT_VPC_CIDR) -> Vpc:
        self._log.debug("Creating VPC {name} {cidr}", name=name, cidr=cidr)
        result = await self._request(
            "POST", f"/v1/{self._project_id}/vpcs",
            json={"vpc": {"name": name, "cidr": cidr, "description": DEFAULT_RESOURCE_DESCRIPTION}},
        )
        return _required(result, "vpc", "create vpc")

    async def delete_vpc(self, vpc_id: str) -> None:
        await self._request("DELETE", f"/v1/{self._project_id}/vpcs/{vpc_id}")

    async def show_subnet(self, subnet_id: str) -> Subnet:
        result = await self._request("GET", f"/v1/{self._project_id}/subnets/{subnet_id}")
        return _required(result, "subnet", f"show subnet [{subnet_id}]")

    async def create_subnet(
        self,
        name: str,
        vpc_id: str,
        primary_dns: str,
        secondary_dns: str,
        *,
        cidr: str = DEFAULT_SUBNET_CIDR,
        gateway_ip: str = DEFAULT_SUBNET_GATEWAY,
    ) -> Subnet:
        self._log.debug("Creating subnet {name} in {vpc}", name=name, vpc=vpc_id)
        subnet = {
            "name": name,
            "cidr": cidr,
            "gateway_ip": gateway_ip,
            "vpc_id": vpc_id,
            "dhcp_enable": True,
            "description": DEFAULT_RESOURCE_DESCRIPTION,
        }
        if primary_dns:
            subnet["primary_dns"] = primary_dns
        if secondary_dns:
            subnet["secondary_dns"] = secondary_dns
        result = await self._request("POST", f"/v1/{self._project_id}/subnets", json={"subnet": subnet})
        return _required(result, "subnet", "create subnet")

    async def delete_subnet(self, vpc_id: str, subnet_id: str) -> None:
        await self._request("DELETE", f"/v1/{self._project_id}/vpcs/{vpc_id}/subnets/{subnet_id}")


# =============================================================================
# Elastic IPs
# =============================================================================


class EIPClient(ServiceClient):
    service = "vpc"

    async def create_public_ip(self, eip: Eip, *, alias: str | None = None) -> PublicIP:
        bandwidth = eip.bandwidth
        body = {
            "publicip": {
                "type": eip.ip_type or "5_bgp",
                "alias": alias or gen_resource_name("eip"),
            },
            "bandwidth": {
                "name": gen_resource_name("bandwidth"),
                "size": bandwidth.size,
                "share_type": bandwidth.share_type if bandwidth.share_type in ("PER", "WHOLE") else "PER",
                "charge_mode": bandwidth.charge_mode if bandwidth.charge_mode in ("bandwidth", "traffic") else "bandwidth",
            },
        }
        result = await self._request("POST", f"/v1/{self._project_id}/publicips", json=body)
        return _required(result, "publicip", "create public ip")

    async def show_public_ip(self, eip_id: str) -> PublicIP:
        result = await self._request("GET", f"/v1/{self._project_id}/publicips/{eip_id}")
        return _required(result, "publicip", f"show public ip [{eip_id}]")

    async def delete_public_ip(self, eip_id: str) -> None:
        await self._request("DELETE", f"/v1/{self._project_id}/publicips/{eip_id}")


# =============================================================================
# NAT gateways and SNAT rules
# =============================================================================


class NATClient(ServiceClient):
    service = "nat"

    async def create_nat_gateway(self, name: str, vpc_id: str, subnet_id: str) -> NatGatewayBody:
        body = {
            "nat_gateway": {
                "name": name,
                "router_id": vpc_id,
                "internal_network_id": subnet_id,
                "spec": "1",
                "description": DEFAULT_RESOURCE_DESCRIPTION,
            }
        }
        result = await self._request("POST", f"/v2/{self._project_id}/nat_gateways", json=body)
        return _required(result, "nat_gateway", "create nat gateway")

    async def show_nat_gateway(self, nat_id: str) -> NatGatewayBody:
        result = await self._request("GET", f"/v2/{self._project_id}/nat_gateways/{nat_id}")
        return _required(result, "nat_gateway", f"show nat gateway [{nat_id}]")

    async def delete_nat_gateway(self, nat_id: str) -> None:
        await self._request("DELETE", f"/v2/{self._project_id}/nat_gateways/{nat_id}")

    async def create_snat_rule(self, nat_id: str, subnet_id: str, eip_id: str) -> SnatRule:
        body = {
            "snat_rule": {
                "nat_gateway_id": nat_id,
                "network_id": subnet_id,
                "source_type": 0,
                "floating_ip_id": eip_id,
                "description": DEFAULT_RESOURCE_DESCRIPTION,
            }
        }
        result = await self._request("POST", f"/v2/{self._project_id}/snat_rules", json=body)
        return _required(result, "snat_rule", "create snat rule")

    async def list_snat_rules(self, nat_id: str) -> list[SnatRule]:
        result = await self._request(
            "GET", f"/v2/{self._project_id}/snat_rules", params={"nat_gateway_id": nat_id}
        )
        if result is None or result.get("snat_rules") is None:
            raise InvalidResponseError(f"list snat rules of [{nat_id}] returned invalid data")
        return list(result["snat_rules"])

    async def delete_snat_rule(self, nat_id: str, rule_id: str) -> None:
        await self._request(
            "DELETE", f"/v2/{self._project_id}/nat_gateways/{nat_id}/snat_rules/{rule_id}"
        )


# =============================================================================
# DNS
# =============================================================================


class DNSClient(ServiceClient):
    service = "dns"

    async def list_name_servers(self, region: str) -> list[NameServer]:
        result = await self._request("GET", "/v2/nameservers", params={"server_region": region})
        servers = (result or {}).get("nameservers")
        if not servers:
            raise InvalidResponseError(f"no name servers found for region [{region}]")
        return list(servers)

    async def resolve_dns_servers(self, region: str) -> tuple[str, str]:
        """First two name server addresses of the region, empty when missing."""
        addresses = [
            record["address"]
            for server in await self.list_name_servers(region)
            for record in server.get("ns_records") or []
            if record.get("address")
        ]
        addresses += ["", ""]
        return addresses[0], addresses[1]


# =============================================================================
# VPC endpoint services
# =============================================================================


class VPCEPClient(ServiceClient):
    service = "vpcep"

    async def list_endpoint_services(self) -> list[EndpointService]:
        result = await self._request("GET", f"/v1/{self._project_id}/vpc-endpoint-services")
        return list((result or {}).get("endpoint_services") or [])

    async def delete_endpoint_service(self, service_id: str) -> None:
        await self._request("DELETE", f"/v1/{self._project_id}/vpc-endpoint-services/{service_id}")
