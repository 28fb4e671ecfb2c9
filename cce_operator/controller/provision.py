"""Network resources a new cluster needs before it can be created.

Every step checks its own marker in status before acting, so a pass that was
interrupted half way picks up where it stopped. Identifiers of resources
created here are written to ``status.created_*`` as soon as the provider
returns them; teardown deletes exactly those.
"""

from __future__ import annotations

from dataclasses import replace

from cce_operator.api.types import ClusterConfig, ContainerNetwork, HostNetwork
from cce_operator.huawei.common import gen_resource_name
from cce_operator.store.base import update_with_retry

from .context import NAT_SETTLE_SLEEP, Context, bind


async def provision_network(ctx: Context, config: ClusterConfig) -> ClusterConfig:
    log = bind(config, "provision")
    config = await ensure_container_network(ctx, config)
    config = await ensure_cluster_eip(ctx, config)
    config = await ensure_host_network(ctx, config)
    config = await ensure_nat_gateway(ctx, config)
    log.debug(
        "Network ready: vpc={vpc} subnet={subnet}",
        vpc=config.status.host_network.vpc_id, subnet=config.status.host_network.subnet_id,
    )
    return config


async def ensure_container_network(ctx: Context, config: ClusterConfig) -> ClusterConfig:
    if config.status.container_network.mode:
        return config
    desired = config.spec.container_network
    network = ContainerNetwork(
        mode=desired.mode or ctx.network.container_network_mode,
        cidr=desired.cidr or ctx.network.container_network_cidr,
    )
    return await ctx.update_status(config, container_network=network)


async def ensure_cluster_eip(ctx: Context, config: ClusterConfig) -> ClusterConfig:
    spec = config.spec
    if not spec.public_access or config.status.cluster_external_ip:
        return config

    if spec.public_ip.create_eip:
        eip = await ctx.driver.eip.create_public_ip(spec.public_ip.eip)
        bind(config, "provision").info(
            "Created cluster EIP {id} ({address})",
            id=eip["id"], address=eip.get("public_ip_address", ""),
        )
        return await ctx.update_status(
            config,
            cluster_external_ip=eip.get("public_ip_address", ""),
            created_cluster_eip_id=eip["id"],
        )

    if spec.extend_param.cluster_external_ip:
        return await ctx.update_status(
            config, cluster_external_ip=spec.extend_param.cluster_external_ip
        )
    return config


async def _record_host_network(
    ctx: Context, config: ClusterConfig, *, owned: bool, **ids: str
) -> ClusterConfig:
    """Merge ``vpc_id``/``subnet_id`` into status.host_network.

    With ``owned`` the ids are also recorded as ``created_*`` so teardown
    deletes them.
    """
    created = {f"created_{k}": v for k, v in ids.items()} if owned else {}

    def mutate(c: ClusterConfig) -> ClusterConfig:
        return c.with_status(host_network=replace(c.status.host_network, **ids), **created)

    return await update_with_retry(ctx.store, config, mutate)


async def ensure_host_network(ctx: Context, config: ClusterConfig) -> ClusterConfig:
    current = config.status.host_network
    if current.vpc_id and current.subnet_id:
        return config

    desired = config.spec.host_network
    vpc = ctx.driver.vpc

    if not desired.vpc_id:
        vpc_id = config.status.created_vpc_id
        if not vpc_id:
            created = await vpc.create_vpc(gen_resource_name("vpc"), ctx.network.vpc_cidr)
            vpc_id = created["id"]
            bind(config, "provision").info("Created VPC {id}", id=vpc_id)
        if current.vpc_id != vpc_id:
            config = await _record_host_network(ctx, config, owned=True, vpc_id=vpc_id)
        return await _create_subnet(ctx, config, vpc_id)

    await vpc.show_vpc(desired.vpc_id)
    if not desired.subnet_id:
        config = await _record_host_network(ctx, config, owned=False, vpc_id=desired.vpc_id)
        return await _create_subnet(ctx, config, desired.vpc_id)

    await vpc.show_subnet(desired.subnet_id)
    return await ctx.update_status(
        config,
        host_network=HostNetwork(
            vpc_id=desired.vpc_id,
            subnet_id=desired.subnet_id,
            security_group=desired.security_group,
        ),
    )


async def _create_subnet(ctx: Context, config: ClusterConfig, vpc_id: str) -> ClusterConfig:
    primary, secondary = await ctx.driver.dns.resolve_dns_servers(config.spec.region_id)
    subnet = await ctx.driver.vpc.create_subnet(
        gen_resource_name("subnet"), vpc_id, primary, secondary,
        cidr=ctx.network.subnet_cidr, gateway_ip=ctx.network.subnet_gateway,
    )
    bind(config, "provision").info("Created subnet {id} in {vpc}", id=subnet["id"], vpc=vpc_id)
    return await _record_host_network(ctx, config, owned=True, subnet_id=subnet["id"])


async def ensure_nat_gateway(ctx: Context, config: ClusterConfig) -> ClusterConfig:
    nat_spec = config.spec.nat_gateway
    status = config.status
    if not nat_spec.enabled or (status.created_nat_gateway_id and status.created_snat_rule_id):
        return config

    log = bind(config, "provision")
    nat = ctx.driver.nat

    nat_id = status.created_nat_gateway_id
    if not nat_id:
        # Freshly created VPCs and subnets need a moment before NAT accepts them.
        await ctx.sleep(NAT_SETTLE_SLEEP)
        gateway = await nat.create_nat_gateway(
            gen_resource_name("nat"), status.host_network.vpc_id, status.host_network.subnet_id
        )
        nat_id = gateway["id"]
        log.info("Created NAT gateway {id}", id=nat_id)
        config = await ctx.update_status(config, created_nat_gateway_id=nat_id)

    eip_id = nat_spec.existing_eip_id or config.status.created_snat_rule_eip_id
    if not eip_id:
        eip = await ctx.driver.eip.create_public_ip(nat_spec.snat_rule_eip)
        eip_id = eip["id"]
        log.info("Created SNAT rule EIP {id}", id=eip_id)
        config = await ctx.update_status(config, created_snat_rule_eip_id=eip_id)

    rule = await nat.create_snat_rule(nat_id, config.status.host_network.subnet_id, eip_id)
    log.info("Created SNAT rule {id} on {nat}", id=rule["id"], nat=nat_id)
    return await ctx.update_status(config, created_snat_rule_id=rule["id"])
