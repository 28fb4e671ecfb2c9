from __future__ import annotations

from dataclasses import replace

import pytest

from cce_operator.api import Autoscaling, Endpoint, Phase
from cce_operator.controller.context import WAIT_UPDATE
from cce_operator.controller.nodepools import update_upstream_cluster_state
from cce_operator.controller.upstream import build_upstream_cluster_state

from tests.fakes import make_config, make_pool

pytestmark = [pytest.mark.unit]


async def running(ctx, store, cloud, *, phase=Phase.ACTIVE, **spec):
    """A stored record for a cluster that exists in the fake cloud."""
    cluster_id = cloud.add_cluster(name="demo", description="demo cluster")
    config = await store.create(make_config(**spec))
    return await ctx.update_status(config, cluster_id=cluster_id, phase=phase)


def observe(cloud, config):
    cluster_id = config.status.cluster_id
    return build_upstream_cluster_state(
        cloud.clusters[cluster_id], list(cloud.node_pools[cluster_id].values())
    )


async def converge(ctx, cloud, config, **kwargs):
    return await update_upstream_cluster_state(ctx, config, observe(cloud, config), **kwargs)


# ─── Node pools ──────────────────────────────────────────────────────


class TestCreate:
    @pytest.mark.asyncio
    async def test_missing_pool_is_created_and_id_recorded(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)

        result = await converge(ctx, cloud, config)

        (pool_id,) = cloud.node_pools[config.status.cluster_id]
        assert result.requeue_after == WAIT_UPDATE
        assert result.record.status.phase is Phase.UPDATING
        assert result.record.spec.node_pools[0].id == pool_id
        stored = await store.get(config.namespace, config.name)
        assert stored.spec.node_pools[0].id == pool_id

    @pytest.mark.asyncio
    async def test_converged_pass_settles_active(self, ctx, store, cloud):
        config = await running(ctx, store, cloud, phase=Phase.UPDATING)
        config = (await converge(ctx, cloud, config)).record
        cloud.calls.clear()

        result = await converge(ctx, cloud, config)

        assert cloud.mutating_calls() == []
        assert result.requeue_after is None
        assert result.record.status.phase is Phase.ACTIVE

    @pytest.mark.asyncio
    async def test_identical_pool_is_claimed_not_created(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)
        pool_id = cloud.add_node_pool(config.status.cluster_id, make_pool("workers"))
        config = await ctx.update_spec(config, node_pools=(make_pool("workers"),))

        result = await converge(ctx, cloud, config)

        assert cloud.called("cce.create_node_pool") == []
        assert result.record.spec.node_pools[0].id == pool_id
        assert result.record.status.phase is Phase.ACTIVE

    @pytest.mark.asyncio
    async def test_pool_is_claimed_once(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)
        pool_id = cloud.add_node_pool(config.status.cluster_id, make_pool("a"))
        config = await ctx.update_spec(config, node_pools=(make_pool("a"), make_pool("b")))

        result = await converge(ctx, cloud, config)

        ids = {p.name: p.id for p in result.record.spec.node_pools}
        assert ids["a"] == pool_id
        assert ids["b"] not in ("", pool_id)
        assert [c[2] for c in cloud.called("cce.create_node_pool")] == ["b"]


class TestUpdate:
    @pytest.mark.asyncio
    async def test_node_count_change(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)
        config = (await converge(ctx, cloud, config)).record
        pool = replace(config.spec.node_pools[0], initial_node_count=3)
        config = await ctx.update_spec(config, node_pools=(pool,))

        result = await converge(ctx, cloud, config)

        assert cloud.called("cce.update_node_pool") == [
            ("cce.update_node_pool", config.status.cluster_id, pool.id)
        ]
        assert result.record.status.phase is Phase.UPDATING

    @pytest.mark.asyncio
    async def test_node_count_ignored_while_autoscaling(self, ctx, store, cloud):
        scaling = Autoscaling(enable=True, min_node_count=1, max_node_count=5)
        config = await running(ctx, store, cloud, node_pools=(replace(make_pool(), autoscaling=scaling),))
        config = (await converge(ctx, cloud, config)).record
        pool = replace(config.spec.node_pools[0], initial_node_count=4)
        config = await ctx.update_spec(config, node_pools=(pool,))

        await converge(ctx, cloud, config)

        assert cloud.called("cce.update_node_pool") == []

    @pytest.mark.asyncio
    async def test_autoscaling_change(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)
        config = (await converge(ctx, cloud, config)).record
        scaling = Autoscaling(enable=True, min_node_count=1, max_node_count=5)
        config = await ctx.update_spec(
            config, node_pools=(replace(config.spec.node_pools[0], autoscaling=scaling),)
        )

        await converge(ctx, cloud, config)

        (pool,) = cloud.node_pools[config.status.cluster_id].values()
        assert pool["spec"]["autoscaling"]["enable"] is True
        assert pool["spec"]["autoscaling"]["maxNodeCount"] == 5


class TestDelete:
    @pytest.mark.asyncio
    async def test_undesired_pool_is_deleted(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)
        config = (await converge(ctx, cloud, config)).record
        stray = cloud.add_node_pool(config.status.cluster_id, make_pool("stray", initial_node_count=9))

        result = await converge(ctx, cloud, config)

        assert stray not in cloud.node_pools[config.status.cluster_id]
        assert result.requeue_after == WAIT_UPDATE


# ─── Cluster ─────────────────────────────────────────────────────────


class TestCluster:
    @pytest.mark.asyncio
    async def test_description_change_updates_cluster(self, ctx, store, cloud):
        config = await running(ctx, store, cloud, description="new description")

        await converge(ctx, cloud, config)

        assert cloud.clusters[config.status.cluster_id]["spec"]["description"] == "new description"
        assert len(cloud.called("cce.update_cluster")) == 1

    @pytest.mark.asyncio
    async def test_cloud_assigned_security_group_is_left_alone(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)
        cluster = cloud.clusters[config.status.cluster_id]
        cluster["spec"]["hostNetwork"]["SecurityGroup"] = "sg-auto-created"

        for _ in range(3):
            config = (await converge(ctx, cloud, config)).record
        cloud.calls.clear()
        result = await converge(ctx, cloud, config)

        assert cloud.mutating_calls() == []
        assert result.requeue_after is None
        assert result.record.status.phase is Phase.ACTIVE
        assert cluster["spec"]["hostNetwork"]["SecurityGroup"] == "sg-auto-created"

    @pytest.mark.asyncio
    async def test_desired_security_group_is_pushed(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)
        config = await ctx.update_spec(
            config, host_network=replace(config.spec.host_network, security_group="sg-wanted")
        )

        await converge(ctx, cloud, config)

        cluster = cloud.clusters[config.status.cluster_id]
        assert cluster["spec"]["hostNetwork"]["SecurityGroup"] == "sg-wanted"
        assert len(cloud.called("cce.update_cluster")) == 1

    @pytest.mark.asyncio
    async def test_missing_version_skips_upgrade(self, ctx, store, cloud):
        config = await running(ctx, store, cloud, version="")

        for _ in range(3):
            result = await converge(ctx, cloud, config)
            config = result.record

        assert not cloud.called("cce.upgrade_cluster")
        assert result.record.status.phase is Phase.ACTIVE

    @pytest.mark.asyncio
    async def test_newer_version_upgrades_first(self, ctx, store, cloud):
        config = await running(ctx, store, cloud, version="v1.27")

        result = await converge(ctx, cloud, config)

        assert [c[0] for c in cloud.mutating_calls()] == ["cce.upgrade_cluster"]
        assert result.record.status.upgrade_cluster_task_id

    @pytest.mark.asyncio
    async def test_status_mirrors_observed_state(self, ctx, store, cloud):
        config = await running(ctx, store, cloud)
        endpoints = (Endpoint(url="https://192.168.0.10:5443", type="Internal"),)

        result = await converge(ctx, cloud, config, endpoints=endpoints, available_zone="cn-north-4a")

        status = result.record.status
        assert status.endpoints == endpoints
        assert status.available_zone == "cn-north-4a"
        assert status.host_network.vpc_id == "vpc-user"
        assert status.container_network.mode == "vpc-router"

    @pytest.mark.asyncio
    async def test_imported_cluster_is_only_observed(self, ctx, store, cloud):
        config = await running(ctx, store, cloud, imported=True, version="v1.29", node_pools=(), phase=Phase.UPDATING)
        config = await ctx.update_spec(config, cluster_id=config.status.cluster_id)
        cloud.add_node_pool(config.status.cluster_id, make_pool())

        result = await converge(ctx, cloud, config)

        assert cloud.mutating_calls() == []
        assert result.record.status.phase is Phase.ACTIVE
        assert len(result.record.status.node_pools) == 1
