from __future__ import annotations

import pytest

from cce_operator.api import ClusterExtendParam, Phase
from cce_operator.controller.context import WAIT_BUSY, WAIT_UPDATE
from cce_operator.controller.lifecycle import (
    cluster_upgradeable,
    create_ca_secret,
    create_cluster,
    import_cluster,
    poll_upgrade_task,
    upgrade_cluster,
    wait_for_creation,
)
from cce_operator.exceptions import ClusterUnavailableError, UpgradeError, ValidationError

from tests.fakes import make_config, make_pool

pytestmark = [pytest.mark.unit]


async def created(ctx, store, **spec):
    """A stored record whose cluster was just requested."""
    config = await store.create(make_config(**spec))
    return await create_cluster(ctx, config)


# ─── Versions ────────────────────────────────────────────────────────


class TestClusterUpgradeable:
    @pytest.mark.parametrize(
        ("old", "new", "expected"),
        [
            ("v1.25", "v1.25", False),
            ("v1.25.3-r0", "v1.25", False),
            ("v1.25", "v1.27", True),
            ("v1.25.5", "v1.27", True),
            ("v1.27", "v2.0", True),
        ],
    )
    def test_upgradeable(self, old, new, expected):
        assert cluster_upgradeable(old, new) is expected

    def test_downgrade_is_rejected(self):
        with pytest.raises(ValidationError, match="unsupported to downgrade cluster from 'v1.27' to 'v1.25'"):
            cluster_upgradeable("v1.27", "v1.25")

    @pytest.mark.parametrize(("old", "new"), [("latest", "v1.25"), ("v1.25", "")])
    def test_invalid_version(self, old, new):
        with pytest.raises(ValidationError, match="invalid version"):
            cluster_upgradeable(old, new)


# ─── Create ──────────────────────────────────────────────────────────


class TestCreateCluster:
    @pytest.mark.asyncio
    async def test_records_cluster_id(self, ctx, store, cloud):
        config = await created(ctx, store)

        (cluster_id,) = cloud.clusters
        assert config.status.cluster_id == cluster_id
        assert config.status.phase is Phase.CREATING
        assert (await store.get(config.namespace, config.name)).status.cluster_id == cluster_id

    @pytest.mark.asyncio
    async def test_existing_cluster_is_not_created_twice(self, ctx, store, cloud):
        config = await created(ctx, store)
        config = await ctx.update_status(config, phase=Phase.NOT_CREATED)

        config = await create_cluster(ctx, config)

        assert len(cloud.called("cce.create_cluster")) == 1
        assert config.status.phase is Phase.CREATING

    @pytest.mark.asyncio
    async def test_recorded_cluster_gone(self, ctx, store, cloud):
        config = await store.create(make_config())
        config = await ctx.update_status(config, cluster_id="cluster-gone")

        config = await create_cluster(ctx, config)

        assert config.status.cluster_id != "cluster-gone"
        assert config.status.cluster_id in cloud.clusters


# ─── Wait for creation ───────────────────────────────────────────────


class TestWaitForCreation:
    @pytest.mark.asyncio
    async def test_still_creating(self, ctx, store):
        config = await created(ctx, store)

        result = await wait_for_creation(ctx, config)

        assert result.requeue_after == WAIT_BUSY
        assert result.record.status.phase is Phase.CREATING

    @pytest.mark.asyncio
    async def test_available_moves_to_updating(self, ctx, store, cloud):
        config = await created(ctx, store)
        cloud.set_cluster_phase(config.status.cluster_id, "Available")

        result = await wait_for_creation(ctx, config)

        assert result.record.status.phase is Phase.UPDATING
        secret = await store.get_secret(config.namespace, config.name)
        assert secret == {"endpoint": "https://192.168.0.10:5443", "ca": "aW50ZXJuYWw="}

    @pytest.mark.asyncio
    async def test_unavailable_raises(self, ctx, store, cloud):
        config = await created(ctx, store)
        cloud.set_cluster_phase(config.status.cluster_id, "Unavailable", reason="quota exceeded")

        with pytest.raises(ClusterUnavailableError, match="quota exceeded"):
            await wait_for_creation(ctx, config)

        stored = await store.get(config.namespace, config.name)
        assert stored.status.phase is Phase.CREATING


# ─── CA secret ───────────────────────────────────────────────────────


class TestCASecret:
    @pytest.mark.asyncio
    async def test_public_cluster_uses_external_endpoint(self, ctx, store):
        config = await created(
            ctx, store,
            public_access=True, extend_param=ClusterExtendParam(cluster_external_ip="121.36.1.2"),
        )

        await create_ca_secret(ctx, config)

        secret = await store.get_secret(config.namespace, config.name)
        assert secret["endpoint"] == "https://121.36.1.2:5443"
        assert secret["ca"] == "ZXh0ZXJuYWw="

    @pytest.mark.asyncio
    async def test_secret_owned_by_record(self, ctx, store):
        config = await created(ctx, store)

        await create_ca_secret(ctx, config)

        owner = store.secret_owner(config.namespace, config.name)
        assert owner == config.owner_reference()

    @pytest.mark.asyncio
    async def test_existing_secret_is_kept(self, ctx, store, cloud):
        config = await created(ctx, store)
        await store.create_secret(config.namespace, config.name, {"endpoint": "https://keep", "ca": ""})

        await create_ca_secret(ctx, config)

        assert cloud.called("cce.create_cluster_cert") == []
        assert (await store.get_secret(config.namespace, config.name))["endpoint"] == "https://keep"


# ─── Import ──────────────────────────────────────────────────────────


class TestImportCluster:
    @pytest.mark.asyncio
    async def test_import_observes_cluster(self, ctx, store, cloud):
        cluster_id = cloud.add_cluster()
        pool_id = cloud.add_node_pool(cluster_id, make_pool("workers"))
        config = await store.create(make_config(imported=True, cluster_id=cluster_id, node_pools=()))

        result = await import_cluster(ctx, config)

        status = result.record.status
        assert status.phase is Phase.ACTIVE
        assert status.cluster_id == cluster_id
        assert [p.id for p in status.node_pools] == [pool_id]
        assert status.host_network.vpc_id == "vpc-user"
        assert status.cluster_external_ip == "121.36.1.2"
        assert "endpoint" in await store.get_secret(config.namespace, config.name)
        assert cloud.mutating_calls() == [("cce.create_cluster_cert", cluster_id, 1095)]


# ─── Upgrade ─────────────────────────────────────────────────────────


class TestUpgrade:
    @pytest.mark.asyncio
    async def test_upgrade_records_task(self, ctx, store, cloud):
        config = await created(ctx, store, version="v1.27")

        result = await upgrade_cluster(ctx, config)

        (task_id,) = cloud.upgrade_tasks
        assert result.requeue_after == WAIT_UPDATE
        assert result.record.status.upgrade_cluster_task_id == task_id
        assert result.record.status.phase is Phase.UPDATING
        assert cloud.called("cce.upgrade_cluster") == [("cce.upgrade_cluster", config.status.cluster_id, "v1.27")]

    @pytest.mark.asyncio
    async def test_no_task(self, ctx, store, cloud):
        config = await created(ctx, store)
        assert await poll_upgrade_task(ctx, config) == (config, False)
        assert cloud.called("cce.show_upgrade_task") == []

    @pytest.mark.asyncio
    async def test_running_task_is_busy(self, ctx, store):
        config = (await upgrade_cluster(ctx, await created(ctx, store))).record

        config, busy = await poll_upgrade_task(ctx, config)

        assert busy
        assert config.status.upgrade_cluster_task_id

    @pytest.mark.asyncio
    async def test_finished_task_is_forgotten(self, ctx, store, cloud):
        config = (await upgrade_cluster(ctx, await created(ctx, store))).record
        cloud.upgrade_tasks[config.status.upgrade_cluster_task_id]["status"]["phase"] = "Success"

        config, busy = await poll_upgrade_task(ctx, config)

        assert not busy
        assert config.status.upgrade_cluster_task_id == ""

    @pytest.mark.asyncio
    async def test_failed_task_raises(self, ctx, store, cloud):
        config = (await upgrade_cluster(ctx, await created(ctx, store))).record
        task_id = config.status.upgrade_cluster_task_id
        cloud.upgrade_tasks[task_id]["status"]["phase"] = "Failed"

        with pytest.raises(UpgradeError, match=task_id):
            await poll_upgrade_task(ctx, config)

        stored = await store.get(config.namespace, config.name)
        assert stored.status.upgrade_cluster_task_id == ""

    @pytest.mark.asyncio
    async def test_missing_task_is_forgotten(self, ctx, store):
        config = await created(ctx, store)
        config = await ctx.update_status(config, upgrade_cluster_task_id="task-gone")

        config, busy = await poll_upgrade_task(ctx, config)

        assert not busy
        assert config.status.upgrade_cluster_task_id == ""
