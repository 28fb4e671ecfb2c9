from __future__ import annotations

from dataclasses import replace

import pytest

from cce_operator.api import Volume
from cce_operator.controller.upstream import (
    build_upstream_cluster_state,
    build_upstream_node_pool,
    cluster_endpoints,
    compare_node_pool,
    compare_volume,
    external_ip,
)
from cce_operator.exceptions import InvalidResponseError
from cce_operator.huawei.cce import build_create_node_pool_body

from tests.fakes import FakeCloud, make_pool

pytestmark = [pytest.mark.unit]


def with_template(pool, **changes):
    return replace(pool, node_template=replace(pool.node_template, **changes))


# ─── Node pool comparison ────────────────────────────────────────────


class TestCompareNodePool:
    def test_identical(self):
        assert compare_node_pool(make_pool(), make_pool())

    def test_name_and_id_are_ignored(self):
        assert compare_node_pool(make_pool("a"), replace(make_pool("b"), id="pool-1"))

    def test_node_count_is_ignored(self):
        assert compare_node_pool(make_pool(), replace(make_pool(), initial_node_count=7))

    @pytest.mark.parametrize(
        "changes",
        [
            {"flavor": "c7.xlarge.2"},
            {"available_zone": "cn-north-4b"},
            {"ssh_key": "other"},
            {"billing_mode": 1},
            {"operating_system": "Ubuntu 22.04"},
            {"root_volume": Volume(size=50, type="SSD")},
        ],
    )
    def test_template_differences(self, changes):
        assert not compare_node_pool(make_pool(), with_template(make_pool(), **changes))

    def test_data_volumes_compared_as_multiset(self):
        a = with_template(make_pool(), data_volumes=(Volume(100, "SSD"), Volume(200, "SAS")))
        b = with_template(make_pool(), data_volumes=(Volume(200, "SAS"), Volume(100, "SSD")))
        assert compare_node_pool(a, b)

    def test_data_volume_multiplicity_matters(self):
        a = with_template(make_pool(), data_volumes=(Volume(100, "SSD"), Volume(100, "SSD"), Volume(200, "SAS")))
        b = with_template(make_pool(), data_volumes=(Volume(100, "SSD"), Volume(200, "SAS"), Volume(200, "SAS")))
        assert not compare_node_pool(a, b)

    def test_data_volume_count_matters(self):
        a = with_template(make_pool(), data_volumes=(Volume(100, "SSD"),))
        b = with_template(make_pool(), data_volumes=(Volume(100, "SSD"), Volume(100, "SSD")))
        assert not compare_node_pool(a, b)

    def test_compare_volume(self):
        assert compare_volume(Volume(40, "SSD"), Volume(40, "SSD"))
        assert not compare_volume(Volume(40, "SSD"), Volume(40, "SAS"))


# ─── Upstream state ──────────────────────────────────────────────────


class TestUpstreamState:
    def test_node_pool_body_round_trips_identity(self):
        body = build_create_node_pool_body(make_pool())
        body["metadata"]["uid"] = "pool-1"
        observed = build_upstream_node_pool(body)
        assert observed.id == "pool-1"
        assert observed.name == "pool-a"
        assert compare_node_pool(observed, make_pool())

    def test_cluster_state(self):
        cloud = FakeCloud()
        cluster_id = cloud.add_cluster(name="demo", description="hello")
        cloud.add_node_pool(cluster_id, make_pool())
        cluster = cloud.clusters[cluster_id]

        spec = build_upstream_cluster_state(cluster, list(cloud.node_pools[cluster_id].values()))

        assert spec.name == "demo"
        assert spec.cluster_id == cluster_id
        assert spec.description == "hello"
        assert spec.version == "v1.25"
        assert spec.host_network.vpc_id == "vpc-user"
        assert spec.container_network.mode == "vpc-router"
        assert [p.name for p in spec.node_pools] == ["pool-a"]

    def test_missing_spec_is_invalid(self):
        with pytest.raises(InvalidResponseError):
            build_upstream_cluster_state({"metadata": {"uid": "c-1"}}, [])


# ─── Endpoints ───────────────────────────────────────────────────────


class TestEndpoints:
    def test_external_ip_from_external_endpoint(self):
        cloud = FakeCloud()
        cluster = cloud.clusters[cloud.add_cluster()]
        assert external_ip(cluster) == "121.36.1.2"
        assert [e.type for e in cluster_endpoints(cluster)] == ["Internal", "External"]

    def test_no_external_endpoint(self):
        cluster = {"status": {"endpoints": [{"url": "https://192.168.0.10:5443", "type": "Internal"}]}}
        assert external_ip(cluster) == ""

    def test_no_status(self):
        assert external_ip({"metadata": {}}) == ""
        assert cluster_endpoints({}) == ()
