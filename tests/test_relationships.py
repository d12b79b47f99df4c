import asyncio

import pytest

from fleet_inspector import kinds
from fleet_inspector.errors import ForbiddenError, NotFoundError, UnavailableError
from fleet_inspector.models import OwnerReference, Resource, ResourceIdentity
from fleet_inspector.relationships import (
    OwnershipPattern,
    OwnershipWalker,
    cluster_selector,
    find_owner,
)

from .conftest import make_doc, owner

NS = "fleet-default"
CLUSTER_LABEL = "cluster.x-k8s.io/cluster-name"
POOL_LABEL = "rke.cattle.io/rke-machine-pool-name"


def add_machine(fake_client, name, machine_set=None, cluster="prod", pool="pool1"):
    owners = [owner("MachineSet", machine_set)] if machine_set else None
    return fake_client.add(
        "local",
        "machines",
        make_doc("Machine", name, namespace=NS, owners=owners, labels={CLUSTER_LABEL: cluster, POOL_LABEL: pool}),
    )


def add_machine_set(fake_client, name, machine_deployment=None):
    owners = [owner("MachineDeployment", machine_deployment)] if machine_deployment else None
    return fake_client.add("local", "machinesets", make_doc("MachineSet", name, namespace=NS, owners=owners))


def add_machine_deployment(fake_client, name):
    return fake_client.add("local", "machinedeployments", make_doc("MachineDeployment", name, namespace=NS))


class TestFindOwner:

    def test_preference_follows_requested_order(self):
        resource = Resource(
            make_doc("ReplicaSet", "rs", owners=[owner("DaemonSet", "ds"), owner("Deployment", "deploy")])
        )

        found = find_owner(resource, ("Deployment", "StatefulSet", "DaemonSet"))

        assert found == OwnerReference(kind="Deployment", name="deploy")

    def test_unknown_owner_kinds_are_ignored(self):
        resource = Resource(make_doc("Pod", "p", owners=[owner("Widget", "w")]))

        assert find_owner(resource, ("ReplicaSet",)) is None

    def test_no_owner_references(self):
        assert find_owner(Resource(make_doc("Pod", "p")), ("ReplicaSet",)) is None


class TestClusterSelector:

    def test_cluster_only(self):
        assert cluster_selector("prod") == "cluster.x-k8s.io/cluster-name=prod"

    def test_narrowed_by_pool(self):
        assert cluster_selector("prod", "workers") == (
            "cluster.x-k8s.io/cluster-name=prod,rke.cattle.io/rke-machine-pool-name=workers"
        )


class TestWalkChain:

    @pytest.mark.asyncio
    async def test_pod_to_deployment(self, pod_cluster, sample_pod):
        walker = OwnershipWalker(pod_cluster, "c-m-1")

        chain = await walker.walk_chain(Resource(sample_pod), OwnershipPattern.POD_CONTROLLER)

        assert [(r.kind, r.name) for r in chain] == [
            ("Pod", "web-7c9f8d-abcde"),
            ("ReplicaSet", "web-7c9f8d"),
            ("Deployment", "web"),
        ]
        assert walker.graph.has_edge("Pod:default:web-7c9f8d-abcde", "ReplicaSet:default:web-7c9f8d")
        assert walker.graph.has_edge("ReplicaSet:default:web-7c9f8d", "Deployment:default:web")

    @pytest.mark.asyncio
    async def test_pod_without_replicaset_owner(self, fake_client):
        pod = Resource(make_doc("Pod", "standalone", owners=[owner("Node", "node-1")]))
        walker = OwnershipWalker(fake_client, "c-m-1")

        chain = await walker.walk_chain(pod, OwnershipPattern.POD_CONTROLLER)

        assert chain == [pod]
        assert fake_client.get_calls == []

    @pytest.mark.asyncio
    async def test_orphaned_replicaset_ends_chain(self, fake_client, sample_pod):
        fake_client.add("c-m-1", "replicasets", make_doc("ReplicaSet", "web-7c9f8d"))
        walker = OwnershipWalker(fake_client, "c-m-1")

        chain = await walker.walk_chain(Resource(sample_pod), OwnershipPattern.POD_CONTROLLER)

        assert [r.kind for r in chain] == ["Pod", "ReplicaSet"]

    @pytest.mark.asyncio
    async def test_statefulset_controller(self, fake_client, sample_pod):
        fake_client.add(
            "c-m-1", "replicasets", make_doc("ReplicaSet", "web-7c9f8d", owners=[owner("StatefulSet", "db")])
        )
        fake_client.add("c-m-1", "statefulsets", make_doc("StatefulSet", "db"))
        walker = OwnershipWalker(fake_client, "c-m-1")

        chain = await walker.walk_chain(Resource(sample_pod), OwnershipPattern.POD_CONTROLLER)

        assert chain[-1].kind == "StatefulSet"
        assert fake_client.fetches_of("statefulsets") == [("c-m-1", "statefulsets", "default", "db")]

    @pytest.mark.asyncio
    async def test_missing_owner_is_fatal(self, fake_client, sample_pod):
        walker = OwnershipWalker(fake_client, "c-m-1")

        with pytest.raises(NotFoundError) as exc_info:
            await walker.walk_chain(Resource(sample_pod), OwnershipPattern.POD_CONTROLLER)

        assert exc_info.value.identity == ResourceIdentity("c-m-1", "ReplicaSet", "default", "web-7c9f8d")

    @pytest.mark.asyncio
    async def test_cancellation_stops_the_walk(self, pod_cluster, sample_pod):
        async def cancelled(*args, **kwargs):
            raise asyncio.CancelledError()

        pod_cluster.get_resource = cancelled
        walker = OwnershipWalker(pod_cluster, "c-m-1")

        with pytest.raises(asyncio.CancelledError):
            await walker.walk_chain(Resource(sample_pod), OwnershipPattern.POD_CONTROLLER)


class TestWalkFanOut:

    @pytest.mark.asyncio
    async def test_shared_owner_is_fetched_once(self, fake_client):
        add_machine_deployment(fake_client, "md-1")
        add_machine_set(fake_client, "ms-1", "md-1")
        for i in range(50):
            add_machine(fake_client, f"m-{i}", "ms-1")
        walker = OwnershipWalker(fake_client, "local")

        leaves = await walker.list_leaves(kinds.resolve("machine"), NS, cluster_selector("prod"))
        result = await walker.walk_fan_out(leaves, OwnershipPattern.MACHINE_DEPLOYMENT)

        assert len(result.leaves) == 50
        assert [r.name for r in result.intermediates] == ["ms-1"]
        assert [r.name for r in result.ancestors] == ["md-1"]
        assert len(fake_client.fetches_of("machinesets")) == 1
        assert len(fake_client.fetches_of("machinedeployments")) == 1

    @pytest.mark.asyncio
    async def test_first_encountered_order(self, fake_client):
        add_machine_deployment(fake_client, "md-b")
        add_machine_deployment(fake_client, "md-a")
        add_machine_set(fake_client, "ms-b", "md-b")
        add_machine_set(fake_client, "ms-a", "md-a")
        add_machine_set(fake_client, "ms-c", "md-b")
        leaves = [
            Resource(add_machine(fake_client, "m-1", "ms-b")),
            Resource(add_machine(fake_client, "m-2", "ms-a")),
            Resource(add_machine(fake_client, "m-3", "ms-b")),
            Resource(add_machine(fake_client, "m-4", "ms-c")),
        ]
        walker = OwnershipWalker(fake_client, "local")

        result = await walker.walk_fan_out(leaves, OwnershipPattern.MACHINE_DEPLOYMENT)

        assert [r.name for r in result.leaves] == ["m-1", "m-2", "m-3", "m-4"]
        assert [r.name for r in result.intermediates] == ["ms-b", "ms-a", "ms-c"]
        assert [r.name for r in result.ancestors] == ["md-b", "md-a"]
        assert len(fake_client.fetches_of("machinedeployments")) == 2

    @pytest.mark.asyncio
    async def test_orphaned_leaf_is_kept(self, fake_client):
        add_machine_set(fake_client, "ms-1")
        leaves = [
            Resource(add_machine(fake_client, "orphan")),
            Resource(add_machine(fake_client, "m-1", "ms-1")),
        ]
        walker = OwnershipWalker(fake_client, "local")

        result = await walker.walk_fan_out(leaves, OwnershipPattern.MACHINE_DEPLOYMENT)

        assert [r.name for r in result.leaves] == ["orphan", "m-1"]
        assert [r.name for r in result.intermediates] == ["ms-1"]
        assert result.ancestors == []

    @pytest.mark.asyncio
    async def test_unavailable_intermediate_aborts_walk(self, fake_client):
        add_machine_set(fake_client, "ms-1")
        add_machine(fake_client, "m-1", "ms-1")
        add_machine(fake_client, "m-2", "ms-1")
        fake_client.fail(
            "machinesets", "ms-1", UnavailableError(ResourceIdentity("local", "machinesets", NS, "ms-1"))
        )
        walker = OwnershipWalker(fake_client, "local")
        leaves = await walker.list_leaves(kinds.resolve("machine"), NS, cluster_selector("prod"))

        with pytest.raises(UnavailableError) as exc_info:
            await walker.walk_fan_out(leaves, OwnershipPattern.MACHINE_DEPLOYMENT)

        assert exc_info.value.identity.name == "ms-1"
        assert len(fake_client.fetches_of("machinesets")) == 1

    @pytest.mark.asyncio
    async def test_list_not_found_yields_nothing(self, fake_client):
        fake_client.list_failures["machines"] = NotFoundError(ResourceIdentity("local", "machines", NS, ""))
        walker = OwnershipWalker(fake_client, "local")

        leaves = await walker.list_leaves(kinds.resolve("machine"), NS, cluster_selector("prod"))
        result = await walker.walk_fan_out(leaves, OwnershipPattern.MACHINE_DEPLOYMENT)

        assert result.all() == []

    @pytest.mark.asyncio
    async def test_other_list_errors_propagate(self, fake_client):
        fake_client.list_failures["machines"] = ForbiddenError(ResourceIdentity("local", "machines", NS, ""))
        walker = OwnershipWalker(fake_client, "local")

        with pytest.raises(ForbiddenError):
            await walker.list_leaves(kinds.resolve("machine"), NS, cluster_selector("prod"))

    @pytest.mark.asyncio
    async def test_name_filter_narrows_leaves_and_walk(self, fake_client):
        add_machine_deployment(fake_client, "md-1")
        add_machine_set(fake_client, "ms-1", "md-1")
        add_machine_set(fake_client, "ms-2", "md-1")
        add_machine(fake_client, "m-1", "ms-1")
        add_machine(fake_client, "m-2", "ms-2")
        walker = OwnershipWalker(fake_client, "local")

        leaves = await walker.list_leaves(kinds.resolve("machine"), NS, cluster_selector("prod"), name="m-2")
        result = await walker.walk_fan_out(leaves, OwnershipPattern.MACHINE_DEPLOYMENT)

        assert len(fake_client.list_calls) == 1
        assert [r.name for r in result.leaves] == ["m-2"]
        assert [r.name for r in result.intermediates] == ["ms-2"]
        assert fake_client.fetches_of("machinesets") == [("local", "machinesets", NS, "ms-2")]

    @pytest.mark.asyncio
    async def test_selector_scopes_to_cluster_and_pool(self, fake_client):
        add_machine(fake_client, "m-1", cluster="prod", pool="workers")
        add_machine(fake_client, "m-2", cluster="prod", pool="etcd")
        add_machine(fake_client, "m-3", cluster="staging", pool="workers")
        walker = OwnershipWalker(fake_client, "local")

        leaves = await walker.list_leaves(kinds.resolve("machine"), NS, cluster_selector("prod", "workers"))

        assert [leaf.name for leaf in leaves] == ["m-1"]
