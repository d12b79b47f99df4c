from typing import Any, Dict, List, Optional

import pytest

from fleet_inspector.errors import NotFoundError
from fleet_inspector.models import Resource, ResourceCoordinates


def owner(kind: str, name: str) -> Dict[str, Any]:
    return {"apiVersion": "v1", "kind": kind, "name": name, "controller": True}


def make_doc(
    kind: str,
    name: str,
    namespace: Optional[str] = "default",
    owners: Optional[List[Dict[str, Any]]] = None,
    labels: Optional[Dict[str, str]] = None,
    **fields: Any,
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    if owners:
        metadata["ownerReferences"] = owners
    if labels:
        metadata["labels"] = labels
    doc = {"kind": kind, "apiVersion": "v1", "metadata": metadata}
    doc.update(fields)
    return doc


METRICS_GROUP = "metrics.k8s.io"


def resource_key(coordinates: ResourceCoordinates) -> str:
    # metrics share their plural with the objects they measure
    if coordinates.group == METRICS_GROUP:
        return f"{coordinates.resource}.{METRICS_GROUP}"
    return coordinates.resource


class FakeK8sClient:
    """In-memory stand-in for K8sClient that records every call."""

    def __init__(self):
        self.objects: Dict[tuple, Dict[str, Any]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.list_failures: Dict[str, Exception] = {}
        self.logs: Dict[tuple, str] = {}
        self.get_calls: List[tuple] = []
        self.list_calls: List[tuple] = []
        self.log_calls: List[tuple] = []

    async def __aenter__(self) -> "FakeK8sClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        pass

    def add(self, cluster: str, resource: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        metadata = doc["metadata"]
        self.objects[(cluster, resource, metadata.get("namespace", ""), metadata["name"])] = doc
        return doc

    def fail(self, resource: str, name: str, exc: Exception) -> None:
        self.failures[(resource, name)] = exc

    async def get_resource(
        self, cluster: str, coordinates: ResourceCoordinates, namespace: Optional[str], name: str
    ) -> Resource:
        resource = resource_key(coordinates)
        self.get_calls.append((cluster, resource, namespace or "", name))
        if (resource, name) in self.failures:
            raise self.failures[(resource, name)]
        doc = self.objects.get((cluster, resource, namespace or "", name))
        if doc is None:
            raise NotFoundError(coordinates.identity(cluster, namespace, name))
        return Resource(doc)

    async def list_resources(
        self,
        cluster: str,
        coordinates: ResourceCoordinates,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Resource]:
        resource_name = resource_key(coordinates)
        self.list_calls.append((cluster, resource_name, namespace, label_selector))
        if resource_name in self.list_failures:
            raise self.list_failures[resource_name]

        wanted = {}
        for term in (label_selector or "").split(","):
            if "=" in term:
                key, value = term.split("=", 1)
                wanted[key] = value

        resources = []
        for (obj_cluster, resource, obj_namespace, _), doc in self.objects.items():
            if obj_cluster != cluster or resource != resource_name:
                continue
            if namespace and obj_namespace != namespace:
                continue
            labels = doc["metadata"].get("labels", {})
            if all(labels.get(key) == value for key, value in wanted.items()):
                resources.append(Resource(doc))
        return resources[:limit] if limit else resources

    async def get_pod_logs(self, cluster: str, namespace: str, pod: str, container: str, tail_lines: int) -> str:
        self.log_calls.append((cluster, namespace, pod, container, tail_lines))
        return self.logs.get((pod, container), "")

    def fetches_of(self, resource: str) -> List[tuple]:
        return [call for call in self.get_calls if call[1] == resource]


@pytest.fixture
def fake_client():
    return FakeK8sClient()


@pytest.fixture
def sample_pod():
    return make_doc(
        "Pod",
        "web-7c9f8d-abcde",
        owners=[owner("ReplicaSet", "web-7c9f8d")],
        labels={"app": "web"},
        spec={
            "initContainers": [{"name": "init", "image": "busybox:1.36"}],
            "containers": [
                {"name": "main", "image": "nginx:1.25"},
                {"name": "sidecar", "image": "envoy:1.29"},
            ],
        },
        status={"phase": "Running"},
    )


@pytest.fixture
def sample_replicaset():
    return make_doc("ReplicaSet", "web-7c9f8d", owners=[owner("Deployment", "web")])


@pytest.fixture
def sample_deployment():
    return make_doc(
        "Deployment",
        "web",
        spec={"replicas": 1, "selector": {"matchLabels": {"app": "web"}}},
        status={"readyReplicas": 1},
    )


@pytest.fixture
def pod_cluster(fake_client, sample_pod, sample_replicaset, sample_deployment):
    fake_client.add("c-m-1", "pods", sample_pod)
    fake_client.add("c-m-1", "replicasets", sample_replicaset)
    fake_client.add("c-m-1", "deployments", sample_deployment)
    fake_client.logs[("web-7c9f8d-abcde", "main")] = "started\nserving"
    fake_client.logs[("web-7c9f8d-abcde", "sidecar")] = "ready"
    return fake_client
