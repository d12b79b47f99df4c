import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import networkx as nx


CORE_GROUP = ""
MACHINE_CONFIG_GROUP = "rke-machine-config.cattle.io"


@dataclass(frozen=True)
class ResourceCoordinates:
    group: str
    version: str
    resource: str
    kind: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "resource", self.resource.lower())

    @property
    def api_version(self) -> str:
        if self.group == CORE_GROUP:
            return self.version
        return f"{self.group}/{self.version}"

    def path(self, namespace: Optional[str] = None, name: Optional[str] = None) -> str:
        if self.group == CORE_GROUP:
            path = f"/api/{self.version}"
        else:
            path = f"/apis/{self.group}/{self.version}"
        if namespace:
            path += f"/namespaces/{namespace}"
        path += f"/{self.resource}"
        if name:
            path += f"/{name}"
        return path

    def identity(self, cluster: str, namespace: Optional[str], name: str) -> "ResourceIdentity":
        return ResourceIdentity(
            cluster=cluster, kind=self.kind or self.resource, namespace=namespace or "", name=name
        )

    @classmethod
    def for_machine_config(cls, kind: str) -> "ResourceCoordinates":
        # Machine config refs carry only a kind; every node driver config is served as "<kind>s".
        return cls(group=MACHINE_CONFIG_GROUP, version="v1", resource=f"{kind.lower()}s", kind=kind)


@dataclass(frozen=True)
class ResourceIdentity:
    cluster: str
    kind: str
    namespace: str
    name: str

    @property
    def node_id(self) -> str:
        return f"{self.kind}:{self.namespace or 'cluster'}:{self.name}"

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name} in cluster {self.cluster}"
        return f"{self.kind} {self.name} in cluster {self.cluster}"


@dataclass(frozen=True)
class OwnerReference:
    kind: str
    name: str


@dataclass(frozen=True)
class ClusterCredentials:
    url: str
    token: str

    def cluster_host(self, cluster: str) -> str:
        return f"{self.url.rstrip('/')}/k8s/clusters/{cluster}"


class Resource:
    """Read-only view over a fetched Kubernetes object.

    The wrapped document is never modified. Callers that need to reshape it
    work on ``to_dict()``, which returns a deep copy.
    """

    __slots__ = ("_doc",)

    def __init__(self, doc: Dict[str, Any]):
        self._doc = copy.deepcopy(doc)

    @classmethod
    def marker(cls, kind: str, name: str, **values: Any) -> "Resource":
        doc = {"kind": kind, "metadata": {"name": name}}
        doc.update(values)
        return cls(doc)

    @property
    def kind(self) -> str:
        return self._doc.get("kind", "")

    @property
    def api_version(self) -> str:
        return self._doc.get("apiVersion", "")

    @property
    def name(self) -> str:
        return self.field("metadata", "name", default="")

    @property
    def namespace(self) -> str:
        return self.field("metadata", "namespace", default="") or ""

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self.field("metadata", "labels", default={}) or {})

    @property
    def owner_references(self) -> List[OwnerReference]:
        refs = self.field("metadata", "ownerReferences", default=[]) or []
        return [
            OwnerReference(kind=ref.get("kind", ""), name=ref.get("name", ""))
            for ref in refs
            if ref.get("kind") and ref.get("name")
        ]

    def field(self, *path: str, default: Any = None) -> Any:
        value: Any = self._doc
        for key in path:
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def identity(self, cluster: str) -> ResourceIdentity:
        return ResourceIdentity(
            cluster=cluster, kind=self.kind, namespace=self.namespace, name=self.name
        )

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._doc)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return NotImplemented
        return self._doc == other._doc

    def __repr__(self) -> str:
        return f"Resource({self.kind}:{self.namespace}:{self.name})"


class InspectionBundle:
    """Ordered resources answering one inspection request."""

    def __init__(
        self,
        cluster: str,
        resources: Optional[List[Resource]] = None,
        graph: Optional[nx.DiGraph] = None,
    ):
        self.cluster = cluster
        self.resources: List[Resource] = list(resources or [])
        self.graph = graph if graph is not None else nx.DiGraph()

    def identities(self) -> List[ResourceIdentity]:
        return [resource.identity(self.cluster) for resource in self.resources]

    def __iter__(self):
        return iter(self.resources)

    def __len__(self) -> int:
        return len(self.resources)
