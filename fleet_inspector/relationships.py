import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import networkx as nx

from . import kinds
from .errors import NotFoundError, ResourceAccessError
from .logs import ContextLogger
from .models import OwnerReference, Resource, ResourceCoordinates

logger = logging.getLogger(__name__)

CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
MACHINE_POOL_LABEL = "rke.cattle.io/rke-machine-pool-name"


class OwnershipPattern(Enum):
    """Owner chains the walker knows how to follow.

    Each member lists its hops from the leaf upwards; a hop is the ordered
    tuple of owner kinds accepted at that level, most preferred first.
    """

    POD_CONTROLLER = (("ReplicaSet",), ("Deployment", "StatefulSet", "DaemonSet"))
    MACHINE_DEPLOYMENT = (("MachineSet",), ("MachineDeployment",))

    @property
    def hops(self) -> Tuple[Tuple[str, ...], ...]:
        return self.value


@dataclass
class FanOutResult:
    leaves: List[Resource] = field(default_factory=list)
    intermediates: List[Resource] = field(default_factory=list)
    ancestors: List[Resource] = field(default_factory=list)

    def all(self) -> List[Resource]:
        return self.leaves + self.intermediates + self.ancestors


def find_owner(resource: Resource, owner_kinds: Sequence[str]) -> Optional[OwnerReference]:
    owners = resource.owner_references
    for kind in owner_kinds:
        for owner in owners:
            if owner.kind == kind:
                return owner
    return None


def cluster_selector(cluster_name: str, pool_name: Optional[str] = None) -> str:
    selector = f"{CLUSTER_NAME_LABEL}={cluster_name}"
    if pool_name:
        selector += f",{MACHINE_POOL_LABEL}={pool_name}"
    return selector


class OwnershipWalker:
    """Follows owner references upwards from fetched resources.

    One walker serves one traversal: it remembers every owner it fetched, so
    a controller shared by many children is requested once, and it records
    the edges it followed in ``graph``.
    """

    def __init__(self, client, cluster: str, log: Optional[ContextLogger] = None):
        self.client = client
        self.cluster = cluster
        self.log = log or ContextLogger(logger, {"cluster": cluster})
        self.graph = nx.DiGraph()
        self._visited: Set[Tuple[str, str, str]] = set()

    def _add_node(self, resource: Resource) -> str:
        node_id = resource.identity(self.cluster).node_id
        if node_id not in self.graph:
            self.graph.add_node(
                node_id, kind=resource.kind, name=resource.name, namespace=resource.namespace
            )
        return node_id

    def _link(self, child: Resource, owner: Resource) -> None:
        self.graph.add_edge(self._add_node(child), self._add_node(owner), relationship_type="owner")

    async def fetch_owner(self, child: Resource, owner: OwnerReference) -> Optional[Resource]:
        """Fetch ``owner`` unless this traversal already did; returns None for repeats."""
        key = (owner.kind.lower(), child.namespace, owner.name)
        if key in self._visited:
            self.graph.add_edge(
                self._add_node(child),
                f"{owner.kind}:{child.namespace or 'cluster'}:{owner.name}",
                relationship_type="owner",
            )
            return None
        self._visited.add(key)

        log = self.log.bind(kind=owner.kind, namespace=child.namespace, name=owner.name)
        try:
            resource = await self.client.get_resource(
                self.cluster, kinds.resolve(owner.kind), child.namespace, owner.name
            )
        except ResourceAccessError as e:
            log.error(f"Failed to fetch owner of {child.kind} {child.name}: {e}")
            raise

        self._link(child, resource)
        log.debug(f"Fetched owner of {child.kind} {child.name}")
        return resource

    async def walk_chain(self, resource: Resource, pattern: OwnershipPattern) -> List[Resource]:
        chain = [resource]
        self._visited.add((resource.kind.lower(), resource.namespace, resource.name))
        self._add_node(resource)

        current = resource
        for owner_kinds in pattern.hops:
            owner = find_owner(current, owner_kinds)
            if owner is None:
                self.log.info(
                    f"{current.kind} {current.name} has no owner of kind {'/'.join(owner_kinds)}, "
                    "ending ownership chain"
                )
                break
            parent = await self.fetch_owner(current, owner)
            if parent is None:
                break
            chain.append(parent)
            current = parent

        return chain

    async def list_leaves(
        self,
        coordinates: ResourceCoordinates,
        namespace: Optional[str],
        label_selector: Optional[str] = None,
        name: Optional[str] = None,
    ) -> List[Resource]:
        log = self.log.bind(kind=coordinates.resource, namespace=namespace, selector=label_selector)
        try:
            leaves = await self.client.list_resources(
                self.cluster, coordinates, namespace=namespace, label_selector=label_selector
            )
        except NotFoundError:
            log.info("No resources of this kind exist yet")
            return []
        except ResourceAccessError as e:
            log.error(f"Failed to list resources: {e}")
            raise

        log.info(f"Found {len(leaves)} {coordinates.resource}")
        if name:
            leaves = [leaf for leaf in leaves if leaf.name == name]
        return leaves

    async def walk_fan_out(self, leaves: Iterable[Resource], pattern: OwnershipPattern) -> FanOutResult:
        result = FanOutResult()
        intermediate_kinds, ancestor_kinds = pattern.hops

        for leaf in leaves:
            result.leaves.append(leaf)
            self._visited.add((leaf.kind.lower(), leaf.namespace, leaf.name))
            self._add_node(leaf)

            owner = find_owner(leaf, intermediate_kinds)
            if owner is None:
                self.log.info(
                    f"{leaf.kind} {leaf.name} has no owner of kind {'/'.join(intermediate_kinds)}"
                )
                continue

            intermediate = await self.fetch_owner(leaf, owner)
            if intermediate is None:
                continue
            result.intermediates.append(intermediate)

            ancestor_ref = find_owner(intermediate, ancestor_kinds)
            if ancestor_ref is None:
                self.log.info(
                    f"{intermediate.kind} {intermediate.name} has no owner of kind {'/'.join(ancestor_kinds)}"
                )
                continue

            ancestor = await self.fetch_owner(intermediate, ancestor_ref)
            if ancestor is not None:
                result.ancestors.append(ancestor)

        return result
