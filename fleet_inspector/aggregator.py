import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar, Union

import networkx as nx

from .errors import AUTH_ERRORS, ResourceAccessError
from .logs import ContextLogger
from .models import InspectionBundle, Resource

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetched = Union[Resource, List[Resource], None]
Fetch = Callable[[], Awaitable[Fetched]]


async def require(fetch: Callable[[], Awaitable[T]], log: ContextLogger, what: str = "resource") -> T:
    """Await a fetch whose failure must fail the whole inspection."""
    try:
        return await fetch()
    except ResourceAccessError as e:
        log.error(f"Failed to get required {what}: {e}")
        raise


async def optional(
    fetch: Callable[[], Awaitable[T]],
    log: ContextLogger,
    what: str = "resource",
    default: Optional[T] = None,
) -> Optional[T]:
    """Await a best-effort fetch, turning any access failure into ``default``.

    Denied access is logged at warning so it stays visible; everything else
    at debug.
    """
    try:
        return await fetch()
    except AUTH_ERRORS as e:
        log.warning(f"Access denied for optional {what}, leaving it out: {e}")
        return default
    except ResourceAccessError as e:
        log.debug(f"Optional {what} unavailable, leaving it out: {e}")
        return default


class BundleBuilder:
    """Collects the resources of one inspection in the order they are added."""

    def __init__(self, cluster: str, log: Optional[ContextLogger] = None):
        self.cluster = cluster
        self.log = log or ContextLogger(logger, {"cluster": cluster})
        self._resources: List[Resource] = []
        self._graph = nx.DiGraph()

    def add(self, fetched: Fetched) -> None:
        if fetched is None:
            return
        if isinstance(fetched, Resource):
            self._resources.append(fetched)
        else:
            self._resources.extend(fetched)

    def extend(self, resources: Iterable[Resource]) -> None:
        self._resources.extend(resources)

    def mark(self, kind: str, name: str, **values: Any) -> Resource:
        marker = Resource.marker(kind, name, **values)
        self._resources.append(marker)
        return marker

    def merge_graph(self, graph: nx.DiGraph) -> None:
        self._graph = nx.compose(self._graph, graph)

    async def require(self, fetch: Callable[[], Awaitable[T]], what: str = "resource") -> T:
        return await require(fetch, self.log, what)

    async def optional(
        self, fetch: Callable[[], Awaitable[T]], what: str = "resource", default: Optional[T] = None
    ) -> Optional[T]:
        return await optional(fetch, self.log, what, default)

    def build(self) -> InspectionBundle:
        return InspectionBundle(self.cluster, list(self._resources), self._graph.copy())


async def build_bundle(
    cluster: str,
    primary: Sequence[Fetch],
    optional_fetches: Sequence[Fetch] = (),
    markers: Iterable[Resource] = (),
    log: Optional[ContextLogger] = None,
) -> InspectionBundle:
    """Fetch ``primary`` then ``optional_fetches`` in order and append ``markers``."""
    builder = BundleBuilder(cluster, log)
    for fetch in primary:
        builder.add(await builder.require(fetch))
    for fetch in optional_fetches:
        builder.add(await builder.optional(fetch))
    builder.extend(markers)
    return builder.build()
