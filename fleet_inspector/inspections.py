import logging
from typing import Any, Dict, List, Optional

from . import kinds
from .aggregator import BundleBuilder, build_bundle, require
from .client import LOCAL_CLUSTER, K8sClient
from .cluster_type import classify_cluster, cluster_type_marker
from .logs import ContextLogger
from .models import InspectionBundle, Resource, ResourceCoordinates
from .relationships import OwnershipPattern, OwnershipWalker, cluster_selector

logger = logging.getLogger(__name__)

POD_LOGS_KIND = "PodLogs"
PROVISIONING_LOG_CONFIGMAP = "provisioning-log"
EVENT_NAMESPACES = ("cattle-system", "kube-system", "default")


def _default_logger(tool: str, **context: Any) -> ContextLogger:
    return ContextLogger(logger, {"tool": tool, **context})


def label_selector_to_string(selector: Optional[Dict[str, Any]]) -> str:
    """Render a LabelSelector object (matchLabels/matchExpressions) as a query string."""
    if not selector:
        return ""

    parts = [f"{key}={value}" for key, value in sorted((selector.get("matchLabels") or {}).items())]
    for expr in selector.get("matchExpressions") or []:
        key = expr.get("key", "")
        operator = expr.get("operator", "")
        values = ",".join(expr.get("values") or [])
        if operator == "In":
            parts.append(f"{key} in ({values})")
        elif operator == "NotIn":
            parts.append(f"{key} notin ({values})")
        elif operator == "Exists":
            parts.append(key)
        elif operator == "DoesNotExist":
            parts.append(f"!{key}")
        else:
            raise ValueError(f"unsupported label selector operator: {operator!r}")
    return ",".join(parts)


async def get_kubernetes_resource(
    client: K8sClient,
    cluster: str,
    kind: str,
    namespace: Optional[str],
    name: str,
    log: Optional[ContextLogger] = None,
) -> InspectionBundle:
    builder = BundleBuilder(cluster, log or _default_logger("getKubernetesResource"))
    coordinates = kinds.resolve(kind)
    builder.add(
        await builder.require(
            lambda: client.get_resource(cluster, coordinates, namespace, name), what=kind
        )
    )
    return builder.build()


async def list_kubernetes_resources(
    client: K8sClient,
    cluster: str,
    kind: str,
    namespace: Optional[str] = None,
    label_selector: Optional[str] = None,
    log: Optional[ContextLogger] = None,
) -> InspectionBundle:
    builder = BundleBuilder(cluster, log or _default_logger("listKubernetesResources"))
    coordinates = kinds.resolve(kind)
    builder.add(
        await builder.require(
            lambda: client.list_resources(
                cluster, coordinates, namespace=namespace, label_selector=label_selector
            ),
            what=f"{kind} list",
        )
    )
    return builder.build()


async def get_pod_logs(
    client: K8sClient, cluster: str, pod: Resource, tail_lines: int
) -> Resource:
    logs = {}
    for container in pod.field("spec", "containers", default=[]) or []:
        container_name = container.get("name")
        logs[container_name] = await client.get_pod_logs(
            cluster, pod.namespace, pod.name, container_name, tail_lines
        )
    return Resource.marker(POD_LOGS_KIND, pod.name, logs=logs)


async def inspect_pod(
    client: K8sClient,
    cluster: str,
    namespace: str,
    name: str,
    tail_lines: int = 50,
    log: Optional[ContextLogger] = None,
) -> InspectionBundle:
    log = log or _default_logger("inspectPod", cluster=cluster, namespace=namespace, name=name)
    builder = BundleBuilder(cluster, log)

    pod = await builder.require(
        lambda: client.get_resource(cluster, kinds.resolve("pod"), namespace, name), what="pod"
    )

    walker = OwnershipWalker(client, cluster, log)
    builder.extend(await walker.walk_chain(pod, OwnershipPattern.POD_CONTROLLER))
    builder.merge_graph(walker.graph)

    builder.add(
        await builder.require(lambda: get_pod_logs(client, cluster, pod, tail_lines), what="pod logs")
    )
    # metrics-server is an optional add-on
    builder.add(
        await builder.optional(
            lambda: client.get_resource(cluster, kinds.resolve("pod.metrics.k8s.io"), namespace, name),
            what="pod metrics",
        )
    )
    return builder.build()


async def get_deployment_details(
    client: K8sClient,
    cluster: str,
    namespace: str,
    name: str,
    log: Optional[ContextLogger] = None,
) -> InspectionBundle:
    log = log or _default_logger("getDeploymentDetails", cluster=cluster, namespace=namespace, name=name)
    builder = BundleBuilder(cluster, log)

    deployment = await builder.require(
        lambda: client.get_resource(cluster, kinds.resolve("deployment"), namespace, name),
        what="deployment",
    )
    builder.add(deployment)

    selector = label_selector_to_string(deployment.field("spec", "selector"))
    if not selector:
        # An empty selector would match every pod in the namespace.
        log.warning("Deployment has no pod selector, skipping pods")
        return builder.build()

    builder.add(
        await builder.require(
            lambda: client.list_resources(
                cluster, kinds.resolve("pod"), namespace=namespace, label_selector=selector
            ),
            what="pods",
        )
    )
    return builder.build()


async def get_nodes(
    client: K8sClient, cluster: str, log: Optional[ContextLogger] = None
) -> InspectionBundle:
    return await build_bundle(
        cluster,
        primary=[lambda: client.list_resources(cluster, kinds.resolve("node"))],
        # metrics-server is an optional add-on
        optional_fetches=[lambda: client.list_resources(cluster, kinds.resolve("node.metrics.k8s.io"))],
        log=log or _default_logger("getNodes", cluster=cluster),
    )


async def get_cluster_images(
    client: K8sClient, clusters: Optional[List[str]] = None, log: Optional[ContextLogger] = None
) -> Dict[str, List[str]]:
    log = log or _default_logger("getClusterImages")

    if not clusters:
        management_clusters = await require(
            lambda: client.list_resources(LOCAL_CLUSTER, kinds.resolve(kinds.MANAGEMENT_CLUSTER_KIND)),
            log,
            what="clusters",
        )
        clusters = [cluster.name for cluster in management_clusters]

    images_in_clusters: Dict[str, List[str]] = {}
    for cluster in clusters:
        pods = await require(
            lambda: client.list_resources(cluster, kinds.resolve("pod")), log.bind(cluster=cluster), what="pods"
        )
        images = []
        for pod in pods:
            for container in pod.field("spec", "initContainers", default=[]) or []:
                images.append(container.get("image"))
            for container in pod.field("spec", "containers", default=[]) or []:
                images.append(container.get("image"))
        images_in_clusters[cluster] = images

    return images_in_clusters


async def inspect_cluster(
    client: K8sClient,
    cluster_name: str,
    namespace: str = "fleet-default",
    event_limit: int = 15,
    log: Optional[ContextLogger] = None,
) -> InspectionBundle:
    log = log or _default_logger("inspectCluster", cluster=cluster_name, namespace=namespace)
    builder = BundleBuilder(LOCAL_CLUSTER, log)

    provisioning_cluster = await builder.require(
        lambda: client.get_resource(
            LOCAL_CLUSTER, kinds.resolve(kinds.PROVISIONING_CLUSTER_KIND), namespace, cluster_name
        ),
        what="provisioning cluster",
    )
    builder.add(provisioning_cluster)
    log.info("Found provisioning cluster")

    pools = provisioning_cluster.field("spec", "rkeConfig", "machinePools", default=[]) or []
    for pool in pools:
        pool_name = pool.get("name", "")
        pool_log = log.bind(pool=pool_name)
        config_ref = pool.get("machineConfigRef") or {}
        if config_ref.get("kind") and config_ref.get("name"):
            config_coordinates = ResourceCoordinates.for_machine_config(config_ref["kind"])
            builder.add(
                await require(
                    lambda: client.get_resource(
                        LOCAL_CLUSTER, config_coordinates, namespace, config_ref["name"]
                    ),
                    pool_log,
                    what=f"machine config {config_coordinates.resource}",
                )
            )
        else:
            pool_log.warning("Machine pool has no machine config reference")

        selector = cluster_selector(provisioning_cluster.name, pool_name)
        builder.add(
            await require(
                lambda: client.list_resources(
                    LOCAL_CLUSTER, kinds.resolve("machine"), namespace=namespace, label_selector=selector
                ),
                pool_log,
                what="machines",
            )
        )

    management_cluster_name = provisioning_cluster.field("status", "clusterName", default="")
    if management_cluster_name:
        builder.add(
            await builder.optional(
                lambda: client.get_resource(
                    LOCAL_CLUSTER,
                    kinds.resolve("configmap"),
                    management_cluster_name,
                    PROVISIONING_LOG_CONFIGMAP,
                ),
                what="provisioning log",
            )
        )
    else:
        log.info("Provisioning cluster has no management cluster yet")

    for event_namespace in EVENT_NAMESPACES:
        builder.add(
            await builder.require(
                lambda: client.list_resources(
                    LOCAL_CLUSTER,
                    kinds.resolve("event.events.k8s.io"),
                    namespace=event_namespace,
                    limit=event_limit,
                ),
                what=f"events in {event_namespace}",
            )
        )

    if management_cluster_name:
        management_cluster = await builder.require(
            lambda: client.get_resource(
                LOCAL_CLUSTER, kinds.resolve(kinds.MANAGEMENT_CLUSTER_KIND), None, management_cluster_name
            ),
            what="management cluster",
        )
        builder.add(cluster_type_marker(cluster_name, classify_cluster(management_cluster, len(pools))))

    return builder.build()


async def inspect_cluster_machines(
    client: K8sClient,
    cluster_name: str,
    namespace: str = "fleet-default",
    pool_name: Optional[str] = None,
    machine_name: Optional[str] = None,
    log: Optional[ContextLogger] = None,
) -> InspectionBundle:
    log = log or _default_logger("inspectClusterMachines", cluster=cluster_name, namespace=namespace)
    builder = BundleBuilder(LOCAL_CLUSTER, log)

    provisioning_cluster = await builder.require(
        lambda: client.get_resource(
            LOCAL_CLUSTER, kinds.resolve(kinds.PROVISIONING_CLUSTER_KIND), namespace, cluster_name
        ),
        what="provisioning cluster",
    )
    builder.add(provisioning_cluster)

    walker = OwnershipWalker(client, LOCAL_CLUSTER, log)
    machines = await walker.list_leaves(
        kinds.resolve("machine"),
        namespace,
        label_selector=cluster_selector(provisioning_cluster.name, pool_name),
        name=machine_name,
    )
    result = await walker.walk_fan_out(machines, OwnershipPattern.MACHINE_DEPLOYMENT)
    log.info(
        f"Found {len(result.leaves)} machines, {len(result.intermediates)} machine sets, "
        f"{len(result.ancestors)} machine deployments"
    )

    builder.extend(result.all())
    builder.merge_graph(walker.graph)
    return builder.build()
