"""
Fleet Inspector MCP Server

Read-only inspection of a Rancher-managed fleet of Kubernetes clusters for AI
agents: resources, ownership chains, logs, metrics and provisioning state.

Usage:
    uv run fleet-inspector-mcp
"""

import logging
from typing import List, Optional

from fastmcp import Context, FastMCP
from fastmcp.server.dependencies import get_http_headers

from fleet_inspector import inspections
from fleet_inspector.adapters import credentials_from_headers
from fleet_inspector.client import K8sClient
from fleet_inspector.config import InspectorConfig, load_config
from fleet_inspector.formatters import BundleResponseFormatter, images_to_text
from fleet_inspector.logs import ContextLogger, request_logger, setup_logging

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "Fleet Inspector Server",
    instructions="""
Read-only inspector for the clusters managed by a Rancher server.

**Cluster Usage:**
- `cluster` is the Rancher cluster ID (e.g. `c-m-abc123`); `local` is the management cluster
- Provisioning tools take the provisioning cluster name and its namespace (default `fleet-default`)

**Common Workflows:**
1. `get_kubernetes_resource(cluster, kind, namespace, name)` - One resource by kind and name
2. `inspect_pod(cluster, namespace, name)` - Pod, its owning controller, logs and metrics
3. `inspect_cluster(cluster_name)` - Provisioning state, machines, events and cluster type
4. `inspect_cluster_machines(cluster_name)` - Machines with their machine sets and deployments

**Notes:**
- Metrics are included only when metrics-server is installed in the cluster
- Permission errors on the requested resources are reported as-is; denied metrics are left out
""",
)

config: Optional[InspectorConfig] = None


def _get_config() -> InspectorConfig:
    global config
    if config is None:
        config = load_config()
    return config


def _client() -> K8sClient:
    cfg = _get_config()
    credentials = credentials_from_headers(get_http_headers(), cfg)
    return K8sClient(credentials, verify_ssl=not cfg.insecure, request_timeout=cfg.request_timeout)


def _logger(tool: str, ctx: Optional[Context], **context) -> ContextLogger:
    request_id = ctx.request_id if ctx is not None else None
    return request_logger(tool, request_id=request_id, **context)


@mcp.tool()
async def get_kubernetes_resource(
    cluster: str, kind: str, name: str, namespace: str = "", ctx: Context = None
) -> str:
    """
    Get a specific Kubernetes resource by kind and name.

    Args:
        cluster: Rancher cluster ID ("local" for the management cluster)
        kind: Resource kind (pod, deployment, machine, provisioningcluster, ...)
        name: Resource name
        namespace: Namespace of the resource; empty for cluster-scoped kinds

    Returns:
        The resource as JSON
    """
    log = _logger("getKubernetesResource", ctx, cluster=cluster, kind=kind, namespace=namespace, name=name)
    log.debug("getKubernetesResource called")

    async with _client() as client:
        bundle = await inspections.get_kubernetes_resource(client, cluster, kind, namespace, name, log=log)
    return BundleResponseFormatter.to_text(bundle)


@mcp.tool()
async def list_kubernetes_resources(
    cluster: str,
    kind: str,
    namespace: str = "",
    label_selector: Optional[str] = None,
    ctx: Context = None,
) -> str:
    """
    List Kubernetes resources of any kind.

    Args:
        cluster: Rancher cluster ID ("local" for the management cluster)
        kind: Resource kind (pod, deployment, service, node, ...)
        namespace: Namespace to list; empty lists across all namespaces
        label_selector: Optional label selector (e.g. "app=nginx,tier!=db")

    Returns:
        Matching resources as JSON (an empty list when nothing matches)
    """
    log = _logger("listKubernetesResources", ctx, cluster=cluster, kind=kind, namespace=namespace)
    log.debug("listKubernetesResources called")

    async with _client() as client:
        bundle = await inspections.list_kubernetes_resources(
            client, cluster, kind, namespace or None, label_selector, log=log
        )
    return BundleResponseFormatter.to_text(bundle)


@mcp.tool()
async def inspect_pod(cluster: str, namespace: str, name: str, ctx: Context = None) -> str:
    """
    Inspect a pod: the pod, its ReplicaSet and owning controller, recent logs and metrics.

    Logs are the last lines of every container. Metrics are left out when
    metrics-server is not installed.

    Args:
        cluster: Rancher cluster ID
        namespace: Pod namespace
        name: Pod name

    Returns:
        Pod, owner chain, logs and metrics as JSON
    """
    log = _logger("inspectPod", ctx, cluster=cluster, namespace=namespace, name=name)
    log.debug("inspectPod called")

    async with _client() as client:
        bundle = await inspections.inspect_pod(
            client, cluster, namespace, name, tail_lines=_get_config().pod_log_tail_lines, log=log
        )
    return BundleResponseFormatter.to_text(bundle)


@mcp.tool()
async def get_deployment_details(cluster: str, namespace: str, name: str, ctx: Context = None) -> str:
    """
    Get a deployment and the pods selected by it.

    Args:
        cluster: Rancher cluster ID
        namespace: Deployment namespace
        name: Deployment name

    Returns:
        Deployment followed by its pods as JSON
    """
    log = _logger("getDeploymentDetails", ctx, cluster=cluster, namespace=namespace, name=name)
    log.debug("getDeploymentDetails called")

    async with _client() as client:
        bundle = await inspections.get_deployment_details(client, cluster, namespace, name, log=log)
    return BundleResponseFormatter.to_text(bundle)


@mcp.tool()
async def get_nodes(cluster: str, ctx: Context = None) -> str:
    """
    Get all nodes of a cluster with their metrics when metrics-server is installed.

    Args:
        cluster: Rancher cluster ID

    Returns:
        Nodes and node metrics as JSON
    """
    log = _logger("getNodes", ctx, cluster=cluster)
    log.info("getNodes called")

    async with _client() as client:
        bundle = await inspections.get_nodes(client, cluster, log=log)
    return BundleResponseFormatter.to_text(bundle)


@mcp.tool()
async def get_cluster_images(clusters: Optional[List[str]] = None, ctx: Context = None) -> str:
    """
    List the container images running in clusters.

    Args:
        clusters: Rancher cluster IDs; all clusters known to Rancher when omitted

    Returns:
        Mapping of cluster ID to the images of its init and regular containers
    """
    log = _logger("getClusterImages", ctx, clusters=",".join(clusters or []))
    log.info("getClusterImages called")

    async with _client() as client:
        images = await inspections.get_cluster_images(client, clusters, log=log)
    return images_to_text(images)


@mcp.tool()
async def inspect_cluster(cluster_name: str, namespace: str = "", ctx: Context = None) -> str:
    """
    Inspect a provisioning cluster of the management cluster.

    Returns the provisioning cluster, the machine config and machines of every
    machine pool, the provisioning log, recent events from cattle-system,
    kube-system and default, and the inferred cluster type (imported, hosted,
    custom or node-driver).

    Args:
        cluster_name: Name of the provisioning cluster
        namespace: Namespace of the provisioning cluster (default: fleet-default)

    Returns:
        Cluster provisioning state as JSON
    """
    cfg = _get_config()
    ns = namespace or cfg.default_namespace
    log = _logger("inspectCluster", ctx, cluster=cluster_name, namespace=ns)
    log.info("inspectCluster called")

    async with _client() as client:
        bundle = await inspections.inspect_cluster(
            client, cluster_name, ns, event_limit=cfg.event_limit, log=log
        )
    return BundleResponseFormatter.to_text(bundle)


@mcp.tool()
async def inspect_cluster_machines(
    cluster_name: str,
    namespace: str = "",
    pool_name: Optional[str] = None,
    machine_name: Optional[str] = None,
    ctx: Context = None,
) -> str:
    """
    Inspect the machines of a provisioning cluster with their MachineSets and MachineDeployments.

    Args:
        cluster_name: Name of the provisioning cluster
        namespace: Namespace of the provisioning cluster (default: fleet-default)
        pool_name: Only machines of this machine pool
        machine_name: Only this machine and its owners

    Returns:
        Provisioning cluster, machines, machine sets and machine deployments as JSON
    """
    ns = namespace or _get_config().default_namespace
    log = _logger("inspectClusterMachines", ctx, cluster=cluster_name, namespace=ns, pool=pool_name)
    log.info("inspectClusterMachines called")

    async with _client() as client:
        bundle = await inspections.inspect_cluster_machines(
            client, cluster_name, ns, pool_name=pool_name, machine_name=machine_name, log=log
        )
    return BundleResponseFormatter.to_text(bundle)


def main():
    """Entry point for the fleet-inspector-mcp command."""
    cfg = _get_config()
    setup_logging(cfg.log_level)
    logger.info(f"Starting Fleet Inspector MCP Server ({cfg.transport})...")
    if cfg.transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport=cfg.transport, host=cfg.host, port=cfg.port)


if __name__ == "__main__":
    main()
