import logging
from typing import Dict

from .errors import UnknownKindError
from .models import ResourceCoordinates

logger = logging.getLogger(__name__)

MANAGEMENT_CLUSTER_KIND = "managementcluster"
PROVISIONING_CLUSTER_KIND = "provisioningcluster"

_MANAGEMENT_CLUSTERS = ResourceCoordinates("management.cattle.io", "v3", "clusters", "Cluster")

KINDS: Dict[str, ResourceCoordinates] = {
    # core
    "pod": ResourceCoordinates("", "v1", "pods", "Pod"),
    "service": ResourceCoordinates("", "v1", "services", "Service"),
    "configmap": ResourceCoordinates("", "v1", "configmaps", "ConfigMap"),
    "secret": ResourceCoordinates("", "v1", "secrets", "Secret"),
    "namespace": ResourceCoordinates("", "v1", "namespaces", "Namespace"),
    "node": ResourceCoordinates("", "v1", "nodes", "Node"),
    "serviceaccount": ResourceCoordinates("", "v1", "serviceaccounts", "ServiceAccount"),
    "persistentvolumeclaim": ResourceCoordinates(
        "", "v1", "persistentvolumeclaims", "PersistentVolumeClaim"
    ),
    "persistentvolume": ResourceCoordinates("", "v1", "persistentvolumes", "PersistentVolume"),
    "event": ResourceCoordinates("", "v1", "events", "Event"),
    "endpoints": ResourceCoordinates("", "v1", "endpoints", "Endpoints"),
    # workloads
    "deployment": ResourceCoordinates("apps", "v1", "deployments", "Deployment"),
    "replicaset": ResourceCoordinates("apps", "v1", "replicasets", "ReplicaSet"),
    "statefulset": ResourceCoordinates("apps", "v1", "statefulsets", "StatefulSet"),
    "daemonset": ResourceCoordinates("apps", "v1", "daemonsets", "DaemonSet"),
    "job": ResourceCoordinates("batch", "v1", "jobs", "Job"),
    "cronjob": ResourceCoordinates("batch", "v1", "cronjobs", "CronJob"),
    "horizontalpodautoscaler": ResourceCoordinates(
        "autoscaling", "v2", "horizontalpodautoscalers", "HorizontalPodAutoscaler"
    ),
    # networking and storage
    "ingress": ResourceCoordinates("networking.k8s.io", "v1", "ingresses", "Ingress"),
    "networkpolicy": ResourceCoordinates("networking.k8s.io", "v1", "networkpolicies", "NetworkPolicy"),
    "storageclass": ResourceCoordinates("storage.k8s.io", "v1", "storageclasses", "StorageClass"),
    "event.events.k8s.io": ResourceCoordinates("events.k8s.io", "v1", "events", "Event"),
    # rbac
    "role": ResourceCoordinates("rbac.authorization.k8s.io", "v1", "roles", "Role"),
    "rolebinding": ResourceCoordinates("rbac.authorization.k8s.io", "v1", "rolebindings", "RoleBinding"),
    "clusterrole": ResourceCoordinates("rbac.authorization.k8s.io", "v1", "clusterroles", "ClusterRole"),
    "clusterrolebinding": ResourceCoordinates(
        "rbac.authorization.k8s.io", "v1", "clusterrolebindings", "ClusterRoleBinding"
    ),
    "customresourcedefinition": ResourceCoordinates(
        "apiextensions.k8s.io", "v1", "customresourcedefinitions", "CustomResourceDefinition"
    ),
    # metrics server
    "pod.metrics.k8s.io": ResourceCoordinates("metrics.k8s.io", "v1beta1", "pods", "PodMetrics"),
    "node.metrics.k8s.io": ResourceCoordinates("metrics.k8s.io", "v1beta1", "nodes", "NodeMetrics"),
    # rancher
    "cluster": _MANAGEMENT_CLUSTERS,
    MANAGEMENT_CLUSTER_KIND: _MANAGEMENT_CLUSTERS,
    "project": ResourceCoordinates("management.cattle.io", "v3", "projects", "Project"),
    PROVISIONING_CLUSTER_KIND: ResourceCoordinates("provisioning.cattle.io", "v1", "clusters", "Cluster"),
    # cluster api
    "machine": ResourceCoordinates("cluster.x-k8s.io", "v1beta1", "machines", "Machine"),
    "machineset": ResourceCoordinates("cluster.x-k8s.io", "v1beta1", "machinesets", "MachineSet"),
    "machinedeployment": ResourceCoordinates(
        "cluster.x-k8s.io", "v1beta1", "machinedeployments", "MachineDeployment"
    ),
}


def resolve(kind: str) -> ResourceCoordinates:
    coordinates = KINDS.get((kind or "").strip().lower())
    if coordinates is None:
        logger.debug(f"No coordinates registered for kind {kind!r}")
        raise UnknownKindError(kind)
    return coordinates


def is_known(kind: str) -> bool:
    return (kind or "").strip().lower() in KINDS
