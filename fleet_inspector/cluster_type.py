from enum import Enum
from typing import Optional

from .models import Resource

CLUSTER_TYPE_KIND = "ClusterType"

HOSTED_CONFIG_FIELDS = ("eksConfig", "aksConfig", "gkeConfig")


class ClusterType(str, Enum):
    IMPORTED = "imported"
    HOSTED = "hosted"
    CUSTOM = "custom"
    NODE_DRIVER = "node-driver"


def _hosted_config(management_cluster: Resource) -> Optional[dict]:
    for config_field in HOSTED_CONFIG_FIELDS:
        config = management_cluster.field("spec", config_field)
        if config is not None:
            return config
    return None


def classify_cluster(management_cluster: Resource, machine_pool_count: int) -> ClusterType:
    """Infer how a cluster was provisioned.

    Rules are checked in order and the first match wins:

    1. a hosted provider config (EKS, AKS, GKE) marked ``imported``
    2. any hosted provider config
    3. ``status.provider`` equal to ``status.driver``
    4. no machine pools
    5. everything else is provisioned through a node driver
    """
    hosted = _hosted_config(management_cluster)
    if hosted is not None:
        if hosted.get("imported") is True:
            return ClusterType.IMPORTED
        return ClusterType.HOSTED

    provider = management_cluster.field("status", "provider", default="")
    driver = management_cluster.field("status", "driver", default="")
    if provider and provider == driver:
        return ClusterType.IMPORTED

    if machine_pool_count == 0:
        return ClusterType.CUSTOM

    return ClusterType.NODE_DRIVER


def cluster_type_marker(cluster_name: str, cluster_type: ClusterType) -> Resource:
    return Resource.marker(CLUSTER_TYPE_KIND, cluster_name, clusterType=cluster_type.value)
