import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import urllib3
from kubernetes import client as k8s_api_client
from kubernetes.client.exceptions import ApiException

from .errors import error_from_api_exception, error_from_transport
from .models import ClusterCredentials, Resource, ResourceCoordinates, ResourceIdentity

logger = logging.getLogger(__name__)

LOCAL_CLUSTER = "local"


class K8sClient:
    """Reads resources from any cluster of a Rancher installation.

    Every cluster, the local management cluster included, is reached through
    the Rancher proxy at ``<url>/k8s/clusters/<cluster>``. Instances are
    built per request and hold that request's credentials only.
    """

    def __init__(
        self,
        credentials: ClusterCredentials,
        verify_ssl: bool = True,
        request_timeout: float = 30.0,
        api_client_factory: Optional[Callable[[k8s_api_client.Configuration], Any]] = None,
    ):
        self.credentials = credentials
        self.verify_ssl = verify_ssl
        self.request_timeout = request_timeout
        self._api_client_factory = api_client_factory or k8s_api_client.ApiClient
        self._api_clients: Dict[str, Any] = {}

    async def __aenter__(self) -> "K8sClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        for api_client in self._api_clients.values():
            close = getattr(api_client, "close", None)
            if close:
                close()
        self._api_clients.clear()

    def _api_client(self, cluster: str):
        if cluster not in self._api_clients:
            configuration = k8s_api_client.Configuration()
            configuration.host = self.credentials.cluster_host(cluster)
            configuration.api_key = {"authorization": f"Bearer {self.credentials.token}"}
            configuration.verify_ssl = self.verify_ssl
            self._api_clients[cluster] = self._api_client_factory(configuration)
        return self._api_clients[cluster]

    async def _call(self, identity: ResourceIdentity, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except ApiException as e:
            raise error_from_api_exception(identity, e) from e
        except urllib3.exceptions.HTTPError as e:
            raise error_from_transport(identity, e) from e

    def _request(self, cluster: str, path: str, query_params: List[tuple]) -> Any:
        return self._api_client(cluster).call_api(
            path,
            "GET",
            query_params=query_params,
            header_params={"Accept": "application/json"},
            response_type="object",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _preload_content=True,
            _request_timeout=self.request_timeout,
        )

    async def get_resource(
        self,
        cluster: str,
        coordinates: ResourceCoordinates,
        namespace: Optional[str],
        name: str,
    ) -> Resource:
        identity = coordinates.identity(cluster, namespace, name)
        path = coordinates.path(namespace, name)
        logger.debug(f"GET {path} on cluster {cluster}")

        doc = await self._call(identity, lambda: self._request(cluster, path, []))
        return Resource(doc or {})

    async def list_resources(
        self,
        cluster: str,
        coordinates: ResourceCoordinates,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Resource]:
        identity = coordinates.identity(cluster, namespace, "")
        path = coordinates.path(namespace)
        query_params = []
        if label_selector:
            query_params.append(("labelSelector", label_selector))
        if limit:
            query_params.append(("limit", limit))
        logger.debug(f"LIST {path} on cluster {cluster} (selector: {label_selector or '-'})")

        doc = await self._call(identity, lambda: self._request(cluster, path, query_params))
        doc = doc or {}

        # List items omit kind/apiVersion; restore them from the list envelope.
        list_kind = doc.get("kind", "")
        item_kind = list_kind[: -len("List")] if list_kind.endswith("List") else list_kind
        item_kind = item_kind or coordinates.kind
        api_version = doc.get("apiVersion") or coordinates.api_version

        resources = []
        for item in doc.get("items") or []:
            item = dict(item)
            if item_kind:
                item.setdefault("kind", item_kind)
            item.setdefault("apiVersion", api_version)
            resources.append(Resource(item))
        return resources

    async def get_pod_logs(
        self,
        cluster: str,
        namespace: str,
        pod: str,
        container: str,
        tail_lines: int,
    ) -> str:
        identity = ResourceIdentity(cluster=cluster, kind="Pod", namespace=namespace, name=pod)
        core_v1 = k8s_api_client.CoreV1Api(self._api_client(cluster))

        logs = await self._call(
            identity,
            lambda: core_v1.read_namespaced_pod_log(
                name=pod,
                namespace=namespace,
                container=container,
                tail_lines=tail_lines,
                _request_timeout=self.request_timeout,
            ),
        )
        return logs or ""
