import mmh3
import hashlib
from typing import Any, Dict, Optional, Union
from immortaldb.utils.helpers import canonicalize_dict
from immortaldb.common.models.labels import Labels
from kubernetes_asyncio.client import (
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1Deployment,
    V1PodList,
)


class BaseResource:
    """Base resource model."""

    IMMORTALDB_OPERATOR_NAME = "immortaldb-operator"
    RESOURCE_HASH_ANNOTATION = "db.example.com/resource-hash"

    _cluster: str
    _namespace: str
    _component_name: str
    _labels: Labels

    def __init__(
        self, cluster: str, namespace: str, component_name: str, labels: Labels
    ):
        self._cluster = cluster
        self._namespace = namespace
        self._component_name = component_name
        self._labels = labels

    @property
    def cluster(self) -> str:
        return self._cluster

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def component_name(self) -> str:
        return self._component_name

    @property
    def labels(self) -> Labels:
        return self._labels

    def compute_hash(self, data: Any) -> str:
        """Short digest of a dict or string; equal for dicts differing only in key order."""
        if isinstance(data, dict):
            data = canonicalize_dict(data)
        elif not isinstance(data, str):
            raise ValueError(f"Hash of {type(data)} is not supported.")
        murmur = mmh3.hash128(data.encode())
        return hashlib.sha256(str(murmur).encode("utf-8")).hexdigest()[:16]

    def prepare_hash_annotation(self, hash: Union[str, int]) -> Dict[str, str]:
        """Annotation recording the hash of the fields a resource was created with."""
        return {self.RESOURCE_HASH_ANNOTATION: str(hash)}

    async def fetch_deployment(
        self, apps_v1_api: AppsV1Api, name: str, namespace: str
    ) -> Optional[V1Deployment]:
        """Retrieve the latest state of a deployment, None if it does not exist."""
        try:
            return await apps_v1_api.read_namespaced_deployment(
                name=name, namespace=namespace
            )
        except ApiException as ex:
            if ex.status == 404:
                return None
            raise

    async def create_deployment(
        self, apps_v1_api: AppsV1Api, namespace: str, deployment: V1Deployment
    ) -> V1Deployment:
        return await apps_v1_api.create_namespaced_deployment(
            namespace=namespace, body=deployment
        )

    async def replace_deployment(
        self,
        apps_v1_api: AppsV1Api,
        name: str,
        namespace: str,
        deployment: V1Deployment,
    ) -> V1Deployment:
        """Replace a deployment.

        The body keeps the resourceVersion it was read with, so the API server
        rejects the write with 409 Conflict if the deployment changed since.
        """
        return await apps_v1_api.replace_namespaced_deployment(
            name=name, namespace=namespace, body=deployment
        )

    async def list_pods(
        self, core_v1_api: CoreV1Api, namespace: str, label_selector: dict = None
    ) -> V1PodList:
        """Pods in `namespace` carrying every label of `label_selector`, in API order."""
        selector = Labels(label_selector).as_str() if label_selector else None

        return await core_v1_api.list_namespaced_pod(
            namespace=namespace, label_selector=selector
        )

    async def get_custom_object(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: str,
        group: str,
        version: str,
        plural: str,
        name: str,
    ) -> Optional[Dict]:
        try:
            return await custom_objects_api.get_namespaced_custom_object(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                name=name,
            )
        except ApiException as ex:
            if ex.status == 404:
                return None
            raise

    async def replace_custom_object_status(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: str,
        group: str,
        version: str,
        plural: str,
        name: str,
        body: Dict,
    ) -> Dict:
        return await custom_objects_api.replace_namespaced_custom_object_status(
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            name=name,
            body=body,
        )
