from typing import Dict, List, Optional
from immortaldb.types.settings import Settings
from immortaldb.types.models import ImmortalDBSpec, ImmortalDBResources
from immortaldb.common.models.labels import Labels
from immortaldb.resources.base import BaseResource
from immortaldb.utils.errors import OwnerReferenceError
from kubernetes_asyncio.client import (
    CustomObjectsApi,
    V1ObjectMeta,
    V1Deployment,
    V1DeploymentSpec,
    V1LabelSelector,
    V1PodTemplateSpec,
    V1PodSpec,
    V1Container,
    V1ContainerPort,
    V1EnvVar,
    V1OwnerReference,
)


class ImmortalDB(BaseResource):
    """ImmortalDB kubernetes resource.

    Derives the desired Deployment of a database cluster from the ImmortalDB
    spec. Building the desired state performs no I/O.
    """

    conf: Settings

    KIND = "ImmortalDB"
    GROUP_NAME = "db.example.com"
    GROUP_VERSION = "v1alpha1"
    API_VERSION = f"{GROUP_NAME}/{GROUP_VERSION}"
    PLURAL_NAME = "immortaldbs"
    COMPONENT_TYPE = "database"
    DATABASE_PORT_NAME = "postgres"
    PASSWORD_ENV_NAME = "POSTGRES_PASSWORD"

    replicas: int
    image: str
    deployment_name: str
    container_name: str

    # k8s resources
    _selector_labels: Dict[str, str] = None
    _env_vars: List[V1EnvVar] = None
    _container_ports: List[V1ContainerPort] = None
    _container: V1Container = None
    _pod_template: V1PodTemplateSpec = None
    _deployment: V1Deployment = None
    _deployment_hash: str = None

    def __init__(
        self,
        name: str,
        kind: str,
        namespace: str,
        component_type: str,
        labels: Optional[Dict[str, str]] = None,
        conf: Settings = None,
    ):
        component_name = ImmortalDBResources.component_name(name)
        _labels = Labels.generate_default_labels(
            name,
            kind,
            component_type,
            self.IMMORTALDB_OPERATOR_NAME,
        )
        _labels.update(labels or {})
        super().__init__(
            cluster=name,
            namespace=namespace,
            component_name=component_name,
            labels=_labels,
        )
        self.conf = conf or Settings()

    @classmethod
    def from_spec(
        cls,
        name: str,
        namespace: str,
        spec: ImmortalDBSpec,
        labels: Optional[Dict[str, str]] = None,
        conf: Settings = None,
    ) -> "ImmortalDB":
        db = ImmortalDB(name, cls.KIND, namespace, cls.COMPONENT_TYPE, labels, conf)
        db.deployment_name = ImmortalDBResources.deployment_name(name)
        db.container_name = ImmortalDBResources.container_name(name)
        db.image = spec.image
        db.replicas = spec.replicas
        return db

    @classmethod
    def default(cls) -> "ImmortalDB":
        """Create a default ImmortalDB resource, used to look up resources by name."""
        return ImmortalDB(
            name="default",
            kind=cls.KIND,
            namespace=None,
            component_type=cls.COMPONENT_TYPE,
        )

    async def fetch(
        self, custom_objects_api: CustomObjectsApi, name: str, namespace: str
    ) -> Optional[Dict]:
        """Fetch an ImmortalDB from kubernetes, None if it does not exist."""
        return await self.get_custom_object(
            custom_objects_api,
            namespace=namespace,
            group=self.GROUP_NAME,
            version=self.GROUP_VERSION,
            plural=self.PLURAL_NAME,
            name=name,
        )

    async def replace_status(
        self, custom_objects_api: CustomObjectsApi, body: Dict
    ) -> Dict:
        """Write the status subresource of this ImmortalDB from `body`."""
        return await self.replace_custom_object_status(
            custom_objects_api,
            namespace=self.namespace,
            group=self.GROUP_NAME,
            version=self.GROUP_VERSION,
            plural=self.PLURAL_NAME,
            name=self.cluster,
            body=body,
        )

    def prepare_selector_labels(self) -> Dict[str, str]:
        return ImmortalDBResources.selector_labels(self.cluster)

    def prepare_container_ports(self) -> List[V1ContainerPort]:
        return [
            V1ContainerPort(
                name=self.DATABASE_PORT_NAME,
                container_port=self.conf.database_port,
                protocol="TCP",
            )
        ]

    def prepare_env_vars(self) -> List[V1EnvVar]:
        return [V1EnvVar(name=self.PASSWORD_ENV_NAME, value=self.conf.database_password)]

    def prepare_container(self) -> V1Container:
        return V1Container(
            name=self.container_name,
            image=self.image,
            ports=self.container_ports,
            env=self.env_vars,
        )

    def prepare_pod_template(self) -> V1PodTemplateSpec:
        # Pod labels must equal the selector, it is the only link back to the Deployment
        return V1PodTemplateSpec(
            metadata=V1ObjectMeta(labels=dict(self.selector_labels)),
            spec=V1PodSpec(containers=[self.container]),
        )

    def prepare_deployment(self) -> V1Deployment:
        deployment = V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=V1ObjectMeta(
                name=self.deployment_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
            ),
            spec=V1DeploymentSpec(
                replicas=self.replicas,
                selector=V1LabelSelector(match_labels=dict(self.selector_labels)),
                template=self.pod_template,
            ),
        )
        deployment.metadata.annotations = self.prepare_hash_annotation(
            self.prepare_deployment_hash(deployment)
        )
        return deployment

    def prepare_deployment_watch_fields(self, deployment: V1Deployment) -> Dict:
        """Fields of a deployment that are set at creation and never reconciled afterwards.

        Replicas are excluded since they are converged on every pass.
        """
        spec = deployment.spec
        selector = spec.selector.match_labels if spec.selector else None
        template_labels = (
            spec.template.metadata.labels if spec.template.metadata else None
        )
        containers = spec.template.spec.containers if spec.template.spec else None
        return {
            "selector": dict(selector or {}),
            "template": {"labels": dict(template_labels or {})},
            "containers": [
                {
                    "name": container.name,
                    "image": container.image,
                    "ports": [port.container_port for port in container.ports or []],
                    "env": [
                        {"name": env.name, "value": env.value}
                        for env in container.env or []
                    ],
                }
                for container in containers or []
            ],
        }

    def prepare_deployment_hash(self, deployment: V1Deployment) -> str:
        return self.compute_hash(self.prepare_deployment_watch_fields(deployment))

    def prepare_owner_reference(self, body: Dict) -> V1OwnerReference:
        """Build the controller owner reference pointing at the ImmortalDB `body`.

        Raises:
            OwnerReferenceError: the body lacks the identity needed for ownership,
                or lives in another namespace.
        """
        metadata = body.get("metadata") or {}
        api_version = body.get("apiVersion")
        kind = body.get("kind")
        name = metadata.get("name")
        uid = metadata.get("uid")
        missing = [
            field
            for field, value in (
                ("apiVersion", api_version),
                ("kind", kind),
                ("metadata.name", name),
                ("metadata.uid", uid),
            )
            if not value
        ]
        if missing:
            raise OwnerReferenceError(
                f"Cannot set {self.KIND} `{self.cluster}` as owner: missing {', '.join(missing)}."
            )
        owner_namespace = metadata.get("namespace")
        if owner_namespace and owner_namespace != self.namespace:
            raise OwnerReferenceError(
                f"Cross-namespace owner reference is not allowed: "
                f"owner is in `{owner_namespace}`, dependent in `{self.namespace}`."
            )
        return V1OwnerReference(
            api_version=api_version,
            kind=kind,
            name=name,
            uid=uid,
            controller=True,
            block_owner_deletion=True,
        )

    def unite(self, body: Dict) -> V1Deployment:
        """Ensure the desired deployment is owned by the ImmortalDB `body`.

        Deleting the ImmortalDB lets the Kubernetes garbage collector reclaim
        the deployment through this reference; the operator never deletes it.
        """
        owner_reference = self.prepare_owner_reference(body)
        self.deployment.metadata.owner_references = [owner_reference]
        return self.deployment

    @property
    def selector_labels(self) -> Dict[str, str]:
        if self._selector_labels is None:
            self._selector_labels = self.prepare_selector_labels()
        return self._selector_labels

    @property
    def env_vars(self) -> List[V1EnvVar]:
        if self._env_vars is None:
            self._env_vars = self.prepare_env_vars()
        return self._env_vars

    @property
    def container_ports(self) -> List[V1ContainerPort]:
        if self._container_ports is None:
            self._container_ports = self.prepare_container_ports()
        return self._container_ports

    @property
    def container(self) -> V1Container:
        if self._container is None:
            self._container = self.prepare_container()
        return self._container

    @property
    def pod_template(self) -> V1PodTemplateSpec:
        if self._pod_template is None:
            self._pod_template = self.prepare_pod_template()
        return self._pod_template

    @property
    def deployment(self) -> V1Deployment:
        if self._deployment is None:
            self._deployment = self.prepare_deployment()
        return self._deployment

    @property
    def deployment_hash(self) -> str:
        if self._deployment_hash is None:
            self._deployment_hash = self.prepare_deployment_hash(self.deployment)
        return self._deployment_hash
