import logging
from enum import Enum
from logging import Logger
from typing import Dict, List, Optional
from kubernetes_asyncio.client import (
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1Deployment,
)
from kubernetes_asyncio.client.api_client import ApiClient
from immortaldb.types.settings import Settings
from immortaldb.types.models import ImmortalDBSpec, ImmortalDBStatus, ResourceIdentifier
from immortaldb.types.schemas import ImmortalDBSpecSchema, ImmortalDBStatusSchema
from immortaldb.resources import ImmortalDB
from immortaldb.sensors import OperatorSensor


class ReconcileOutcome(str, Enum):
    """How a successful reconciliation pass ended."""

    #: The ImmortalDB no longer exists, nothing was done
    GONE = "gone"
    #: The Deployment was created; status is refreshed by the next pass
    CREATED = "created"
    #: Replicas and status were converged
    RECONCILED = "reconciled"


class ImmortalDBReconciler:
    """Level-triggered reconciler for ImmortalDB resources.

    Each pass receives only the identifier of an ImmortalDB and re-reads all
    state it needs, so it is safe to run again after any failure. A pass issues
    at most one Deployment create, one Deployment replace and one status write.
    Errors are never retried here: they propagate to the caller, which
    re-enqueues the identifier.

    Only `spec.replicas` is converged once the Deployment exists. Changes to the
    image, ports or environment after creation are reported as drift and left
    untouched.

    Deleting an ImmortalDB needs no work: its Deployment carries a controller
    owner reference and is reclaimed by the Kubernetes garbage collector.

    The reconciler must not run two passes for the same identifier at once;
    serializing them is up to the caller.
    """

    logger: Logger
    conf: Settings
    sensor: OperatorSensor

    def __init__(
        self,
        apps_v1_api: AppsV1Api,
        core_v1_api: CoreV1Api,
        custom_objects_api: CustomObjectsApi,
        conf: Settings = None,
        sensor: OperatorSensor = None,
        logger: Logger = None,
    ):
        self.apps_v1_api = apps_v1_api
        self.core_v1_api = core_v1_api
        self.custom_objects_api = custom_objects_api
        self.conf = conf or Settings()
        self.sensor = sensor or OperatorSensor()
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_api_client(
        cls,
        api_client: ApiClient,
        conf: Settings = None,
        sensor: OperatorSensor = None,
        logger: Logger = None,
    ) -> "ImmortalDBReconciler":
        """Create a reconciler whose API groups share one connection pool."""
        return cls(
            AppsV1Api(api_client),
            CoreV1Api(api_client),
            CustomObjectsApi(api_client),
            conf=conf,
            sensor=sensor,
            logger=logger,
        )

    async def reconcile(
        self,
        identifier: ResourceIdentifier,
        logger: Logger = None,
        trigger_source: str = "manual",
    ) -> ReconcileOutcome:
        """Run one reconciliation pass for the ImmortalDB `identifier`.

        Raises:
            kubernetes_asyncio.client.ApiException: any API failure other than
                the expected 404s, including 409 write conflicts.
            marshmallow.ValidationError: the ImmortalDB spec is invalid.
            immortaldb.utils.errors.OwnerReferenceError: the ImmortalDB cannot
                own its Deployment.
        """
        logger = logger or self.logger
        sensor_state = self.sensor.on_reconcile_start(
            identifier.name, identifier.namespace, trigger_source
        )
        try:
            outcome = await self._reconcile(identifier, logger)
        except Exception as e:
            self.sensor.on_reconcile_complete(
                identifier.name, identifier.namespace, sensor_state, None, False, e
            )
            raise
        self.sensor.on_reconcile_complete(
            identifier.name, identifier.namespace, sensor_state, outcome.value, True
        )
        return outcome

    async def _reconcile(
        self, identifier: ResourceIdentifier, logger: Logger
    ) -> ReconcileOutcome:
        body = await ImmortalDB.default().fetch(
            self.custom_objects_api, identifier.name, identifier.namespace
        )
        if body is None:
            logger.info(
                f"{ImmortalDB.KIND} {identifier} not found; "
                "owned resources are left to the garbage collector."
            )
            return ReconcileOutcome.GONE

        spec: ImmortalDBSpec = ImmortalDBSpecSchema().load(body.get("spec") or {})
        db = ImmortalDB.from_spec(
            identifier.name, identifier.namespace, spec, conf=self.conf
        )
        desired = db.unite(body)

        found = await db.fetch_deployment(
            self.apps_v1_api, db.deployment_name, db.namespace
        )
        if found is None:
            await self.create_deployment(db, desired, logger)
            return ReconcileOutcome.CREATED

        await self.sync_replicas(db, found, logger)
        self.detect_drift(db, found, logger)
        await self.sync_status(db, body, logger)
        return ReconcileOutcome.RECONCILED

    async def create_deployment(
        self, db: ImmortalDB, deployment: V1Deployment, logger: Logger
    ) -> None:
        logger.info(
            f"Creating Deployment `{db.deployment_name}` in `{db.namespace}` namespace "
            f"with {db.replicas} replica(s) of `{db.image}`."
        )
        await self._write(
            db,
            "deployment",
            "create",
            db.create_deployment(self.apps_v1_api, db.namespace, deployment),
        )

    async def sync_replicas(
        self, db: ImmortalDB, found: V1Deployment, logger: Logger
    ) -> bool:
        """Converge the replica count of `found`; returns True if a write was issued."""
        if found.spec.replicas == db.replicas:
            return False
        logger.info(
            f"Scaling Deployment `{db.deployment_name}` from "
            f"{found.spec.replicas} to {db.replicas} replica(s)."
        )
        found.spec.replicas = db.replicas
        await self._write(
            db,
            "deployment",
            "scale",
            db.replace_deployment(
                self.apps_v1_api, db.deployment_name, db.namespace, found
            ),
        )
        return True

    def detect_drift(
        self, db: ImmortalDB, found: V1Deployment, logger: Logger
    ) -> List[str]:
        """Report fields fixed at creation that no longer match the ImmortalDB.

        Nothing is written: only replicas are reconciled after creation.
        """
        actual = db.prepare_deployment_watch_fields(found)
        desired = db.prepare_deployment_watch_fields(db.deployment)
        if db.compute_hash(actual) == db.compute_hash(desired):
            return []
        drift_fields = [
            field for field in desired if actual.get(field) != desired[field]
        ]
        logger.warning(
            f"Deployment `{db.deployment_name}` differs from {db.KIND} "
            f"`{db.cluster}` in {', '.join(drift_fields)}; "
            "only replicas are reconciled after creation."
        )
        self.sensor.on_resource_drift_detected(
            db.cluster, db.deployment_name, db.namespace, "deployment", drift_fields
        )
        return drift_fields

    async def sync_status(self, db: ImmortalDB, body: Dict, logger: Logger) -> bool:
        """Write the names of the pods backing `db` to status.nodes if they changed.

        Returns True if the status was written.
        """
        pods = await db.list_pods(self.core_v1_api, db.namespace, db.selector_labels)
        nodes = [pod.metadata.name for pod in pods.items or []]
        current = self.observed_nodes(body)
        if nodes == current:
            return False

        logger.debug(f"Updating {db.KIND} `{db.cluster}` nodes: {current} -> {nodes}")
        status = ImmortalDBStatusSchema().dump(ImmortalDBStatus(nodes=nodes))
        await self._write(
            db,
            "status",
            "replace_status",
            db.replace_status(self.custom_objects_api, {**body, "status": status}),
        )
        self.sensor.on_status_update(db.cluster, db.namespace, list(status.keys()))
        return True

    def observed_nodes(self, body: Dict) -> List[str]:
        """Return status.nodes of an ImmortalDB body; absent is the same as empty."""
        status: Optional[Dict] = body.get("status") or {}
        return list(status.get("nodes") or [])

    async def _write(self, db: ImmortalDB, resource_type: str, operation: str, request):
        resource_name = (
            db.deployment_name if resource_type == "deployment" else db.cluster
        )
        sensor_state = self.sensor.on_resource_sync_start(
            db.cluster, resource_name, db.namespace, resource_type
        )
        try:
            result = await request
        except Exception as e:
            self.sensor.on_resource_sync_complete(
                db.cluster,
                resource_name,
                db.namespace,
                resource_type,
                sensor_state,
                operation,
                False,
                e,
            )
            raise
        self.sensor.on_resource_sync_complete(
            db.cluster,
            resource_name,
            db.namespace,
            resource_type,
            sensor_state,
            operation,
            True,
        )
        return result
