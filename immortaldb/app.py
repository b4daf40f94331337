import kopf
import logging
import immortaldb.handlers.immortaldb as immortaldb_handlers  # noqa: F401
import immortaldb.handlers.probes as probes  # noqa: F401
from immortaldb.reconciler import ImmortalDBReconciler
from immortaldb.resources import ImmortalDB
from immortaldb.types.settings import Settings
from immortaldb.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client.api_client import ApiClient


@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # In-cluster credentials when deployed, local kubeconfig otherwise
    try:
        config.load_incluster_config()
        logger.info("Using in-cluster Kubernetes credentials")
    except config.ConfigException:
        try:
            await config.load_kube_config()
        except config.ConfigException as e:
            logger.error(f"No usable Kubernetes credentials: {e}")
            raise
        logger.info("Using local kubeconfig")

    memo.conf = Settings()

    # One ApiClient shared by every API group to prevent connection leaks
    memo.api_client = ApiClient()

    sensors = SensorDelegate()
    if memo.conf.metrics_enabled:
        sensors.add(PrometheusMonitor())
        try:
            init_metrics_server(memo.conf.metrics_port)
        except RuntimeError as e:
            logger.warning(f"Metrics endpoint unavailable: {e}")
    memo.reconciler = ImmortalDBReconciler.from_api_client(
        memo.api_client, conf=memo.conf, sensor=sensors
    )
    logger.info(
        f"Reconciling {ImmortalDB.KIND} resources with up to {memo.conf.worker_limit} workers"
    )

    # Bound the number of resources reconciled concurrently
    settings.batching.worker_limit = memo.conf.worker_limit

    # Post warnings and errors as Kubernetes events
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING

    # Keep kopf's bookkeeping out of status, which belongs to the reconciler
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=ImmortalDB.GROUP_NAME
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=ImmortalDB.GROUP_NAME
    )


@kopf.on.cleanup()
async def cleanup(memo: kopf.Memo, logger: logging.Logger, **kwargs):
    """Release the shared API client."""
    api_client = getattr(memo, "api_client", None)
    if api_client is not None:
        await api_client.close()
    logger.info("ImmortalDB operator stopped")
