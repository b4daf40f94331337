import asyncio
import kopf
import logging
from logging import Logger
from collections import defaultdict
from typing import Dict, List, Optional
from immortaldb.reconciler import ImmortalDBReconciler, ReconcileOutcome
from immortaldb.resources import ImmortalDB
from immortaldb.resources.base import BaseResource
from immortaldb.common.models.labels import Labels
from immortaldb.types.models import ResourceIdentifier
from immortaldb.types.settings import RESYNC_INTERVAL_SECONDS, WATCH_WORKLOADS
from immortaldb.utils.errors import convert_reconcile_error, describe_error

KIND = ImmortalDB.KIND

# One lock per ImmortalDB so that two passes for the same resource never overlap
reconciliation_locks: Dict[ResourceIdentifier, asyncio.Lock] = defaultdict(asyncio.Lock)
# Number of passes waiting on each lock
waiting_passes: Dict[ResourceIdentifier, int] = defaultdict(int)


class TimerLogFilter(logging.Filter):
    def filter(self, record):
        """Resync timer logs are noisy so we filter them out."""
        return "Timer " not in record.getMessage()


kopf_logger = logging.getLogger("kopf.objects")
kopf_logger.addFilter(TimerLogFilter())


def get_reconciler(memo: kopf.Memo) -> ImmortalDBReconciler:
    """Return the reconciler created at operator startup."""
    reconciler = getattr(memo, "reconciler", None)
    if reconciler is None:
        raise kopf.TemporaryError("Reconciler is not initialized yet.", delay=1)
    return reconciler


def owner_identifier(
    owner_references: Optional[List[Dict]], namespace: str
) -> Optional[ResourceIdentifier]:
    """Return the ImmortalDB controlling a resource, from its owner references."""
    for ref in owner_references or []:
        group = (ref.get("apiVersion") or "").split("/")[0]
        if (
            ref.get("controller")
            and ref.get("kind") == KIND
            and group == ImmortalDB.GROUP_NAME
        ):
            return ResourceIdentifier(namespace, ref["name"])
    return None


async def request_reconciliation(
    identifier: ResourceIdentifier,
    reconciler: ImmortalDBReconciler,
    logger: Logger,
    trigger_source: str,
) -> ReconcileOutcome:
    """Run a pass for `identifier` once no other pass for it is running.

    Passes for different resources run concurrently.
    """
    lock = reconciliation_locks[identifier]
    if lock.locked():
        waiting_passes[identifier] += 1
        reconciler.sensor.on_reconcile_queued(
            identifier.name, identifier.namespace, waiting_passes[identifier]
        )
        try:
            await lock.acquire()
        finally:
            waiting_passes[identifier] -= 1
    else:
        await lock.acquire()
    try:
        outcome = await reconciler.reconcile(
            identifier, logger=logger, trigger_source=trigger_source
        )
    finally:
        lock.release()
    if outcome == ReconcileOutcome.GONE:
        forget_resource(identifier)
    return outcome


def forget_resource(identifier: ResourceIdentifier) -> None:
    """Drop the lock of a resource unless a pass holds or waits for it."""
    lock = reconciliation_locks.get(identifier)
    if lock is None or lock.locked() or waiting_passes.get(identifier):
        return
    del reconciliation_locks[identifier]
    waiting_passes.pop(identifier, None)


async def reconcile_resource(
    name: str, namespace: str, memo: kopf.Memo, logger: Logger, trigger_source: str
) -> None:
    """Reconcile one ImmortalDB and turn failures into kopf retries."""
    reconciler = get_reconciler(memo)
    identifier = ResourceIdentifier(namespace, name)
    try:
        outcome = await request_reconciliation(
            identifier, reconciler, logger, trigger_source
        )
    except Exception as e:
        logger.error(f"Reconciliation of {KIND} {identifier} failed: {describe_error(e)}")
        raise convert_reconcile_error(
            e,
            delay=reconciler.conf.retry_delay_seconds,
            conflict_delay=reconciler.conf.conflict_retry_delay_seconds,
        ) from e
    logger.debug(f"Reconciled {KIND} {identifier} ({trigger_source}): {outcome.value}")


@kopf.on.resume(kind=KIND)
@kopf.on.create(kind=KIND)
@kopf.on.update(kind=KIND, field="spec")
async def on_change(name, namespace, memo: kopf.Memo, logger: Logger, reason, **kwargs):
    """Reconcile an ImmortalDB whose spec was created or changed."""
    await reconcile_resource(
        name, namespace, memo, logger, trigger_source=getattr(reason, "value", reason)
    )


@kopf.timer(kind=KIND, initial_delay=RESYNC_INTERVAL_SECONDS, interval=RESYNC_INTERVAL_SECONDS)
async def resync(name, namespace, memo: kopf.Memo, logger: Logger, **kwargs):
    """Periodic full sync; catches changes no event was delivered for."""
    await reconcile_resource(name, namespace, memo, logger, trigger_source="timer")


@kopf.on.event(
    "apps",
    "v1",
    "deployments",
    labels={Labels.KUBERNETES_MANAGED_BY_LABEL: BaseResource.IMMORTALDB_OPERATOR_NAME},
    when=lambda **_: WATCH_WORKLOADS,
)
async def on_workload_event(meta, namespace, memo: kopf.Memo, logger: Logger, **kwargs):
    """Re-enqueue the owning ImmortalDB whenever one of its Deployments changes.

    kopf never retries event handlers, so a failed pass is only logged and left
    to the next resync.
    """
    identifier = owner_identifier(meta.get("ownerReferences"), namespace)
    if identifier is None:
        return
    try:
        await request_reconciliation(
            identifier, get_reconciler(memo), logger, trigger_source="workload"
        )
    except Exception as e:
        logger.error(
            f"Reconciliation of {KIND} {identifier} after a Deployment change failed: "
            f"{describe_error(e)}"
        )


@kopf.on.delete(kind=KIND, optional=True)
async def on_delete(name, namespace, logger: Logger, **kwargs):
    """Forget dispatcher state of a deleted ImmortalDB.

    The Deployment is reclaimed by the Kubernetes garbage collector through its
    owner reference, so no finalizer is needed.
    """
    identifier = ResourceIdentifier(namespace, name)
    forget_resource(identifier)
    logger.info(f"{KIND} {identifier} deleted; its Deployment is left to the garbage collector.")
