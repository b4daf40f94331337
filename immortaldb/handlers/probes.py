import kopf
from immortaldb.utils.helpers import now
from immortaldb.handlers.immortaldb import reconciliation_locks


@kopf.on.probe(id="now")
def get_current_timestamp(**kwargs):
    return now()


@kopf.on.probe(id="reconciling")
def count_running_reconciliations(**kwargs):
    """Number of ImmortalDBs with a pass in flight."""
    return sum(1 for lock in list(reconciliation_locks.values()) if lock.locked())
