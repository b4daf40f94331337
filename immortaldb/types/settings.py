import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Seconds between level-triggered resyncs of every ImmortalDB
RESYNC_INTERVAL_SECONDS = float(_getenv("RESYNC_INTERVAL_SECONDS", 30.0))

#: Seconds to wait before retrying a failed reconciliation pass
RETRY_DELAY_SECONDS = float(_getenv("RETRY_DELAY_SECONDS", 10.0))

#: Seconds to wait before retrying a pass that lost a write conflict
CONFLICT_RETRY_DELAY_SECONDS = float(_getenv("CONFLICT_RETRY_DELAY_SECONDS", 1.0))

#: Maximum number of resources reconciled concurrently
WORKER_LIMIT = int(_getenv("WORKER_LIMIT", 4))

#: Port the database container listens on
DATABASE_PORT = int(_getenv("DATABASE_PORT", 5432))

#: Value of POSTGRES_PASSWORD in the database container
DATABASE_PASSWORD = str(_getenv("DATABASE_PASSWORD", "12345"))

#: Expose Prometheus metrics
METRICS_ENABLED = bool(_getenv("METRICS_ENABLED", True))

#: Port serving /metrics
METRICS_PORT = int(_getenv("METRICS_PORT", 8000))

#: Re-enqueue an ImmortalDB whenever its Deployment changes
WATCH_WORKLOADS = bool(_getenv("WATCH_WORKLOADS", True))


class Settings:
    """Operator settings"""

    resync_interval_seconds: float = RESYNC_INTERVAL_SECONDS
    retry_delay_seconds: float = RETRY_DELAY_SECONDS
    conflict_retry_delay_seconds: float = CONFLICT_RETRY_DELAY_SECONDS
    worker_limit: int = WORKER_LIMIT
    database_port: int = DATABASE_PORT
    database_password: str = DATABASE_PASSWORD
    metrics_enabled: bool = METRICS_ENABLED
    metrics_port: int = METRICS_PORT
    watch_workloads: bool = WATCH_WORKLOADS

    def __init__(
        self,
        *args,
        resync_interval_seconds: float = None,
        retry_delay_seconds: float = None,
        conflict_retry_delay_seconds: float = None,
        worker_limit: int = None,
        database_port: int = None,
        database_password: str = None,
        metrics_enabled: bool = None,
        metrics_port: int = None,
        watch_workloads: bool = None,
        **kwargs,
    ):
        if resync_interval_seconds is not None:
            self.resync_interval_seconds = resync_interval_seconds

        if retry_delay_seconds is not None:
            self.retry_delay_seconds = retry_delay_seconds

        if conflict_retry_delay_seconds is not None:
            self.conflict_retry_delay_seconds = conflict_retry_delay_seconds

        if worker_limit is not None:
            self.worker_limit = worker_limit

        if database_port is not None:
            self.database_port = database_port

        if database_password is not None:
            self.database_password = database_password

        if metrics_enabled is not None:
            self.metrics_enabled = metrics_enabled

        if metrics_port is not None:
            self.metrics_port = metrics_port

        if watch_workloads is not None:
            self.watch_workloads = watch_workloads
