"""Serves the default Prometheus registry on /metrics."""

import logging
from threading import Thread
from prometheus_client import start_http_server

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 8000


def start_metrics_server(port: int = DEFAULT_METRICS_PORT) -> None:
    try:
        start_http_server(port)
    except OSError as e:
        logger.error(f"Cannot serve metrics on port {port}: {e}")
        raise
    logger.info(f"Serving metrics on :{port}/metrics")


def init_metrics_server(port: int = DEFAULT_METRICS_PORT) -> Thread:
    """Start the metrics endpoint on `port`, off the event loop."""
    thread = Thread(
        target=start_metrics_server, args=(port,), name="metrics-server", daemon=True
    )
    thread.start()
    return thread
