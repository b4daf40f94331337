import json
import kopf
import kubernetes_asyncio

_ALREADY_EXISTS = "alreadyexists"
_CONFLICT = "conflict"


class ImmortalDBError(Exception):
    """Base error raised by the ImmortalDB reconciler."""


class OwnerReferenceError(ImmortalDBError):
    """The declared resource cannot be set as owner of its Deployment."""


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body) if ex.body else {}
    except (json.JSONDecodeError, TypeError):
        return ""
    return str(err.get("reason", "")).lower()


def not_found_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 404


def already_exists_error(ex: Exception) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return _reason(ex) == _ALREADY_EXISTS


def conflict_error(ex: Exception) -> bool:
    """A write lost an optimistic concurrency race (stale resourceVersion)."""
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) != _ALREADY_EXISTS


def describe_error(ex: Exception) -> str:
    """Return a serializable, human readable description of an error."""
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return f"{type(ex).__name__}: {ex}"

    error_msg = f"Kubernetes API error ({ex.status}): {ex.reason}"
    try:
        if ex.body:
            body = json.loads(ex.body)
            if "message" in body:
                error_msg = f"{error_msg} - {body['message']}"
    except (json.JSONDecodeError, AttributeError, TypeError):
        pass
    return error_msg


def convert_reconcile_error(
    ex: Exception, delay: float, conflict_delay: float
) -> kopf.TemporaryError:
    """
    Convert an error raised by a reconciliation pass to a Kopf-friendly exception.

    Every error is retryable; conflicts are retried sooner since the next
    read observes the winning write.

    Args:
        ex: The error raised by the pass
        delay: Seconds before Kopf retries the handler
        conflict_delay: Seconds before Kopf retries after a write conflict

    Returns:
        kopf.TemporaryError with serializable error details
    """
    if conflict_error(ex):
        return kopf.TemporaryError(describe_error(ex), delay=conflict_delay)
    return kopf.TemporaryError(describe_error(ex), delay=delay)
