import jsonpickle
from datetime import datetime, timezone


def now() -> str:
    """Current UTC time in ISO 8601."""
    return datetime.now(timezone.utc).isoformat()


def sort_dict_keys(data):
    """Copy of `data` with the keys of every nested dict in sorted order."""
    if isinstance(data, dict):
        return {key: sort_dict_keys(data[key]) for key in sorted(data)}
    if isinstance(data, list):
        return [sort_dict_keys(item) for item in data]
    return data


def canonicalize_dict(data) -> str:
    """JSON text of `data` that does not depend on key order."""
    return jsonpickle.dumps(sort_dict_keys(data), unpicklable=False)
