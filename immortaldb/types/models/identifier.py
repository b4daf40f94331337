from typing import NamedTuple


class ResourceIdentifier(NamedTuple):
    """Namespace and name of an ImmortalDB; the only input of a reconciliation pass."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"
