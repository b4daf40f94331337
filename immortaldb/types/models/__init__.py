from .identifier import ResourceIdentifier
from .immortaldb_spec import ImmortalDBSpec, ImmortalDBStatus
from .immortaldb_resources import ImmortalDBResources

__all__ = [
    "ResourceIdentifier",
    "ImmortalDBSpec",
    "ImmortalDBStatus",
    "ImmortalDBResources",
]
