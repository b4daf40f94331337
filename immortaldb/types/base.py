from types import SimpleNamespace
from typing import Any, Dict
from marshmallow import INCLUDE, Schema, post_load

JSON = Dict[str, Any]
MAX_REPR_LEN = 80


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.as_dict()
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


class BaseModel(SimpleNamespace):
    """Attribute bag built by a schema from a resource document."""

    def __repr__(self) -> str:
        """Default repr, truncated to `MAX_REPR_LEN`."""
        repr_ = super().__repr__()
        if len(repr_) > MAX_REPR_LEN:
            return repr_[:MAX_REPR_LEN] + " ...)"
        return repr_

    def as_dict(self) -> Dict[str, Any]:
        return {key: _plain(value) for key, value in self.__dict__.items()}


class BaseSchema(Schema):
    """Schema that loads documents into `__model__` instances."""

    __model__: Any = BaseModel

    class Meta:
        unknown = INCLUDE
        ordered = True

    @post_load
    def make_object(self, data: JSON, **kwargs: Any) -> Any:
        return self.__model__(**data)
