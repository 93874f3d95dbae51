from types import SimpleNamespace
from typing import Any, Dict
from marshmallow import INCLUDE, EXCLUDE, Schema, post_load

EXCLUDE = EXCLUDE
JSON = Dict[str, Any]
MAX_REPR_LEN = 50


class BaseModel(SimpleNamespace):
    """BaseModel that all models should inherit from.
    Args:
        **kwargs: All passed parameters as converted to instance attributes.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.__dict__.update(kwargs)

    def __repr__(self) -> str:
        """Return a default repr of any Model, cut at `MAX_REPR_LEN`."""
        repr_ = super().__repr__()
        if len(repr_) > MAX_REPR_LEN:
            return repr_[:MAX_REPR_LEN] + " ...)"
        return repr_

    def as_dict(self) -> Dict[str, Any]:
        """Nested models and lists of models are converted too."""
        result = {}
        for key, value in self.__dict__.items():
            if isinstance(value, BaseModel):
                result[key] = value.as_dict()
            elif isinstance(value, list):
                result[key] = [
                    item.as_dict() if isinstance(item, BaseModel) else item
                    for item in value
                ]
            else:
                result[key] = value
        return result


class BaseSchema(Schema):
    """The default schema for all models.

    Fields unknown to a schema are kept on the model, so a newer CRD does not
    break an older operator.
    """

    __model__: Any = BaseModel
    """Determine the object that is created when the load method is called."""

    class Meta:
        unknown = INCLUDE
        ordered = True

    @post_load
    def make_object(self, data: JSON, **kwargs: Any) -> "__model__":
        """Build model for the given `__model__` class attribute."""
        return self.__model__(**data)
