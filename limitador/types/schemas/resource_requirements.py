from marshmallow import fields
from limitador.types.base import BaseSchema
from limitador.types.models.resource_requirements import ResourceRequirements


class ResourceRequirementsSchema(BaseSchema):
    __model__ = ResourceRequirements

    requests = fields.Dict(data_key="requests", allow_none=True, load_default=None)
    limits = fields.Dict(data_key="limits", allow_none=True, load_default=None)
