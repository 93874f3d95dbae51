from marshmallow import fields
from limitador.types.base import BaseSchema
from limitador.types.models.rate_limit import RateLimit


class RateLimitSchema(BaseSchema):
    __model__ = RateLimit

    conditions = fields.List(
        fields.Str(), data_key="conditions", load_default=lambda: []
    )
    max_value = fields.Int(data_key="max_value", required=True)
    namespace = fields.Str(data_key="namespace", required=True)
    seconds = fields.Int(data_key="seconds", required=True)
    variables = fields.List(
        fields.Str(), data_key="variables", load_default=lambda: []
    )
    name = fields.Str(data_key="name", allow_none=True, load_default=None)
