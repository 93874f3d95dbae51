from marshmallow import fields, validates, ValidationError
from limitador.types.base import BaseSchema
from limitador.types.models.storage import (
    SecretRef,
    Redis,
    RedisCached,
    RedisCachedOptions,
    Disk,
    PersistentVolumeClaimGenericSpec,
    PersistentVolumeClaimResources,
    Storage,
)


class SecretRefSchema(BaseSchema):
    __model__ = SecretRef

    name = fields.Str(data_key="name", required=True)
    namespace = fields.Str(data_key="namespace", allow_none=True, load_default=None)


class RedisCachedOptionsSchema(BaseSchema):
    __model__ = RedisCachedOptions

    ttl = fields.Int(data_key="ttl", allow_none=True, load_default=None)
    ratio = fields.Int(data_key="ratio", allow_none=True, load_default=None)
    flush_period = fields.Int(
        data_key="flush-period", allow_none=True, load_default=None
    )
    max_cached = fields.Int(data_key="max-cached", allow_none=True, load_default=None)
    response_timeout = fields.Int(
        data_key="response-timeout", allow_none=True, load_default=None
    )
    batch_size = fields.Int(data_key="batch-size", allow_none=True, load_default=None)


class RedisSchema(BaseSchema):
    __model__ = Redis

    config_secret_ref = fields.Nested(
        SecretRefSchema(),
        data_key="configSecretRef",
        allow_none=True,
        load_default=None,
    )


class RedisCachedSchema(BaseSchema):
    __model__ = RedisCached

    config_secret_ref = fields.Nested(
        SecretRefSchema(),
        data_key="configSecretRef",
        allow_none=True,
        load_default=None,
    )
    options = fields.Nested(
        RedisCachedOptionsSchema(),
        data_key="options",
        allow_none=True,
        load_default=None,
    )


class PersistentVolumeClaimResourcesSchema(BaseSchema):
    __model__ = PersistentVolumeClaimResources

    requests = fields.Str(data_key="requests", required=True)


class PersistentVolumeClaimGenericSpecSchema(BaseSchema):
    __model__ = PersistentVolumeClaimGenericSpec

    storage_class_name = fields.Str(
        data_key="storageClassName", allow_none=True, load_default=None
    )
    resources = fields.Nested(
        PersistentVolumeClaimResourcesSchema(),
        data_key="resources",
        allow_none=True,
        load_default=None,
    )
    volume_name = fields.Str(data_key="volumeName", allow_none=True, load_default=None)


class DiskSchema(BaseSchema):
    __model__ = Disk

    persistent_volume_claim = fields.Nested(
        PersistentVolumeClaimGenericSpecSchema(),
        data_key="persistentVolumeClaim",
        allow_none=True,
        load_default=None,
    )
    optimize = fields.Str(data_key="optimize", allow_none=True, load_default=None)

    @validates("optimize")
    def validate_optimize(self, value, **kwargs):
        """Validate the disk optimization mode."""
        if value is not None and value not in ("throughput", "disk"):
            raise ValidationError(
                f"Invalid optimize value: {value}. Must be one of ['throughput', 'disk']"
            )


class StorageSchema(BaseSchema):
    __model__ = Storage

    redis = fields.Nested(
        RedisSchema(), data_key="redis", allow_none=True, load_default=None
    )
    redis_cached = fields.Nested(
        RedisCachedSchema(),
        data_key="redis-cached",
        allow_none=True,
        load_default=None,
    )
    disk = fields.Nested(
        DiskSchema(), data_key="disk", allow_none=True, load_default=None
    )
