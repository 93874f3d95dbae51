import datetime
import kopf
from limitador.resources import Limitador


# Liveness probe
@kopf.on.probe(id="now")
def get_current_timestamp(**kwargs):
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@kopf.on.probe(id="kinds")
def get_registered_kinds(memo: kopf.Memo, **kwargs):
    """Kinds the operator can write, empty until startup completed."""
    return sorted(getattr(memo, "registry", None) or {})


@kopf.on.probe(id="operator")
def get_operator_name(**kwargs):
    return Limitador.LIMITADOR_OPERATOR_NAME
