import jsonpickle
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from kubernetes_asyncio.client import ApiClient, Configuration


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def prune_nulls(data):
    """Recursively drop keys whose value is None.

    Kubernetes models serialize every unset field as None while objects read
    back from the API may omit them, so values are pruned before comparing.
    """
    if isinstance(data, dict):
        return {k: prune_nulls(v) for k, v in data.items() if v is not None}
    elif isinstance(data, list):
        return [prune_nulls(item) for item in data]
    else:
        return data


def sort_dict_keys(d):
    """Recursively sort dictionary keys and handle nested structures.

    Args:
        d: Data structure (dict, list, or primitive type)

    Returns:
        Sorted version of the data structure
    """
    if isinstance(d, dict):
        return {key: sort_dict_keys(value) for key, value in sorted(d.items())}
    elif isinstance(d, list):
        return [sort_dict_keys(item) for item in d]
    else:
        return d


def canonicalize_dict(data):
    """
    Returns a canonical JSON representation of a dictionary.

    The JSON string uses sorted keys, which ensures that the representation of
    the dictionary remains consistent even when key order varies.
    """
    return jsonpickle.dumps(sort_dict_keys(data), unpicklable=False)


def upsert_condition(conds: Optional[List[Dict]], newc: Dict) -> List[Dict]:
    """In-memory merge by .type. Only bump lastTransitionTime when status flips."""
    conds = list(conds or [])
    for i, c in enumerate(conds):
        if c.get("type") == newc["type"]:
            ltt = c.get("lastTransitionTime") or now()
            if c.get("status") != newc["status"]:
                ltt = now()
            merged = {**c, **newc, "lastTransitionTime": ltt}
            conds[i] = merged
            break
    else:
        conds.append({**newc, "lastTransitionTime": now()})
    return conds


def find_condition(conds: Optional[List[Any]], type_: str) -> Optional[Any]:
    """Return the condition of the given type from dicts or kubernetes models."""
    for c in conds or []:
        c_type = c.get("type") if isinstance(c, dict) else getattr(c, "type", None)
        if c_type == type_:
            return c
    return None


def deep_compare_dict(data1, data2) -> bool:
    """Compare two data structures deeply, ignoring key order.

    Supports comparison of:
    - Dictionaries
    - Lists of dictionaries
    - Nested combinations of both

    Args:
        data1: First data structure (dict, list, or nested combination)
        data2: Second data structure (dict, list, or nested combination)

    Returns:
        True if data structures are equivalent, False otherwise
    """
    if data1 is None and data2 is None:
        return True
    if data1 is None or data2 is None:
        return False

    if not isinstance(data1, type(data2)) and not isinstance(data2, type(data1)):
        return False

    try:
        json1 = jsonpickle.dumps(sort_dict_keys(data1), unpicklable=False)
        json2 = jsonpickle.dumps(sort_dict_keys(data2), unpicklable=False)
        return json1 == json2
    except (TypeError, ValueError):
        return data1 == data2


class ModelDecoder(ApiClient):
    """ApiClient reduced to its deserializer, it never opens a connection."""

    def __init__(self) -> None:
        self.configuration = Configuration.get_default_copy()
        self.client_side_validation = self.configuration.client_side_validation

    def decode(self, data: Any, klass: str) -> Any:
        return self._ApiClient__deserialize(data, klass)


def to_model(data: Optional[Dict], klass: str) -> Any:
    """Build a kubernetes model from its API (camelCase) representation.

    Keys of free-form maps such as ``matchLabels`` are kept verbatim, so the
    result compares equal to the object the API server hands back.

    Raises:
        ValueError: If ``data`` is missing a field the model requires.
    """
    if data is None:
        return None
    return ModelDecoder().decode(data, klass)
