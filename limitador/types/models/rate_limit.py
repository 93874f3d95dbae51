from typing import Any, Dict, List, Optional
from limitador.types.base import BaseModel


class RateLimit(BaseModel):
    """A single limit definition understood by the limitador server."""

    conditions: List[str]
    max_value: int
    namespace: str
    seconds: int
    variables: List[str]
    name: Optional[str]

    def as_limit_record(self) -> Dict[str, Any]:
        """Return the record exactly as limitador reads it, omitting an unset name."""
        record = {
            "conditions": list(self.conditions or []),
            "max_value": self.max_value,
            "namespace": self.namespace,
            "seconds": self.seconds,
            "variables": list(self.variables or []),
        }
        if getattr(self, "name", None):
            record["name"] = self.name
        return record
