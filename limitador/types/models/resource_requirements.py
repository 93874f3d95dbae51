from typing import Dict, Optional
from limitador.types.base import BaseModel


class ResourceRequirements(BaseModel):
    """Container compute resources"""

    requests: Optional[Dict[str, str]]
    limits: Optional[Dict[str, str]]
