from .client import LimitadorClient
from .error import LimitadorAPIError, NotFoundError, AuthenticationError, InvalidLimitError

__all__ = [
    "LimitadorClient",
    "LimitadorAPIError",
    "NotFoundError",
    "AuthenticationError",
    "InvalidLimitError",
]
