class LimitadorAPIError(Exception):
    """The limitador HTTP API rejected a call."""

    def __init__(self, message: str, status: int = None) -> None:
        self.status = status
        super().__init__(message)


class NotFoundError(LimitadorAPIError):
    """Resource not found"""
    pass


class AuthenticationError(LimitadorAPIError):
    """Error when trying to connect to the limitador API."""
    pass


class InvalidLimitError(LimitadorAPIError):
    """The limit was refused by the limitador server."""
    pass
