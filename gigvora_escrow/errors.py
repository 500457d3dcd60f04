"""Exception taxonomy for the escrow client."""

from typing import Any, Optional


class EscrowError(Exception):
    """Base exception for escrow client errors."""

    pass


class MissingFreelancerContextError(EscrowError):
    """Raised when a mutation is invoked without a bound freelancer id.

    Raised before any network call is made.
    """

    def __init__(self, action: Optional[str] = None):
        message = "A freelancer id is required to manage escrow"
        if action:
            message = f"{message} ({action})"
        super().__init__(message)
        self.action = action


class EscrowTransportError(EscrowError):
    """Raised when the HTTP call fails or the server answers with an error status.

    The message is the server's own message when one was supplied.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


class EscrowResponseError(EscrowError):
    """Raised when a successful response body cannot be decoded."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


class OverviewDecodeError(EscrowResponseError):
    """Raised when an overview payload does not match the overview schema."""

    pass


class PayloadValidationError(EscrowError, ValueError):
    """Raised by request payload models when caller input is invalid."""

    pass
