"""Typed failures raised by the menu gateway and editing session.

Callers distinguish failure kinds by exception type only. No error codes are
attached.
"""


class MenuServiceError(Exception):
    """Base class for menu display service failures."""


class MenuGatewayError(MenuServiceError):
    """A remote read or mutation failed (network or data store error)."""


class MenuNotFoundError(MenuGatewayError):
    """No restaurant matches the requested slug or owner."""


class AuthenticationRequiredError(MenuServiceError):
    """No valid operator session is available."""


class MenuValidationError(MenuServiceError):
    """Input was rejected before any remote call was made."""
