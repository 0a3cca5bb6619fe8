"""Operator session validation for admin endpoints.

The admin surface trusts Supabase Auth: a bearer access token is resolved to
the operator's user id, which scopes every menu read and mutation.
"""

import logging

from menu_display_service.services.exceptions import AuthenticationRequiredError
from menu_display_service.services.menu_gateway import MenuGateway

logger = logging.getLogger(__name__)


class SessionValidator:
    """Resolves access tokens to operator ids."""

    def __init__(self, gateway: MenuGateway) -> None:
        """Initialize validator.

        Args:
            gateway: Gateway exposing the auth lookup
        """
        self.gateway = gateway

    async def resolve_owner(self, access_token: str) -> str | None:
        """Resolve an access token to the operator id.

        Args:
            access_token: Bearer token from the request

        Returns:
            str | None: The operator id, or None if the session is not valid
        """
        try:
            return await self.gateway.get_user_id(access_token)
        except AuthenticationRequiredError as e:
            logger.info(f"Rejected admin session: {e}")
            return None
