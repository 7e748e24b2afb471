# blogdesk/services/access_service.py
import logging
from typing import Optional
from ..config import Config
from ..models.user import AdminUser, Identity, Role
from ..utils.security import (
    AuthenticationError,
    AuthorizationError,
    IdentityProvider,
    get_effective_role,
    has_minimum_role
)

class AccessService:
    """Role checks for dashboard operations

    The identity provider is injected so the checks stay independent of
    any particular auth SDK.
    """

    def __init__(self, identity_provider: IdentityProvider, admin_email: Optional[str] = None):
        self.identity_provider = identity_provider
        self.admin_email = admin_email if admin_email is not None else Config.ADMIN_EMAIL
        self.logger = logging.getLogger(__name__)

    async def get_current_role(self) -> Optional[Role]:
        identity = await self.identity_provider()
        return get_effective_role(identity, self.admin_email)

    async def is_admin(self) -> bool:
        return await self.get_current_role() == Role.ADMIN

    async def is_editor(self) -> bool:
        """Editor or anything above it"""
        return has_minimum_role(await self.get_current_role(), Role.EDITOR)

    async def require_role(self, required: Role) -> AdminUser:
        """Return the current user or raise when the role is insufficient"""
        identity = await self.identity_provider()
        if identity is None:
            raise AuthenticationError("Authentication required")

        role = get_effective_role(identity, self.admin_email)
        if not has_minimum_role(role, required):
            self.logger.warning(
                f"Access denied for user {identity.id}: role {role.value if role else None}, "
                f"required {required.value}"
            )
            raise AuthorizationError(f"{required.value.capitalize()} role required")

        return self._to_admin_user(identity, role)

    async def require_admin(self) -> AdminUser:
        return await self.require_role(Role.ADMIN)

    async def require_editor(self) -> AdminUser:
        return await self.require_role(Role.EDITOR)

    @staticmethod
    def _to_admin_user(identity: Identity, role: Role) -> AdminUser:
        return AdminUser(
            id=identity.id,
            email=identity.primary_email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            image_url=identity.image_url,
            role=role
        )
