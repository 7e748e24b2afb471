# blogdesk/utils/security.py
import re
from typing import Any, Awaitable, Callable, List, Optional, Union
from pydantic import BaseModel
from ..models.user import Identity, Role

# Supplies the signed-in user for the current request
IdentityProvider = Callable[[], Awaitable[Optional[Identity]]]

# Lowest to highest
ROLE_HIERARCHY: List[Role] = [Role.EDITOR, Role.ADMIN]

SIGN_IN_ROUTE = "/admin/sign-in"
ADMIN_ROUTE_PATTERNS = [
    re.compile(r"^/admin(/.*)?$"),
]

class AuthenticationError(Exception):
    """No signed-in user"""

class AuthorizationError(PermissionError):
    """Signed-in user lacks the required role"""

class RouteAccess(BaseModel):
    requires_auth: bool
    should_redirect: bool
    redirect_to: Optional[str] = None

def normalize_role(value: Any) -> Optional[Role]:
    """Map a metadata value such as 'ADMIN' onto a Role"""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value.lower())
    except ValueError:
        return None

def _role_level(role: Union[Role, str, None]) -> int:
    normalized = normalize_role(role)
    if normalized is None:
        return -1
    return ROLE_HIERARCHY.index(normalized)

def has_minimum_role(user_role: Union[Role, str, None], required: Union[Role, str]) -> bool:
    """True when user_role ranks at or above required; no role never passes"""
    user_level = _role_level(user_role)
    required_level = _role_level(required)
    if user_level < 0 or required_level < 0:
        return False
    return user_level >= required_level

def get_effective_role(identity: Optional[Identity], admin_email: Optional[str] = None) -> Optional[Role]:
    """Role of an identity, honouring the configured admin email override"""
    if identity is None:
        return None

    if admin_email and admin_email in identity.emails:
        return Role.ADMIN

    return normalize_role(identity.public_metadata.get("role"))

def is_admin_route(pathname: str) -> bool:
    if not pathname or not isinstance(pathname, str):
        return False
    return any(pattern.match(pathname) for pattern in ADMIN_ROUTE_PATTERNS)

def is_sign_in_route(pathname: str) -> bool:
    if not pathname or not isinstance(pathname, str):
        return False
    return pathname.startswith(SIGN_IN_ROUTE)

def get_auth_redirect_url(pathname: str, is_authenticated: bool) -> Optional[str]:
    """Where an unauthenticated request should be sent, if anywhere"""
    if is_authenticated:
        return None
    if not is_admin_route(pathname) or is_sign_in_route(pathname):
        return None
    return SIGN_IN_ROUTE

def determine_route_access(pathname: str, is_authenticated: bool) -> RouteAccess:
    # sign-in lives under /admin but is public
    if is_sign_in_route(pathname):
        return RouteAccess(requires_auth=False, should_redirect=False)

    if not is_admin_route(pathname):
        return RouteAccess(requires_auth=False, should_redirect=False)

    if not is_authenticated:
        return RouteAccess(requires_auth=True, should_redirect=True, redirect_to=SIGN_IN_ROUTE)

    return RouteAccess(requires_auth=True, should_redirect=False)
