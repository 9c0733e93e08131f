"""Access control for protected pages: redirect-or-allow per request"""

from dataclasses import dataclass
from typing import Any, MutableMapping, Optional

from silicon_mile.auth.models import Role, SessionUser
from silicon_mile.services.identity_gateway import IdentityGateway

LOGIN_ROUTE = "/login"
DASHBOARD_ROUTE = "/dashboard"


@dataclass(frozen=True)
class AccessDecision:
    user: Optional[SessionUser] = None
    redirect_to: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None


def authorize(
    gateway: IdentityGateway,
    session: MutableMapping[str, Any],
    required_role: Optional[Role] = None,
) -> AccessDecision:
    """
    Decide whether a protected page renders or redirects.

    Only reads the session. A missing or unrecognised role never raises; it
    is simply not admin.

    Args:
        gateway: Identity gateway used to resolve the session user
        session: The request's session mapping
        required_role: Role.ADMIN for admin-only pages, None for any signed-in user

    Returns:
        AccessDecision with the user when allowed, or the route to redirect to
    """
    user = gateway.get_current_user(session)
    if user is None:
        return AccessDecision(redirect_to=LOGIN_ROUTE)

    if required_role == Role.ADMIN and user.role != Role.ADMIN:
        return AccessDecision(user=user, redirect_to=DASHBOARD_ROUTE)

    return AccessDecision(user=user)
