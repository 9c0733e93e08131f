"""Authentication dependencies for FastAPI"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from silicon_mile.auth.gate import authorize
from silicon_mile.auth.models import Role, SessionUser
from silicon_mile.logging_config import get_logger
from silicon_mile.services.identity_gateway import IdentityGateway, identity_gateway

logger = get_logger(__name__)


def get_identity_gateway() -> IdentityGateway:
    """Get the identity gateway"""
    return identity_gateway


def _redirect(location: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_303_SEE_OTHER, headers={"Location": location}
    )


def _require(request: Request, gateway: IdentityGateway, role: Optional[Role]):
    decision = authorize(gateway, request.session, required_role=role)
    if not decision.allowed:
        logger.info(
            f"Redirecting {request.url.path} to {decision.redirect_to} "
            f"(user={decision.user.id if decision.user else None})"
        )
        raise _redirect(decision.redirect_to)
    return decision.user


def require_user(
    request: Request,
    gateway: IdentityGateway = Depends(get_identity_gateway),
) -> SessionUser:
    """
    Require a signed-in user (session web flow).

    Raises:
        HTTPException: 303 redirect to /login if not authenticated
    """
    return _require(request, gateway, None)


def require_admin(
    request: Request,
    gateway: IdentityGateway = Depends(get_identity_gateway),
) -> SessionUser:
    """
    Require a signed-in admin.

    Raises:
        HTTPException: 303 redirect to /login if not authenticated, /dashboard if not admin
    """
    return _require(request, gateway, Role.ADMIN)


def get_session_user(
    request: Request,
    gateway: IdentityGateway = Depends(get_identity_gateway),
) -> Optional[SessionUser]:
    """Signed-in user if any, for public pages"""
    return gateway.get_current_user(request.session)
