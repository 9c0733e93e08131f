"""Identity gateway: password sign-in/sign-up against Auth0 and session handling"""

import enum
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, MutableMapping, Optional

import httpx
from authlib.jose.errors import InvalidTokenError
from pydantic import ValidationError

from silicon_mile.auth.jwt_utils import JWTUtils, jwt_utils
from silicon_mile.auth.models import SessionUser
from silicon_mile.config import config
from silicon_mile.logging_config import get_logger
from silicon_mile.services.auth0_service import Auth0Service, auth0_service

logger = get_logger(__name__)

SESSION_USER_KEY = "user"

PASSWORD_REALM_GRANT = "http://auth0.com/oauth/grant-type/password-realm"


class SessionEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


SessionListener = Callable[[SessionEvent, Optional[SessionUser]], None]


class IdentityError(Exception):
    """Sign-in or sign-up rejected by the identity provider"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class IdentityGateway(ABC):
    """
    Session handling shared by every identity provider.

    The session is the request's signed cookie mapping; it is passed in
    explicitly so nothing here holds per-user state between requests.
    Providers implement sign_up and sign_in_with_password.
    """

    def __init__(self):
        self._listeners: List[SessionListener] = []

    def get_current_user(
        self, session: MutableMapping[str, Any]
    ) -> Optional[SessionUser]:
        """Resolve the signed-in user, or None if the session holds no valid user"""
        raw_user = session.get(SESSION_USER_KEY)
        if not isinstance(raw_user, dict):
            return None
        try:
            return SessionUser.model_validate(raw_user)
        except ValidationError as e:
            logger.warning(f"Discarding malformed session user: {e}")
            return None

    def open_session(
        self, session: MutableMapping[str, Any], user: SessionUser
    ) -> None:
        session.clear()
        session[SESSION_USER_KEY] = user.model_dump(mode="json")
        self._notify(SessionEvent.SIGNED_IN, user)

    def sign_out(self, session: MutableMapping[str, Any]) -> None:
        user = self.get_current_user(session)
        session.clear()
        self._notify(SessionEvent.SIGNED_OUT, user)

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        """
        Register a listener for sign-in and sign-out events.

        Returns:
            A callable that unregisters the listener
        """
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: SessionEvent, user: Optional[SessionUser]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, user)
            except Exception:
                logger.exception(f"Session listener failed for {event.value}")

    @abstractmethod
    async def sign_up(
        self, email: str, password: str, metadata: Dict[str, Any]
    ) -> SessionUser:
        """Create an account and return the signed-in user"""

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> SessionUser:
        """Verify credentials and return the signed-in user"""


def _auth0_error_message(response: httpx.Response, fallback: str) -> str:
    """Pull the human-readable message out of an Auth0 error body"""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    for key in ("error_description", "description", "message"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return fallback


class Auth0IdentityGateway(IdentityGateway):
    """Auth0 database-connection users via the Authentication API"""

    def __init__(
        self,
        jwt: JWTUtils = jwt_utils,
        management: Auth0Service = auth0_service,
    ):
        super().__init__()
        self.jwt = jwt
        self.management = management
        self.auth0_domain = config.get("auth0_domain")
        self.client_id = config.get("auth0_client_id")
        self.client_secret = config.get("auth0_client_secret")
        self.connection = config.get("auth0_connection")

    async def sign_up(
        self, email: str, password: str, metadata: Dict[str, Any]
    ) -> SessionUser:
        """
        Create a database-connection user and sign them in.

        Args:
            email: Account email
            password: Account password
            metadata: user_metadata to store (full_name, company)

        Returns:
            The newly signed-in user

        Raises:
            IdentityError: If Auth0 rejects the signup or the follow-up sign-in
        """
        payload = {
            "client_id": self.client_id,
            "email": email,
            "password": password,
            "connection": self.connection,
            "user_metadata": {k: str(v) for k, v in metadata.items()},
        }
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"https://{self.auth0_domain}/dbconnections/signup",
                    json=payload,
                    timeout=10.0,
                )
        except httpx.RequestError as e:
            logger.error(f"Auth0 signup request failed: {e}")
            raise IdentityError("An error occurred during signup")

        if response.status_code >= 400:
            message = _auth0_error_message(response, "An error occurred during signup")
            logger.warning(f"Auth0 rejected signup for {email}: {message}")
            raise IdentityError(message)

        logger.info(f"Created Auth0 user for {email}")
        return await self.sign_in_with_password(email, password)

    async def sign_in_with_password(self, email: str, password: str) -> SessionUser:
        """
        Exchange email and password for a verified Auth0 identity.

        Raises:
            IdentityError: On wrong credentials, an invalid ID token or an unreachable provider
        """
        payload = {
            "grant_type": PASSWORD_REALM_GRANT,
            "realm": self.connection,
            "username": email,
            "password": password,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": "openid profile email",
        }
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"https://{self.auth0_domain}/oauth/token",
                    json=payload,
                    timeout=10.0,
                )
        except httpx.RequestError as e:
            logger.error(f"Auth0 token request failed: {e}")
            raise IdentityError("Invalid email or password")

        if response.status_code >= 400:
            message = _auth0_error_message(response, "Invalid email or password")
            logger.info(f"Auth0 rejected sign-in for {email}: {message}")
            raise IdentityError(message)

        id_token = response.json().get("id_token")
        if not id_token:
            raise IdentityError("Identity provider returned no ID token")

        try:
            claims = await self.jwt.verify_id_token(id_token)
        except InvalidTokenError as e:
            raise IdentityError(f"Sign-in failed: {e}")

        user_id = claims["sub"]
        try:
            metadata = await self.management.get_user_metadata(user_id)
        except RuntimeError as e:
            raise IdentityError(f"Unable to load account details: {e}")

        return SessionUser.from_identity(
            user_id, claims.get("email") or email, metadata
        )


# Global identity gateway instance
identity_gateway = Auth0IdentityGateway()
