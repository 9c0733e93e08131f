"""ID token verification for Auth0 password sign-in using authlib"""

from typing import Dict

import httpx
from aiocache import Cache, cached
from authlib.jose import JoseError, JsonWebToken
from authlib.jose.errors import InvalidTokenError

from silicon_mile.config import config
from silicon_mile.logging_config import get_logger

logger = get_logger(__name__)


class JWTUtils:
    """Verifies Auth0-issued ID tokens with JWKS caching"""

    def __init__(self):
        self.jwt = JsonWebToken(["RS256"])
        self.auth0_domain = config.get("auth0_domain")
        self.client_id = config.get("auth0_client_id")
        self.jwks_url = f"https://{self.auth0_domain}/.well-known/jwks.json"
        self.expected_issuer = f"https://{self.auth0_domain}/"

    @cached(ttl=3600, cache=Cache.MEMORY)
    async def _fetch_jwks(self) -> Dict:
        """
        Fetch JWKS from Auth0 well-known endpoint (cached)

        Returns:
            JWKS dictionary from Auth0
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(self.jwks_url, timeout=10.0)
                response.raise_for_status()
                jwks_data = response.json()

                logger.info(f"Successfully fetched JWKS from {self.jwks_url}")
                return jwks_data

        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch JWKS from {self.jwks_url}: {e}")
            raise InvalidTokenError(f"Unable to fetch JWKS: {e}")

    async def verify_id_token(self, token: str) -> Dict:
        """
        Verify and decode an Auth0 ID token

        Args:
            token: ID token returned by the Auth0 token endpoint

        Returns:
            Decoded and validated claims

        Raises:
            InvalidTokenError: If the token is invalid, expired, or not meant for this app
        """
        if not self.auth0_domain:
            raise InvalidTokenError("AUTH0_DOMAIN is not configured")

        jwks = await self._fetch_jwks()
        try:
            claims = self.jwt.decode(
                token,
                jwks,
                claims_options={
                    "iss": {"essential": True, "value": self.expected_issuer},
                    "aud": {"essential": True, "value": self.client_id},
                    "sub": {"essential": True},
                },
            )
            claims.validate()
        except JoseError as e:
            logger.error(f"ID token validation failed: {e}")
            raise InvalidTokenError(f"Token validation failed: {str(e)}")

        return dict(claims)


# Global JWT utilities instance
jwt_utils = JWTUtils()
