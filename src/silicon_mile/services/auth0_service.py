"""Auth0 Management API service for fetching user metadata"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from aiocache import Cache, cached

from silicon_mile.config import config

logger = logging.getLogger(__name__)


class Auth0Service:
    """Service for interacting with Auth0 Management API"""

    def __init__(self):
        self.auth0_domain = config.get("auth0_domain")
        self.client_id = config.get("auth0_management_client_id")
        self.client_secret = config.get("auth0_management_client_secret")

        self.is_configured = bool(
            self.auth0_domain and self.client_id and self.client_secret
        )

        # Lock for thread-safe token refresh operations
        self._token_refresh_lock = asyncio.Lock()

        if self.is_configured:
            self.token_url = f"https://{self.auth0_domain}/oauth/token"
            self.users_api_url = f"https://{self.auth0_domain}/api/v2/users"
        else:
            logger.warning(
                "Auth0 Management API credentials not configured. "
                "User metadata (name, company, role) will not be loaded at sign-in."
            )

    @cached(ttl=43200, cache=Cache.MEMORY)
    async def _get_management_token(self) -> str:
        """
        Get Auth0 Management API token (cached for half a day)

        Returns:
            Management API access token

        Raises:
            RuntimeError: If token request fails
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.token_url,
                    json={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "audience": f"https://{self.auth0_domain}/api/v2/",
                        "grant_type": "client_credentials",
                    },
                    timeout=10.0,
                )
                response.raise_for_status()
                token_data = response.json()

                logger.info("Successfully obtained Auth0 Management API token")
                return token_data["access_token"]

        except httpx.HTTPError as e:
            logger.error(f"Failed to get Auth0 management token: {e}")
            raise RuntimeError(f"Auth0 token request failed: {e}")

    async def _clear_management_token_cache(self) -> None:
        """Clear the cached management token to force a fresh token fetch"""
        await self._get_management_token.cache.clear()
        logger.info("Cleared Auth0 management token cache")

    async def get_user_metadata(self, user_id: str) -> Dict[str, Any]:
        """
        Get a user's metadata map from Auth0

        Args:
            user_id: Auth0 user ID (e.g., "auth0|123456")

        Returns:
            The user's user_metadata, empty when not configured, not found or unset

        Raises:
            RuntimeError: If Auth0 cannot be reached or rejects the request
        """
        if not self.is_configured:
            return {}

        try:
            profile = await self._fetch_user_with_retry(user_id)
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch user {user_id} from Auth0: {e}")
            raise RuntimeError(f"Auth0 user fetch failed: {e}")

        if profile is None:
            return {}
        metadata = profile.get("user_metadata")
        return metadata if isinstance(metadata, dict) else {}

    async def _fetch_user_with_retry(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the user profile, refreshing the management token once on a 401.

        Args:
            user_id: Auth0 user ID

        Returns:
            User profile if found, None if not found
        """
        try:
            return await self._make_user_api_call(user_id)
        except httpx.HTTPStatusError as e:
            if e.response.status_code != 401:
                raise

        # 401 - token expired or revoked; refresh under the lock
        async with self._token_refresh_lock:
            logger.info(f"Refreshing management token after 401 for user {user_id}")
            await self._clear_management_token_cache()
            return await self._make_user_api_call(user_id)

    async def _make_user_api_call(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Make the actual API call to fetch the user profile.

        Raises:
            httpx.HTTPStatusError: For HTTP errors (including 401)
        """
        token = await self._get_management_token()

        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.users_api_url}/{user_id}",
                headers={"Authorization": f"Bearer {token}"},
                params={"fields": "email,user_metadata"},
                timeout=10.0,
            )

            if response.status_code == 404:
                logger.warning(f"User {user_id} not found in Auth0")
                return None

            response.raise_for_status()
            return response.json()


# Global Auth0 service instance
auth0_service = Auth0Service()
