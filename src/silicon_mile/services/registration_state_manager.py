import json
import logging
from typing import Any, Dict

import redis

from silicon_mile.models.registration_form import REGISTRATION_FIELDS, WizardStep

logger = logging.getLogger(__name__)


class RegistrationStateManager:
    """
    Manages in-progress registration wizards in Redis with automatic TTL.

    Stores the current step and the values entered so far, enabling:
    - Moving back and forth between steps without losing input
    - Automatic expiry of abandoned wizards (30-minute sliding window)
    - A short-lived per-user marker while a submission is being written
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_seconds: int = 1800,
        submit_lock_seconds: int = 30,
    ):
        """
        Initialize RegistrationStateManager with Redis backend.

        Args:
            redis_client: Redis client instance (from dependency injection)
            ttl_seconds: Time-to-live of wizard state (default: 1800 = 30 minutes)
            submit_lock_seconds: Upper bound on how long a submit marker can outlive a crashed request
        """
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds
        self.submit_lock_seconds = submit_lock_seconds

    def _state_key(self, user_id: str) -> str:
        return f"registration_wizard:{user_id}"

    def _submit_key(self, user_id: str) -> str:
        return f"registration_submit:{user_id}"

    def _empty_state_template(self) -> Dict[str, Any]:
        return {
            "step": WizardStep.PERSONAL_INFO.value,
            "values": {field: "" for field in REGISTRATION_FIELDS},
        }

    def get_state(self, user_id: str) -> Dict[str, Any]:
        """
        Retrieve wizard state for a user.

        Returns:
            State dictionary (empty template if not found or corrupted)

        Raises:
            redis.RedisError: If Redis operation fails
        """
        key = self._state_key(user_id)
        try:
            state_json = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis error getting wizard state for user {user_id}: {e}")
            raise

        if not state_json:
            return self._empty_state_template()

        try:
            state = json.loads(state_json)
            WizardStep(state["step"])
            if not isinstance(state["values"], dict):
                raise TypeError("values is not a mapping")
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.error(f"Corrupted wizard state for user {user_id}, starting over")
            return self._empty_state_template()

        merged = self._empty_state_template()
        merged["step"] = state["step"]
        merged["values"].update(
            {k: v for k, v in state["values"].items() if k in REGISTRATION_FIELDS}
        )
        return merged

    def save_state(self, user_id: str, state: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist wizard state and refresh its TTL.

        Raises:
            redis.RedisError: If Redis operation fails
        """
        key = self._state_key(user_id)
        try:
            self.redis_client.setex(key, self.ttl_seconds, json.dumps(state))
        except redis.RedisError as e:
            logger.error(f"Redis error saving wizard state for user {user_id}: {e}")
            raise
        return state

    def clear_state(self, user_id: str) -> None:
        """
        Clear wizard state for a user.

        Raises:
            redis.RedisError: If Redis operation fails
        """
        try:
            self.redis_client.delete(self._state_key(user_id))
            logger.info(f"Cleared registration wizard for user {user_id}")
        except redis.RedisError as e:
            logger.error(f"Redis error clearing wizard state for user {user_id}: {e}")
            raise

    def acquire_submit_lock(self, user_id: str) -> bool:
        """Mark a submission as in flight; False if one already is"""
        acquired = self.redis_client.set(
            self._submit_key(user_id), "1", nx=True, ex=self.submit_lock_seconds
        )
        return bool(acquired)

    def release_submit_lock(self, user_id: str) -> None:
        self.redis_client.delete(self._submit_key(user_id))
