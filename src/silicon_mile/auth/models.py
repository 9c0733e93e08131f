"""Authentication models for the session-backed web flow"""

import enum
from typing import Any, Optional

from pydantic import BaseModel, field_validator


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class SessionUser(BaseModel):
    """The signed-in user as stored in the session cookie"""

    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    company: Optional[str] = None
    role: Role = Role.USER

    @field_validator("role", mode="before")
    @classmethod
    def _default_role(cls, value: Any) -> Role:
        # Anything but exactly "admin" (absent, null, " Admin", 1, ...) is a plain user
        if isinstance(value, str) and value == Role.ADMIN.value:
            return Role.ADMIN
        return Role.USER

    @field_validator("full_name", "company", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value.strip() else None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def first_name(self) -> str:
        return self.full_name.split(" ")[0] if self.full_name else "there"

    @classmethod
    def from_identity(
        cls, user_id: str, email: Optional[str], metadata: Any
    ) -> "SessionUser":
        """
        Build a session user from an identity provider record.

        Args:
            user_id: Identity provider user ID (Auth0 "sub")
            email: User's email address
            metadata: Free-form user metadata; only full_name, company and role are read

        Returns:
            SessionUser with the role validated and defaulted
        """
        if not isinstance(metadata, dict):
            metadata = {}
        return cls(
            id=user_id,
            email=email,
            full_name=metadata.get("full_name"),
            company=metadata.get("company"),
            role=metadata.get("role"),
        )
