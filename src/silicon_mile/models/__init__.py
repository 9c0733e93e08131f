"""Database models for Silicon Mile registration"""

from silicon_mile.models.registration import (
    Registration,
    RegistrationStatus,
    TShirtSize,
)

__all__ = [
    "Registration",
    "RegistrationStatus",
    "TShirtSize",
]
