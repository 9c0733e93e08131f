"""SQLModel Registration model"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, Index, text
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TShirtSize(str, enum.Enum):
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"


class RegistrationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Registration(SQLModel, table=True):
    """One event registration per Auth0 user"""

    __tablename__ = "registrations"
    __table_args__ = (
        Index("ix_registrations_registration_date", text("registration_date DESC")),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(unique=True, index=True)  # Auth0 user ID as string
    full_name: str
    corporate_email: str
    employee_id: str
    company_name: str
    tshirt_size: TShirtSize = Field(
        sa_column=Column(
            SAEnum(
                TShirtSize,
                name="tshirt_size",
                native_enum=True,
                create_constraint=True,
                values_callable=lambda enum: [e.value for e in enum],
            ),
            nullable=False,
        ),
    )
    emergency_contact: str
    emergency_phone: str
    registration_date: datetime = Field(
        default_factory=_utcnow, sa_type=DateTime(timezone=True)
    )
    status: RegistrationStatus = Field(
        default=RegistrationStatus.CONFIRMED,
        sa_column=Column(
            SAEnum(
                RegistrationStatus,
                name="registration_status",
                native_enum=True,
                create_constraint=True,
                values_callable=lambda enum: [e.value for e in enum],
            ),
            nullable=False,
            index=True,
            server_default=RegistrationStatus.CONFIRMED.value,
        ),
    )
    created_at: Optional[datetime] = Field(
        default_factory=_utcnow, sa_type=DateTime(timezone=True)
    )
    # The database trigger refreshes this too; onupdate covers ORM writes
    updated_at: Optional[datetime] = Field(
        default_factory=_utcnow,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"onupdate": _utcnow},
    )
