"""Registration service for the registrations table"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from silicon_mile.auth.models import SessionUser
from silicon_mile.models.registration import Registration, RegistrationStatus
from silicon_mile.models.registration_form import RegistrationData

logger = logging.getLogger(__name__)

ROW_POLICY_VIOLATION = (
    'new row violates row-level security policy for table "registrations"'
)


class RegistrationError(Exception):
    """The store refused a registration write"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _store_message(error: SQLAlchemyError) -> str:
    """First line of the driver's message, e.g. the unique constraint violation"""
    original = getattr(error, "orig", None) or error
    lines = str(original).strip().splitlines()
    return lines[0] if lines else "Registration could not be saved"


class RegistrationService:
    """
    Reads and writes registrations on behalf of a signed-in caller.

    Every query is scoped to what the caller may see: their own row, or every
    row for an admin. On PostgreSQL the same rule is enforced again by the
    table's row-level security policies, which read the caller from the
    transaction-local settings app.user_id and app.user_role.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def _apply_row_policy(self, caller: SessionUser) -> None:
        if self.db.get_bind().dialect.name != "postgresql":
            return
        self.db.exec(
            text(
                "SELECT set_config('app.user_id', :user_id, true), "
                "set_config('app.user_role', :role, true)"
            ).bindparams(user_id=caller.id, role=caller.role.value)
        )

    def _visible_to(self, statement, caller: SessionUser):
        if caller.is_admin:
            return statement
        return statement.where(Registration.user_id == caller.id)

    def create_registration(
        self,
        caller: SessionUser,
        data: RegistrationData,
        registration_date: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> Registration:
        """
        Insert the caller's registration.

        Args:
            caller: Signed-in user submitting the registration
            data: Validated wizard fields
            registration_date: Submission time, defaults to now (UTC)
            user_id: Owner of the row, defaults to the caller; only the caller may own it

        Returns:
            Registration: The created registration, status confirmed

        Raises:
            RegistrationError: With the store's message, e.g. when the user is already registered
        """
        owner_id = user_id or caller.id
        if owner_id != caller.id:
            logger.warning(f"User {caller.id} tried to register on behalf of {owner_id}")
            raise RegistrationError(ROW_POLICY_VIOLATION)

        registration = Registration(
            user_id=owner_id,
            full_name=data.full_name,
            corporate_email=data.corporate_email,
            employee_id=data.employee_id,
            company_name=data.company_name,
            tshirt_size=data.tshirt_size,
            emergency_contact=data.emergency_contact,
            emergency_phone=data.emergency_phone,
            registration_date=registration_date or datetime.now(timezone.utc),
            status=RegistrationStatus.CONFIRMED,
        )

        try:
            self._apply_row_policy(caller)
            self.db.add(registration)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            message = _store_message(e)
            logger.info(f"Registration rejected for user {owner_id}: {message}")
            raise RegistrationError(message)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating registration for user {owner_id}: {e}")
            raise RegistrationError(_store_message(e))

        # The commit ended the transaction that carried the row policy settings
        self._apply_row_policy(caller)
        self.db.refresh(registration)
        logger.info(f"Created registration {registration.id} for user {owner_id}")
        return registration

    def get_registration_for_user(
        self, caller: SessionUser, user_id: Optional[str] = None
    ) -> Optional[Registration]:
        """Get a user's registration (the caller's own by default)"""
        self._apply_row_policy(caller)
        stmt = select(Registration).where(
            Registration.user_id == (user_id or caller.id)
        )
        return self.db.exec(self._visible_to(stmt, caller)).first()

    def list_registrations(self, caller: SessionUser) -> list[Registration]:
        """Get every registration visible to the caller, newest first"""
        self._apply_row_policy(caller)
        stmt = select(Registration).order_by(Registration.registration_date.desc())
        return list(self.db.exec(self._visible_to(stmt, caller)).all())
