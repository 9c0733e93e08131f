"""Tests for RegistrationService"""

from datetime import datetime, timedelta, timezone

import pytest

from silicon_mile.models.registration import (
    Registration,
    RegistrationStatus,
    TShirtSize,
)
from silicon_mile.services.registration_service import (
    ROW_POLICY_VIOLATION,
    RegistrationError,
)


class TestCreateRegistration:
    def test_creates_confirmed_row(
        self, registration_service, make_user, registration_data
    ):
        user = make_user()
        registration = registration_service.create_registration(
            user, registration_data(tshirt_size="XL")
        )

        assert registration.id is not None
        assert registration.user_id == user.id
        assert registration.status == RegistrationStatus.CONFIRMED
        assert registration.tshirt_size == TShirtSize.XL
        assert registration.created_at is not None

    def test_uses_given_registration_date(
        self, registration_service, make_user, registration_data
    ):
        registered_at = datetime(2026, 10, 7, 9, 30, tzinfo=timezone.utc)
        registration = registration_service.create_registration(
            make_user(), registration_data(), registration_date=registered_at
        )
        assert registration.registration_date.replace(
            tzinfo=None
        ) == registered_at.replace(tzinfo=None)

    def test_second_registration_rejected_with_store_message(
        self, registration_service, make_user, registration_data
    ):
        user = make_user()
        original = registration_service.create_registration(
            user, registration_data(company_name="Acme")
        )

        with pytest.raises(RegistrationError) as exc_info:
            registration_service.create_registration(
                user, registration_data(company_name="Globex")
            )

        assert "UNIQUE" in exc_info.value.message
        assert "registrations.user_id" in exc_info.value.message

        stored = registration_service.get_registration_for_user(user)
        assert stored.id == original.id
        assert stored.company_name == "Acme"

    def test_cannot_register_someone_else(
        self, registration_service, make_user, registration_data
    ):
        with pytest.raises(RegistrationError) as exc_info:
            registration_service.create_registration(
                make_user(), registration_data(), user_id="auth0|someone-else"
            )
        assert exc_info.value.message == ROW_POLICY_VIOLATION
        assert registration_service.list_registrations(make_user(role="admin")) == []


class TestVisibility:
    def test_user_sees_only_own_registration(
        self, registration_service, make_user, add_registration
    ):
        alice = make_user()
        bob = make_user()
        add_registration(alice.id, full_name="Alice Chen")
        add_registration(bob.id, full_name="Bob Stone")

        assert registration_service.get_registration_for_user(alice).full_name == (
            "Alice Chen"
        )
        assert registration_service.get_registration_for_user(alice, bob.id) is None
        assert [r.user_id for r in registration_service.list_registrations(alice)] == [
            alice.id
        ]

    def test_admin_sees_everyone_newest_first(
        self, registration_service, make_user, add_registration
    ):
        now = datetime.now(timezone.utc)
        add_registration("auth0|old", registered_at=now - timedelta(days=2))
        add_registration("auth0|new", registered_at=now)
        add_registration("auth0|mid", registered_at=now - timedelta(days=1))

        admin = make_user(role="admin")
        rows = registration_service.list_registrations(admin)

        assert [r.user_id for r in rows] == ["auth0|new", "auth0|mid", "auth0|old"]
        assert registration_service.get_registration_for_user(admin, "auth0|mid")

    def test_unregistered_user_has_no_registration(
        self, registration_service, make_user
    ):
        assert registration_service.get_registration_for_user(make_user()) is None


class TestSchema:
    def test_registration_date_index_is_newest_first(self):
        index = next(
            i
            for i in Registration.__table__.indexes
            if i.name == "ix_registrations_registration_date"
        )
        assert [str(e) for e in index.expressions] == ["registration_date DESC"]
