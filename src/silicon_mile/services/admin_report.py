"""Admin report over all registrations: load, company search and CSV export"""

import logging
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from silicon_mile.auth.models import SessionUser
from silicon_mile.models.registration import Registration
from silicon_mile.services.registration_service import RegistrationService

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Full Name",
    "Corporate Email",
    "Employee ID",
    "Company Name",
    "T-shirt Size",
    "Emergency Contact",
    "Emergency Phone",
    "Registration Date",
    "Status",
]


def filter_registrations(
    registrations: Sequence[Registration], query: Optional[str]
) -> List[Registration]:
    """
    Case-insensitive substring match on company name, order preserved.

    A blank query returns every registration.
    """
    if not query or not query.strip():
        return list(registrations)
    needle = query.casefold()
    return [r for r in registrations if needle in r.company_name.casefold()]


def _quoted(value: str) -> str:
    # RFC 4180: embedded quotes are doubled
    return '"' + str(value).replace('"', '""') + '"'


def _short_date(value: datetime) -> str:
    # en-US default short date, e.g. 10/7/2026
    return f"{value.month}/{value.day}/{value.year}"


def _csv_row(registration: Registration) -> str:
    return ",".join(
        [
            _quoted(registration.full_name),
            _quoted(registration.corporate_email),
            _quoted(registration.employee_id),
            _quoted(registration.company_name),
            registration.tshirt_size.value,
            _quoted(registration.emergency_contact),
            _quoted(registration.emergency_phone),
            _short_date(registration.registration_date),
            registration.status.value,
        ]
    )


def export_filename(exported_on: date) -> str:
    return f"registrations_{exported_on.isoformat()}.csv"


def export_csv(
    registrations: Iterable[Registration], exported_on: Optional[date] = None
) -> Tuple[str, str]:
    """
    Serialize registrations (normally the filtered view) to CSV.

    Args:
        registrations: Rows to export, in display order
        exported_on: Export date for the filename, defaults to today (UTC)

    Returns:
        Tuple of (filename, csv text)
    """
    exported_on = exported_on or datetime.now(timezone.utc).date()
    lines = [",".join(CSV_HEADERS)]
    lines.extend(_csv_row(r) for r in registrations)
    return export_filename(exported_on), "\n".join(lines)


class AdminReportService:
    """Read path for the admin page"""

    def __init__(self, registration_service: RegistrationService):
        self.registration_service = registration_service

    def load(self, caller: SessionUser) -> List[Registration]:
        """
        Fetch every registration visible to the caller, newest first.

        A failed fetch is logged and reported as no registrations, so the
        admin page still renders.
        """
        try:
            return self.registration_service.list_registrations(caller)
        except Exception as e:
            logger.error(f"Error fetching registrations for admin {caller.id}: {e}")
            self.registration_service.db.rollback()
            return []
