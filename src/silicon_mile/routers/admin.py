"""Admin report pages: registrations table and CSV export"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from fastapi.templating import Jinja2Templates
from sqlmodel import Session

from silicon_mile.auth.dependencies import require_admin
from silicon_mile.auth.models import SessionUser
from silicon_mile.logging_config import get_logger
from silicon_mile.models.database import get_db
from silicon_mile.services.admin_report import (
    AdminReportService,
    export_csv,
    filter_registrations,
)
from silicon_mile.services.registration_service import RegistrationService

router = APIRouter(prefix="/admin", tags=["Admin"], include_in_schema=False)

template_dir = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=str(template_dir))

logger = get_logger(__name__)


@router.get("")
async def admin_dashboard(
    request: Request,
    q: Optional[str] = Query(default=None, description="Company name search"),
    admin: SessionUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All registrations, newest first, optionally filtered by company"""
    report = AdminReportService(RegistrationService(db))
    registrations = report.load(admin)
    filtered = filter_registrations(registrations, q)

    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "user": admin,
            "query": q or "",
            "registrations": filtered,
            "total": len(registrations),
        },
    )


@router.get("/export.csv")
async def export_registrations(
    q: Optional[str] = Query(default=None, description="Company name search"),
    admin: SessionUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Download the currently filtered registrations as CSV"""
    report = AdminReportService(RegistrationService(db))
    filtered = filter_registrations(report.load(admin), q)
    filename, content = export_csv(filtered)

    logger.info(f"Admin {admin.id} exported {len(filtered)} registrations")
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
