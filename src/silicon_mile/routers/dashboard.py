"""Participant dashboard: registration status or the registration wizard"""

from pathlib import Path
from typing import Dict, Optional

import redis
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlmodel import Session

from silicon_mile.auth.dependencies import require_user
from silicon_mile.auth.models import SessionUser
from silicon_mile.logging_config import get_logger
from silicon_mile.models.database import get_db, get_redis
from silicon_mile.models.registration import Registration, TShirtSize
from silicon_mile.models.registration_form import STEP_TITLES, WizardStep
from silicon_mile.services.registration_pipeline import (
    RegistrationPipeline,
    SubmitOutcome,
    WizardState,
)
from silicon_mile.services.registration_service import RegistrationService
from silicon_mile.services.registration_state_manager import RegistrationStateManager

router = APIRouter(prefix="/dashboard", include_in_schema=False)

template_dir = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=str(template_dir))

logger = get_logger(__name__)

WIZARD_UNAVAILABLE = "Your saved registration progress could not be loaded. Please try again."


def _lookup_registration(
    registration_service: RegistrationService, user: SessionUser
) -> Optional[Registration]:
    """Read the user's registration; a failed read counts as not registered"""
    try:
        return registration_service.get_registration_for_user(user)
    except Exception as e:
        logger.error(f"Error fetching registration for user {user.id}: {e}")
        registration_service.db.rollback()
        return None


def _render(
    request: Request,
    user: SessionUser,
    registration: Optional[Registration] = None,
    wizard: Optional[WizardState] = None,
    errors: Optional[Dict[str, str]] = None,
    form_error: Optional[str] = None,
    status_code: int = 200,
):
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": user,
            "registration": registration,
            "wizard": wizard,
            "steps": STEP_TITLES,
            "tshirt_sizes": [size.value for size in TShirtSize],
            "errors": errors or {},
            "form_error": form_error,
        },
        status_code=status_code,
    )


def _back_to_dashboard() -> RedirectResponse:
    return RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)


def _pipeline(db: Session, redis_client: redis.Redis) -> RegistrationPipeline:
    return RegistrationPipeline(
        RegistrationStateManager(redis_client), RegistrationService(db)
    )


@router.get("")
async def dashboard(
    request: Request,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """Show the registration status card, or the wizard if not registered yet"""
    registration = _lookup_registration(RegistrationService(db), user)
    if registration:
        return _render(request, user, registration=registration)

    try:
        wizard = _pipeline(db, redis_client).current(user)
    except redis.RedisError as e:
        logger.error(f"Error loading registration wizard for user {user.id}: {e}")
        return _render(
            request,
            user,
            wizard=WizardState.initial(),
            form_error=WIZARD_UNAVAILABLE,
        )
    return _render(request, user, wizard=wizard)


@router.post("/registration/next")
async def registration_next(
    request: Request,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    form_data = await request.form()
    result = _pipeline(db, redis_client).next(user, form_data)
    if not result.ok:
        return _render(
            request,
            user,
            wizard=result.state,
            errors=result.errors,
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return _back_to_dashboard()


@router.post("/registration/back")
async def registration_back(
    request: Request,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    form_data = await request.form()
    _pipeline(db, redis_client).back(user, form_data)
    return _back_to_dashboard()


@router.post("/registration/submit")
async def registration_submit(
    request: Request,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """Write the registration; the dashboard then re-reads the status"""
    form_data = await request.form()
    result = _pipeline(db, redis_client).submit(user, form_data)

    if result.outcome == SubmitOutcome.INVALID:
        return _render(
            request,
            user,
            wizard=result.state,
            errors=result.errors,
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    if result.outcome == SubmitOutcome.REJECTED:
        return _render(
            request,
            user,
            wizard=result.state,
            form_error=result.error_message,
            status_code=status.HTTP_409_CONFLICT,
        )

    if result.outcome == SubmitOutcome.CREATED:
        logger.info(f"User {user.id} registered ({result.registration.id})")

    # CREATED, IGNORED and NOT_READY all land back on the dashboard
    return _back_to_dashboard()
