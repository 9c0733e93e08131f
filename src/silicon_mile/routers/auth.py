"""Email/password account routes for browser-based login"""

from pathlib import Path
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from silicon_mile.auth.dependencies import get_identity_gateway, get_session_user
from silicon_mile.auth.gate import DASHBOARD_ROUTE, LOGIN_ROUTE
from silicon_mile.auth.models import SessionUser
from silicon_mile.logging_config import get_logger
from silicon_mile.models.registration_form import (
    LOGIN_MESSAGES,
    LoginForm,
    SignupForm,
    field_errors,
)
from silicon_mile.services.identity_gateway import IdentityError, IdentityGateway

router = APIRouter(tags=["Authentication"], include_in_schema=False)

template_dir = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=str(template_dir))

logger = get_logger(__name__)


def _render(
    request: Request,
    template_name: str,
    values: Dict[str, str],
    errors: Optional[Dict[str, str]] = None,
    form_error: Optional[str] = None,
    status_code: int = 200,
):
    return templates.TemplateResponse(
        request,
        template_name,
        {
            "user": None,
            "values": values,
            "errors": errors or {},
            "form_error": form_error,
        },
        status_code=status_code,
    )


def _to_dashboard() -> RedirectResponse:
    return RedirectResponse(url=DASHBOARD_ROUTE, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/")
async def home():
    return _to_dashboard()


@router.get("/login")
async def login_page(
    request: Request, user: Optional[SessionUser] = Depends(get_session_user)
):
    if user:
        return _to_dashboard()
    return _render(request, "login.html", {"email": ""})


@router.post("/login")
async def login(
    request: Request, gateway: IdentityGateway = Depends(get_identity_gateway)
):
    """Sign in with email and password"""
    form_data = await request.form()
    values = {
        "email": str(form_data.get("email", "")).strip(),
        "password": str(form_data.get("password", "")),
    }
    shown = {"email": values["email"]}

    try:
        credentials = LoginForm.model_validate(values)
    except ValidationError as e:
        return _render(
            request,
            "login.html",
            shown,
            errors=field_errors(e, LOGIN_MESSAGES),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        user = await gateway.sign_in_with_password(
            credentials.email, credentials.password
        )
    except IdentityError as e:
        return _render(
            request,
            "login.html",
            shown,
            form_error=e.message or "Invalid email or password",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    gateway.open_session(request.session, user)
    return _to_dashboard()


@router.get("/register")
async def register_page(
    request: Request, user: Optional[SessionUser] = Depends(get_session_user)
):
    if user:
        return _to_dashboard()
    return _render(
        request, "register.html", {"email": "", "full_name": "", "company": ""}
    )


@router.post("/register")
async def register(
    request: Request, gateway: IdentityGateway = Depends(get_identity_gateway)
):
    """Create an account (name and company go to identity metadata) and sign in"""
    form_data = await request.form()
    values = {
        "email": str(form_data.get("email", "")).strip(),
        "password": str(form_data.get("password", "")),
        "full_name": str(form_data.get("full_name", "")).strip(),
        "company": str(form_data.get("company", "")).strip(),
    }
    shown = {k: v for k, v in values.items() if k != "password"}

    try:
        signup = SignupForm.model_validate(values)
    except ValidationError as e:
        return _render(
            request,
            "register.html",
            shown,
            errors=field_errors(e),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        user = await gateway.sign_up(
            signup.email,
            signup.password,
            {"full_name": signup.full_name, "company": signup.company},
        )
    except IdentityError as e:
        return _render(
            request,
            "register.html",
            shown,
            form_error=e.message or "An error occurred during signup",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    gateway.open_session(request.session, user)
    return _to_dashboard()


@router.post("/logout")
async def logout(
    request: Request, gateway: IdentityGateway = Depends(get_identity_gateway)
):
    """Clear the session"""
    gateway.sign_out(request.session)
    return RedirectResponse(url=LOGIN_ROUTE, status_code=status.HTTP_303_SEE_OTHER)
