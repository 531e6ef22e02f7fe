"""Authentication routes for login, logout, registration, and the profile page."""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, Query
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.services.auth import get_auth_provider
from app.services.auth.dependencies import get_current_user, get_optional_user


router = APIRouter(prefix="/auth", tags=["auth"])
templates = Jinja2Templates(directory="app/templates")

MIN_PASSWORD_LENGTH = 8


def _safe_next(next_url: Optional[str]) -> str:
    """Only allow same-site relative redirects."""
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/dashboard"


def _login_response(redirect_url: str, token: str) -> RedirectResponse:
    response = RedirectResponse(url=redirect_url, status_code=303)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return response


# =============================================================================
# Login / Logout
# =============================================================================


@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    next: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    user: Optional[User] = Depends(get_optional_user),
):
    """Login page. Redirects to the dashboard if already logged in."""
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)

    return templates.TemplateResponse(
        request, "auth/login.html", {"next": next, "error_code": error}
    )


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """Process login form."""
    auth_provider = get_auth_provider()
    user = await auth_provider.authenticate(db, email, password)

    if not user:
        return RedirectResponse(url="/auth/login?error=invalid", status_code=303)

    token = await auth_provider.create_session(db, user, request)
    return _login_response(_safe_next(next), token)


@router.post("/logout")
async def logout(request: Request, db: Session = Depends(get_db)):
    """Logout and clear session."""
    auth_provider = get_auth_provider()

    token = request.cookies.get(settings.session_cookie_name)
    if token:
        await auth_provider.revoke_session(db, token)

    response = RedirectResponse(url="/auth/login", status_code=303)
    response.delete_cookie(settings.session_cookie_name)
    return response


# =============================================================================
# Registration
# =============================================================================


@router.get("/register", response_class=HTMLResponse)
async def register_page(
    request: Request,
    error: Optional[str] = Query(None),
    user: Optional[User] = Depends(get_optional_user),
):
    """Sign-up page."""
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)

    return templates.TemplateResponse(request, "auth/register.html", {"error_code": error})


@router.post("/register")
async def register(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    password_confirm: str = Form(...),
    db: Session = Depends(get_db),
):
    """Create an owner account and sign it in."""
    email = email.strip()
    if "@" not in email:
        return RedirectResponse(url="/auth/register?error=invalid_email", status_code=303)

    if password != password_confirm:
        return RedirectResponse(
            url="/auth/register?error=passwords_mismatch", status_code=303
        )

    if len(password) < MIN_PASSWORD_LENGTH:
        return RedirectResponse(
            url="/auth/register?error=password_too_short", status_code=303
        )

    existing_user = db.query(User).filter(User.email == email.lower()).first()
    if existing_user:
        return RedirectResponse(url="/auth/register?error=email_exists", status_code=303)

    auth_provider = get_auth_provider()
    user = await auth_provider.create_user(db, email, password)

    # Auto-login
    token = await auth_provider.create_session(db, user, request)
    return _login_response("/dashboard", token)


# =============================================================================
# Profile
# =============================================================================


@router.get("/account", response_class=HTMLResponse)
async def account_page(
    request: Request,
    user: User = Depends(get_current_user),
):
    """Account details for the signed-in owner."""
    return templates.TemplateResponse(request, "auth/account.html", {"user": user})
