"""Main application routes."""

from typing import Optional

from fastapi import APIRouter, Request, Depends
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.models.user import User
from app.services.auth.dependencies import get_optional_user

router = APIRouter()
templates = Jinja2Templates(directory="app/templates")


@router.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
):
    """Landing page; signed-in owners go straight to their dashboard."""
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)

    return templates.TemplateResponse(request, "home.html", {"user": None})
