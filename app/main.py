import logging
from pathlib import Path
from urllib.parse import urlparse

from fastapi import FastAPI, Request, status
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.api import routes, auth, items, feedback, functions
from app.config import settings

logger = logging.getLogger(__name__)

app = FastAPI(title="Talkpulse", version="0.1.0")


# =============================================================================
# CSRF Origin Validation Middleware
# =============================================================================


class CSRFOriginMiddleware(BaseHTTPMiddleware):
    """
    Validate Origin/Referer headers on state-changing requests to prevent CSRF.

    - POST, PUT, PATCH, DELETE must include a matching Origin or Referer header
    - GET, HEAD, OPTIONS are always allowed (safe methods)
    - Health check and cross-origin function endpoints are exempt
    """

    SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
    EXEMPT_PATHS = {"/health"}
    EXEMPT_PREFIXES = ("/functions/",)

    async def dispatch(self, request: Request, call_next):
        if request.method in self.SAFE_METHODS:
            return await call_next(request)

        path = request.url.path
        if path in self.EXEMPT_PATHS or path.startswith(self.EXEMPT_PREFIXES):
            return await call_next(request)

        expected_host = request.headers.get("host", "")

        # Check Origin header first, then fall back to Referer
        for header in ("origin", "referer"):
            value = request.headers.get(header)
            if not value:
                continue
            source_host = urlparse(value).netloc
            if source_host != expected_host:
                logger.warning(
                    "CSRF %s mismatch: %s=%s, expected=%s, path=%s",
                    header,
                    header,
                    value,
                    expected_host,
                    path,
                )
                return JSONResponse(
                    status_code=403,
                    content={"detail": "Origin validation failed"},
                )
            return await call_next(request)

        logger.warning(
            "CSRF missing origin/referer: method=%s, path=%s",
            request.method,
            path,
        )
        return JSONResponse(
            status_code=403,
            content={"detail": "Origin validation failed"},
        )


app.add_middleware(CSRFOriginMiddleware)

# Static assets and the public side of object storage
Path(settings.storage_dir).mkdir(parents=True, exist_ok=True)
app.mount("/static", StaticFiles(directory="app/static"), name="static")
app.mount(
    settings.storage_public_base,
    StaticFiles(directory=settings.storage_dir),
    name="uploads",
)


@app.exception_handler(HTTPException)
async def auth_exception_handler(request: Request, exc: HTTPException):
    """
    Redirect to login page for 401 errors on browser page requests.
    API requests (expecting JSON) still get the JSON error response.
    """
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        accept = request.headers.get("accept", "")
        is_html_request = "text/html" in accept

        if is_html_request:
            return_url = str(request.url.path)
            if request.url.query:
                return_url += f"?{request.url.query}"
            return RedirectResponse(
                url=f"/auth/login?next={return_url}",
                status_code=status.HTTP_303_SEE_OTHER,
            )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Include routers
app.include_router(auth.router)
app.include_router(routes.router)
app.include_router(items.router)
app.include_router(feedback.router)
app.include_router(functions.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
