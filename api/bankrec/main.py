import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .errors import DataUnavailable, NotFoundError, ReconciliationError, SessionLockedError, ValidationError
from .logging_config import setup_logging
from .routers import accounts, categories, reconciliations

settings = get_settings()
setup_logging(settings.log_level, settings.log_json, settings.app_env)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

# CORS: allow web origin for dev
allowed_origins = {str(settings.app_url), "http://localhost:3000", "http://127.0.0.1:3000"}
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS = [
    (SessionLockedError, 409),
    (ValidationError, 422),
    (NotFoundError, 404),
    (DataUnavailable, 503),
]


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
    status = next((code for cls, code in _STATUS if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"Retry-After": "5"} if exc.retryable else None
    return JSONResponse(status_code=status, content={"error": exc.message, "code": exc.code}, headers=headers)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": settings.app_name,
        "env": settings.app_env,
    }

# Routers
app.include_router(accounts.router)
app.include_router(categories.router)
app.include_router(reconciliations.router)
