import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portmap.config import settings
from portmap.errors import AuthError, PortmapError, ValidationError
from portmap.notifications import notify_error
from portmap.routers import auth, pages, status, switches, users
from portmap.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting Portmap...")
    start_scheduler()
    yield
    logger.info("Shutting down Portmap...")
    stop_scheduler()


app = FastAPI(
    title="Portmap",
    description="Switch port and connected device inventory",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PortmapError)
async def portmap_error_handler(request: Request, exc: PortmapError):
    """Turn domain errors into a status code plus a notification payload."""
    if not isinstance(exc, ValidationError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}/{exc.code}: {exc.message}")
    content = {
        "error": exc.kind,
        "code": exc.code,
        "detail": exc.message,
        "notification": notify_error(exc, exc.operation).model_dump(),
    }
    if isinstance(exc, ValidationError) and exc.fields:
        content["fields"] = exc.fields
    response = JSONResponse(status_code=exc.status_code, content=content)
    if isinstance(exc, AuthError) and exc.code == "profile_missing":
        response.delete_cookie(settings.session_cookie)
    return response


# Include routers
app.include_router(auth.router)
app.include_router(status.router)
app.include_router(switches.router)
app.include_router(users.router)
app.include_router(pages.router)
