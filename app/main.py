import logging
import uuid
from pathlib import Path
from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from app.api.deps import get_store
from app.api.tickets import router as tickets_router
from app.core.config import settings
from app.core.errors import StorageIOFailure, TicketingError, TicketNotFound
from app.core.logger import setup_logging
from app.services.ticket_store import TicketStore, initialize
from app.services.uploads import UploadStorage

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Persistence and identity assignment for KASI incident tickets.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

@app.on_event("startup")
def open_storage():
    """
    Create the ticket store and the uploads directory. Runs once per process.
    """
    Path(settings.DATA_DIR).mkdir(parents=True, exist_ok=True)
    app.state.store = initialize(
        settings.DATA_DIR,
        backend=settings.STORAGE_BACKEND,
        database_url=settings.DATABASE_URL if settings.STORAGE_BACKEND == "sql" else None,
        url_prefix=settings.ATTACHMENT_URL_PREFIX,
    )
    app.state.uploads = UploadStorage(settings.UPLOADS_DIR)
    app.state.uploads.initialize()

def _error_body(request: Request, message: str) -> dict:
    return {"success": False, "error": message, "request_id": getattr(request.state, "request_id", None)}

@app.exception_handler(TicketNotFound)
async def ticket_not_found_handler(request: Request, exc: TicketNotFound):
    return JSONResponse(status_code=404, content=_error_body(request, "Ticket not found"))

@app.exception_handler(StorageIOFailure)
async def storage_failure_handler(request: Request, exc: StorageIOFailure):
    logger.error(f"{exc.code}: {exc.message}", exc_info=exc)
    return JSONResponse(status_code=500, content=_error_body(request, "Storage operation failed"))

@app.exception_handler(TicketingError)
async def ticketing_exception_handler(request: Request, exc: TicketingError):
    logger.error(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc.message))

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=_error_body(request, "Internal Server Error"))

@app.get("/health", tags=["system"])
def health_check(store: TicketStore = Depends(get_store)):
    try:
        storage_status = "ok" if store.ping() else "error"
    except Exception:
        logger.warning("Storage health check failed", exc_info=True)
        storage_status = "error"
    return {"status": "ok", "storage": storage_status}

app.include_router(tickets_router, prefix=settings.API_PREFIX)

app.mount(
    settings.ATTACHMENT_URL_PREFIX,
    StaticFiles(directory=settings.UPLOADS_DIR, check_dir=False),
    name="uploads",
)
