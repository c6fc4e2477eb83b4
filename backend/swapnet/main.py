import logging

from dotenv import load_dotenv

# Load environment variables FIRST - before any other imports
load_dotenv()

# ruff: noqa: E402
from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from swapnet.config import get_settings
from swapnet.constants import API_PREFIX
from swapnet.constants import BARTER_PREFIX
from swapnet.constants import CONNECTIONS_PREFIX
from swapnet.constants import FEED_PREFIX
from swapnet.constants import MESSAGES_PREFIX
from swapnet.constants import USER_PREFIX
from swapnet.database import initialize_database
from swapnet.errors import LedgerError
from swapnet.routers.barter import router as barter_router
from swapnet.routers.connections import router as connections_router
from swapnet.routers.feed import router as feed_router
from swapnet.routers.messages import router as messages_router
from swapnet.routers.users import router as users_router
from swapnet.routers.websocket import router as websocket_router
from swapnet.websocket.manager import topic_manager

_settings = get_settings()

# --------------------------------------------------------------------------
# Logging: LOG_LEVEL env (default INFO).  WebSocket modules are chatty on
# connect/disconnect so they stay at WARNING.
# --------------------------------------------------------------------------
_log_level = getattr(logging, _settings.log_level.upper(), logging.INFO)
logging.basicConfig(level=_log_level, format="%(levelname)s - %(message)s", handlers=[logging.StreamHandler()])

for _noisy_mod in ("swapnet.routers.websocket", "swapnet.websocket.manager"):
    logging.getLogger(_noisy_mod).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(title="swapnet", redirect_slashes=True)

# ------------------------------------------------------------------
# CORS – `ALLOWED_CORS_ORIGINS` can contain a comma-separated list;
# empty means any origin.
# ------------------------------------------------------------------
cors_origins = [o.strip() for o in _settings.allowed_cors_origins.split(",") if o.strip()] or ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error rendering – every error body is {"msg": ...}
# ---------------------------------------------------------------------------


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content={"msg": exc.msg})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        msg = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        msg = "Invalid request"
    return JSONResponse(status_code=400, content={"msg": msg})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"msg": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # Storage faults and bugs: details stay in the server log.
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"msg": "Server error"})


# Include our API routers with centralized prefixes
app.include_router(users_router, prefix=f"{API_PREFIX}{USER_PREFIX}")
app.include_router(connections_router, prefix=f"{API_PREFIX}{CONNECTIONS_PREFIX}")
app.include_router(barter_router, prefix=f"{API_PREFIX}{BARTER_PREFIX}")
app.include_router(feed_router, prefix=f"{API_PREFIX}{FEED_PREFIX}")
app.include_router(messages_router, prefix=f"{API_PREFIX}{MESSAGES_PREFIX}")
app.include_router(websocket_router, prefix=API_PREFIX)


@app.on_event("startup")
async def startup_event():
    """Create DB tables if they don't exist."""
    initialize_database()
    logger.info("Database tables initialized")


@app.on_event("shutdown")
async def shutdown_event():
    await topic_manager.shutdown()
    logger.info("WebSocket manager stopped")


# Root endpoint
@app.get("/")
async def read_root():
    """Return a simple message to indicate the API is working."""
    return {"message": "swapnet API is running"}
