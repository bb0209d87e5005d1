from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pathlib import Path
import os
import logging
from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).parent / ".env", override=True)

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# models register on Base before any mapper is configured
from timeledger.models import audit_log, history, timesheet, user  # noqa: E402,F401
from timeledger.routers.admin import router as admin_router  # noqa: E402
from timeledger.routers.timesheets import router as timesheets_router  # noqa: E402
from timeledger.routers.users import router as users_router  # noqa: E402
from timeledger.services.errors import WorkflowError  # noqa: E402
from timeledger.services.holidays import HolidayCalendar  # noqa: E402

app = FastAPI(title="Timeledger API")

# one calendar per process; its cache is keyed by year
app.state.holiday_calendar = HolidayCalendar()

app.include_router(timesheets_router)
app.include_router(admin_router)
app.include_router(users_router)

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGINS],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    logger.info("%s %s refused (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.code})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
def health():
    return {"ok": True}
