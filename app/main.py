from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import settings
from app.api.v1.router import api_router
from app.database import init_db, async_session_factory

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()
    yield
    logger.info(f"{settings.APP_NAME} stopped")


OPENAPI_TAGS = [
    {"name": "Commissions", "description": "Commission calculation, approval workflow and payouts"},
    {"name": "Sales Agents", "description": "Agents who receive commission shares"},
    {"name": "Accounting", "description": "Chart of accounts, paying accounts, expense categories and journal entries"},
    {"name": "Health", "description": "Service and database health"},
]

API_DESCRIPTION = """
## SalesDesk Commissions API

Commissions on customer sales, split between sales agents and paid out of company accounts.

### Workflow

1. **Calculate**: base = received + additions - deductions; gross = base x rate; net = gross - withholding tax
2. **Allocate**: recipient shares may not exceed the net payable
3. **Approve**: PENDING_APPROVAL -> APPROVED
4. **Pay**: each payout posts a journal entry (debit expense, credit paying account)

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Operation not allowed in the current status, or payout refused |
| 404 | Commission, sale, agent or account not found |
| 409 | Duplicate reference/code, or sale already on an active commission |
| 422 | Invalid payload, or recipient shares exceed the payable |
| 500 | Unexpected error |
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """JSON 500 for anything the endpoints did not turn into an HTTPException."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    content = {
        "detail": "Internal server error",
        "type": type(exc).__name__,
        "path": request.url.path,
    }
    if settings.DEBUG:
        content["error"] = str(exc)
        content["traceback"] = traceback.format_exc()

    response = JSONResponse(status_code=500, content=content)

    # The CORS middleware does not see responses built here
    origin = request.headers.get("origin")
    allowed = settings.cors_origins_list
    if origin and (origin in allowed or "*" in allowed):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


@app.get("/health", tags=["Health"])
async def health_check():
    """Service status plus a SELECT 1 round trip to the database."""
    checks = {}
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        checks["database"] = f"error: {e}"

    healthy = checks["database"] == "connected"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
    return body if healthy else JSONResponse(status_code=503, content=body)


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
