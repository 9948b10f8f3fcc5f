"""FastAPI application entry point."""
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from automation_engine.core.config import settings
from automation_engine.core.deps import get_db
from automation_engine.core.errors import EngineError
from automation_engine.core.structured_logging import build_log_context, configure_logging

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logger.info("Sentry initialized for error tracking")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Volunteer Workflow Engine API",
    description="Action items, recruitment pipeline, approval-gated AI actions, reminders and alerts",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Render domain errors as {"error": code, "detail": message}."""
    if exc.status_code >= 500:
        logger.warning(
            "%s on %s %s: %s",
            exc.code,
            request.method,
            request.url.path,
            exc.message,
            extra=build_log_context(route=request.url.path, method=request.method),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# ============================================================================
# Routers
# ============================================================================

from automation_engine.routers import (  # noqa: E402
    action_items,
    ai_actions,
    alerts,
    automation,
    internal,
    notifications,
    pipeline,
    reminders,
)

app.include_router(action_items.router, prefix="/action-items", tags=["action-items"])
app.include_router(pipeline.router, prefix="/pipeline", tags=["pipeline"])
app.include_router(ai_actions.router, prefix="/ai-actions", tags=["ai-actions"])
app.include_router(reminders.router, prefix="/reminders", tags=["reminders"])
app.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
app.include_router(automation.router, prefix="/automation", tags=["automation"])
app.include_router(notifications.router, prefix="/me", tags=["notifications"])

# Scheduled jobs (router already has /internal/scheduled prefix)
app.include_router(internal.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    db.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
