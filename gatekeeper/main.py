"""FastAPI application entrypoint."""

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gatekeeper.config import settings
from gatekeeper.database import init_db, make_engine, make_session_factory
from gatekeeper.engine import UpdatePolicyEngine
from gatekeeper.errors import GatekeeperError
from gatekeeper.routers import approvals, audit, maintenance, policies, updates
from gatekeeper.schemas.approval import ApprovalStatus

# ── Logging setup ────────────────────────────────────────────────────
_log_level = os.environ.get("GATEKEEPER_LOG_LEVEL", settings.log_level).upper()
logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    db_engine = make_engine()
    await init_db(db_engine)
    engine = UpdatePolicyEngine.from_settings(settings, make_session_factory(db_engine))
    await engine.initialize()
    app.state.engine = engine

    # ── Expiry sweeper ───────────────────────────────────────────
    sweeper = None
    if settings.expiry_sweep_interval > 0:
        logger.info("Expiry sweep every %.0fs", settings.expiry_sweep_interval)
        sweeper = asyncio.create_task(engine.run_expiry_sweeper(settings.expiry_sweep_interval))

    yield

    # Shutdown
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    outstanding = await engine.persistence.flush()
    if outstanding:
        logger.error("Shutting down with unsaved state: %s", ", ".join(outstanding))
    await db_engine.dispose()


app = FastAPI(
    title="Gatekeeper",
    description="Update policy evaluation and approval workflow",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GatekeeperError)
async def gatekeeper_error_handler(request: Request, exc: GatekeeperError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# Mount routers
app.include_router(updates.router, prefix="/api/updates", tags=["updates"])
app.include_router(approvals.router, prefix="/api/approvals", tags=["approvals"])
app.include_router(maintenance.router, prefix="/api/maintenance", tags=["maintenance"])
app.include_router(audit.router, prefix="/api/audit", tags=["audit"])
app.include_router(policies.router, prefix="/api/policies", tags=["policies"])


@app.get("/health")
async def health(request: Request):
    engine: UpdatePolicyEngine = request.app.state.engine
    return {
        "status": "ok",
        "service": "gatekeeper",
        "pending": len(engine.list_approvals(ApprovalStatus.PENDING)),
        "unsaved": engine.persistence.unsaved_keys,
    }
