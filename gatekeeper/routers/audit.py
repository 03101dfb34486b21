"""Audit history endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from gatekeeper.engine import UpdatePolicyEngine, get_engine
from gatekeeper.schemas.audit import AuditPage

router = APIRouter()


@router.get("/", response_model=AuditPage)
async def audit_history(
    type: str | None = None,
    action: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    engine: UpdatePolicyEngine = Depends(get_engine),
):
    return engine.get_audit_history(
        type=type, action=action, start=start, end=end, limit=limit, offset=offset
    )


@router.get("/verify")
async def verify_audit(engine: UpdatePolicyEngine = Depends(get_engine)):
    """Ids of entries whose signature does not check out (empty when unsigned)."""
    invalid = engine.verify_audit()
    return {"signed": engine.audit.signer is not None, "invalid": invalid}
