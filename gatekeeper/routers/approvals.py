"""Approval management endpoints."""

from fastapi import APIRouter, Depends

from gatekeeper.engine import UpdatePolicyEngine, get_engine
from gatekeeper.schemas.approval import (
    ApprovalRequest,
    ApprovalStatistics,
    ApprovalStatus,
    ApproveBody,
    CancelBody,
    ExpireResult,
    RejectBody,
)

router = APIRouter()


@router.get("/", response_model=list[ApprovalRequest])
async def list_approvals(
    status: ApprovalStatus | None = None, engine: UpdatePolicyEngine = Depends(get_engine)
):
    return engine.list_approvals(status)


@router.get("/stats", response_model=ApprovalStatistics)
async def approval_stats(engine: UpdatePolicyEngine = Depends(get_engine)):
    return engine.get_approval_statistics()


@router.post("/expire", response_model=ExpireResult)
async def expire_approvals(engine: UpdatePolicyEngine = Depends(get_engine)):
    return ExpireResult(expired=await engine.process_expired_requests())


@router.get("/{approval_id}", response_model=ApprovalRequest)
async def get_approval(approval_id: str, engine: UpdatePolicyEngine = Depends(get_engine)):
    return engine.get_approval(approval_id)


@router.post("/{approval_id}/approve", response_model=ApprovalRequest)
async def approve(
    approval_id: str, body: ApproveBody, engine: UpdatePolicyEngine = Depends(get_engine)
):
    return await engine.approve(approval_id, body.approver, body.comment)


@router.post("/{approval_id}/reject", response_model=ApprovalRequest)
async def reject(
    approval_id: str, body: RejectBody, engine: UpdatePolicyEngine = Depends(get_engine)
):
    return await engine.reject(approval_id, body.approver, body.reason, body.comment)


@router.post("/{approval_id}/cancel", response_model=ApprovalRequest)
async def cancel(
    approval_id: str, body: CancelBody, engine: UpdatePolicyEngine = Depends(get_engine)
):
    return await engine.cancel(approval_id, body.actor, body.reason)
