"""Approval workflow request/response schemas."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from gatekeeper.schemas.common import CamelModel
from gatekeeper.schemas.evaluation import Conditions, Evaluation, Recommendation
from gatekeeper.schemas.policy import PolicyCategory
from gatekeeper.schemas.update_request import UpdateRequest


class ApprovalStatus(StrEnum):
    """States of an approval request. Transitions only move forward."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    EXECUTED = "executed"
    EXECUTION_FAILED = "execution_failed"
    ROLLED_BACK = "rolled_back"  # reserved, nothing drives it yet


TERMINAL_STATUSES = frozenset({
    ApprovalStatus.REJECTED,
    ApprovalStatus.EXPIRED,
    ApprovalStatus.CANCELLED,
    ApprovalStatus.EXECUTED,
    ApprovalStatus.EXECUTION_FAILED,
    ApprovalStatus.ROLLED_BACK,
})


class Vote(CamelModel):
    approver: str
    timestamp: datetime
    comment: str | None = None


class Rejection(Vote):
    reason: str


class Cancellation(CamelModel):
    actor: str
    reason: str = ""
    timestamp: datetime


# ── Execution ────────────────────────────────────────────────────────


class ExecutionStepName(StrEnum):
    BACKUP = "backup"
    UPDATE = "update"
    VERIFICATION = "verification"
    ROLLBACK = "rollback"


class ExecutionStep(CamelModel):
    step: ExecutionStepName
    status: str  # completed | failed
    timestamp: datetime
    detail: str = ""


class ExecutionResult(CamelModel):
    """What an update executor reports back."""

    steps: list[ExecutionStep] = Field(default_factory=list)
    message: str = ""


class Execution(CamelModel):
    approval_id: str | None = None
    request_id: str
    started_at: datetime
    completed_at: datetime | None = None
    status: str = "executing"  # executing | completed | failed
    steps: list[ExecutionStep] = Field(default_factory=list)
    error: str | None = None


# ── Approval request ─────────────────────────────────────────────────


class ApprovalMetadata(CamelModel):
    update_request: UpdateRequest
    evaluation: Evaluation


class ApprovalRequest(CamelModel):
    id: str
    request_id: str
    timestamp: datetime
    status: ApprovalStatus = ApprovalStatus.PENDING
    policy: PolicyCategory
    requester: str = "system"
    approvers: list[str] = Field(default_factory=list)
    conditions: Conditions
    recommendations: list[Recommendation] = Field(default_factory=list)
    deadline: datetime
    approvals: list[Vote] = Field(default_factory=list)
    rejections: list[Rejection] = Field(default_factory=list)
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    expired_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation: Cancellation | None = None
    execution: Execution | None = None
    error: str | None = None
    metadata: ApprovalMetadata

    @property
    def quorum(self) -> int:
        """Distinct approvals needed: ceil(approvers / 2)."""
        return -(-len(self.approvers) // 2)

    def has_voted(self, approver: str) -> bool:
        return any(v.approver == approver for v in [*self.approvals, *self.rejections])


# ── API bodies ───────────────────────────────────────────────────────


class ApproveBody(CamelModel):
    approver: str
    comment: str | None = None


class RejectBody(CamelModel):
    approver: str
    reason: str
    comment: str | None = None


class CancelBody(CamelModel):
    actor: str
    reason: str = ""


class ExpireResult(CamelModel):
    expired: int


class SubmitResult(CamelModel):
    evaluation: Evaluation
    approval_request: ApprovalRequest | None = None


# ── Statistics ───────────────────────────────────────────────────────


class PolicyStats(CamelModel):
    total: int = 0
    approved: int = 0
    rejected: int = 0
    expired: int = 0


class ApproverStats(CamelModel):
    approvals: int = 0
    rejections: int = 0


class ApprovalStatistics(CamelModel):
    total: int = 0
    by_status: dict[ApprovalStatus, int] = Field(default_factory=dict)
    by_policy: dict[str, PolicyStats] = Field(default_factory=dict)
    approver_stats: dict[str, ApproverStats] = Field(default_factory=dict)
    average_approval_time: float = 0  # ms, creation → approvedAt
