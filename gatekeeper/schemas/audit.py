"""Audit log entries — one variant per entry ``type``, each with typed details."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import Field, TypeAdapter

from gatekeeper.schemas.approval import ApprovalStatus, Execution
from gatekeeper.schemas.common import CamelModel
from gatekeeper.schemas.evaluation import Evaluation
from gatekeeper.schemas.maintenance import MaintenanceWindow
from gatekeeper.schemas.policy import PolicyCategory


# ── Detail payloads ──────────────────────────────────────────────────


class EvaluationDetails(CamelModel):
    evaluation: Evaluation


class ApprovalRequestDetails(CamelModel):
    approval_id: str
    request_id: str
    policy: PolicyCategory
    approvers: list[str]
    deadline: datetime


class ApprovalDetails(CamelModel):
    approval_id: str
    request_id: str | None = None
    approver: str | None = None
    comment: str | None = None
    reason: str | None = None
    status: ApprovalStatus


class ExecutionDetails(CamelModel):
    approval_id: str | None = None
    request_id: str
    execution: Execution


class MaintenanceDetails(CamelModel):
    window_id: str
    window: MaintenanceWindow


class ConfigurationDetails(CamelModel):
    categories: list[str] = Field(default_factory=list)
    maintenance_windows: int | None = None
    configuration_keys: list[str] = Field(default_factory=list)


class ErrorDetails(CamelModel):
    error: str
    request_id: str | None = None
    approval_id: str | None = None
    approver: str | None = None


# ── Entries ──────────────────────────────────────────────────────────


class _EntryBase(CamelModel):
    model_config = {"frozen": True}

    id: str
    timestamp: datetime
    action: str
    signature: str | None = None


class EvaluationEntry(_EntryBase):
    type: Literal["evaluation"] = "evaluation"
    details: EvaluationDetails


class ApprovalRequestEntry(_EntryBase):
    type: Literal["approval_request"] = "approval_request"
    details: ApprovalRequestDetails


class ApprovalEntry(_EntryBase):
    type: Literal["approval"] = "approval"
    details: ApprovalDetails


class ExecutionEntry(_EntryBase):
    type: Literal["execution"] = "execution"
    details: ExecutionDetails


class MaintenanceEntry(_EntryBase):
    type: Literal["maintenance"] = "maintenance"
    details: MaintenanceDetails


class ConfigurationEntry(_EntryBase):
    type: Literal["configuration"] = "configuration"
    details: ConfigurationDetails


class ErrorEntry(_EntryBase):
    type: Literal["error"] = "error"
    details: ErrorDetails


AuditEntry = Annotated[
    Union[
        EvaluationEntry,
        ApprovalRequestEntry,
        ApprovalEntry,
        ExecutionEntry,
        MaintenanceEntry,
        ConfigurationEntry,
        ErrorEntry,
    ],
    Field(discriminator="type"),
]

audit_entry_adapter: TypeAdapter[AuditEntry] = TypeAdapter(AuditEntry)

# details class → entry class, used when appending
ENTRY_FOR_DETAILS: dict[type, type[_EntryBase]] = {
    EvaluationDetails: EvaluationEntry,
    ApprovalRequestDetails: ApprovalRequestEntry,
    ApprovalDetails: ApprovalEntry,
    ExecutionDetails: ExecutionEntry,
    MaintenanceDetails: MaintenanceEntry,
    ConfigurationDetails: ConfigurationEntry,
    ErrorDetails: ErrorEntry,
}

AuditDetails = Union[
    EvaluationDetails,
    ApprovalRequestDetails,
    ApprovalDetails,
    ExecutionDetails,
    MaintenanceDetails,
    ConfigurationDetails,
    ErrorDetails,
]


class AuditPage(CamelModel):
    entries: list[AuditEntry]
    total: int
    offset: int
    limit: int
