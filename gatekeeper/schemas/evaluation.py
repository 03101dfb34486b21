"""Evaluation result schemas — per-condition scores and the approval decision."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from gatekeeper.schemas.common import CamelModel
from gatekeeper.schemas.maintenance import MaintenanceWindow
from gatekeeper.schemas.policy import PolicyCategory


class VulnerabilityLevel(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CompatibilityStatus(StrEnum):
    UNKNOWN = "unknown"
    POOR = "poor"
    ACCEPTABLE = "acceptable"
    GOOD = "good"
    EXCELLENT = "excellent"


class PerformanceLevel(StrEnum):
    UNKNOWN = "unknown"
    MINIMAL = "minimal"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"
    SEVERE = "severe"


class RequirementAction(StrEnum):
    REQUIRED = "required"
    FAILED = "failed"
    PASSED = "passed"


# ── Condition results ────────────────────────────────────────────────


class VulnerabilityCounts(CamelModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    total: int = 0


class VulnerabilityScore(CamelModel):
    score: int = 0
    level: VulnerabilityLevel = VulnerabilityLevel.NONE
    action: str = "none"  # immediate | 24h | 72h | 7d | none
    details: VulnerabilityCounts | None = None


class CompatibilityDetails(CamelModel):
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0


class CompatibilityScore(CamelModel):
    score: float = 0
    status: CompatibilityStatus = CompatibilityStatus.UNKNOWN
    action: str = "required"  # proceed | caution | review | reject | required
    details: CompatibilityDetails | None = None


class PerformanceDetails(CamelModel):
    response_time: float = 0
    memory: float = 0
    cpu: float = 0


class PerformanceImpact(CamelModel):
    impact: float = 0
    level: PerformanceLevel = PerformanceLevel.UNKNOWN
    action: str = "required"  # proceed | monitor | review | reject | required
    details: PerformanceDetails | None = None


class MaintenanceWindowCheck(CamelModel):
    required: bool = False
    available: bool = True
    current_windows: list[MaintenanceWindow] = Field(default_factory=list)
    next_window: MaintenanceWindow | None = None


class TestingRequirements(CamelModel):
    __test__ = False  # not a pytest class

    required: bool
    completed: bool
    passed: bool
    action: RequirementAction


class RollbackRequirements(CamelModel):
    required: bool
    available: bool
    action: RequirementAction


class Conditions(CamelModel):
    vulnerability_score: VulnerabilityScore
    compatibility_score: CompatibilityScore
    performance_impact: PerformanceImpact
    maintenance_window: MaintenanceWindowCheck
    testing_requirements: TestingRequirements
    rollback_requirements: RollbackRequirements


# ── Decision ─────────────────────────────────────────────────────────


class RecommendationType(StrEnum):
    SECURITY = "security"
    COMPATIBILITY = "compatibility"
    PERFORMANCE = "performance"
    MAINTENANCE = "maintenance"
    TESTING = "testing"
    ROLLBACK = "rollback"


class Recommendation(CamelModel):
    type: RecommendationType
    priority: str
    message: str
    action: str
    next_window: MaintenanceWindow | None = None


class Evaluation(CamelModel):
    request_id: str
    timestamp: datetime
    policy: PolicyCategory
    conditions: Conditions
    approval_required: bool
    auto_approve: bool
    recommendations: list[Recommendation] = Field(default_factory=list)
    status: str = "evaluated"
