"""Update policy schemas."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from gatekeeper.schemas.common import CamelModel


class PolicyCategory(StrEnum):
    SECURITY = "security"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    DEPENDENCY = "dependency"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PolicyRules(CamelModel):
    auto_approve: bool = False
    require_testing: bool = True
    require_rollback: bool = True
    require_maintenance_window: bool = False
    max_retries: int = 3
    timeout: int = 60 * 60 * 1000  # ms
    approvers: list[str] = Field(default_factory=list)
    notification_channels: list[str] = Field(default_factory=list)


class VulnerabilityBands(CamelModel):
    """Response time expected for each vulnerability level."""

    critical: str = "immediate"
    high: str = "24h"
    medium: str = "72h"
    low: str = "7d"


class CompatibilityThresholds(CamelModel):
    min: float = Field(80, ge=0, le=100)
    target: float = Field(95, ge=0, le=100)


class PerformanceThresholds(CamelModel):
    max: float = Field(20, ge=0, description="Tolerated degradation in percent")


class PolicyConditions(CamelModel):
    vulnerability_score: VulnerabilityBands = Field(default_factory=VulnerabilityBands)
    compatibility_score: CompatibilityThresholds = Field(default_factory=CompatibilityThresholds)
    performance_impact: PerformanceThresholds = Field(default_factory=PerformanceThresholds)


class Policy(CamelModel):
    name: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    rules: PolicyRules = Field(default_factory=PolicyRules)
    conditions: PolicyConditions = Field(default_factory=PolicyConditions)


class EngineOptions(CamelModel):
    """Runtime workflow switches; seeded from settings, merged by policy import."""

    approval_required: bool = True
    auto_approve_safe_updates: bool = True
    max_approval_time: int = 24 * 60 * 60 * 1000  # ms
    rollback_enabled: bool = True
    notification_channels: list[str] = Field(default_factory=lambda: ["log"])
    approvers: list[str] = Field(default_factory=list)
