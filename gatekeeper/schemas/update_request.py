"""Incoming update request — the input to policy evaluation."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from gatekeeper.schemas.common import CamelModel


class UpdateType(StrEnum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    OTHER = "other"


class Severity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class PackageUpdate(CamelModel):
    model_config = {"frozen": True}

    package: str
    current_version: str | None = None
    target_version: str | None = None
    update_type: UpdateType = UpdateType.OTHER


class Vulnerability(CamelModel):
    model_config = {"frozen": True}

    id: str | None = None
    package: str | None = None
    severity: Severity
    title: str = ""


class CompatibilityTest(CamelModel):
    model_config = {"frozen": True}

    compatibility: float = Field(0, ge=0, le=100)
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0


class PerformanceTest(CamelModel):
    """Degradation percentages measured against the current version."""

    model_config = {"frozen": True}

    response_time_impact: float = 0
    memory_impact: float = 0
    cpu_impact: float = 0


class UpdateRequest(CamelModel):
    model_config = {"frozen": True}

    id: str
    requester: str = "system"
    updates: tuple[PackageUpdate, ...] = ()
    vulnerabilities: tuple[Vulnerability, ...] = ()
    compatibility_test: CompatibilityTest | None = None
    performance_test: PerformanceTest | None = None
    backup: bool = False
    rollback_plan: str | None = None
