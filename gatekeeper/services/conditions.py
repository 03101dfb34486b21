"""Condition evaluators. All pure: same inputs, same result."""

from __future__ import annotations

from collections import Counter

from gatekeeper.schemas.evaluation import (
    CompatibilityDetails,
    CompatibilityScore,
    CompatibilityStatus,
    MaintenanceWindowCheck,
    PerformanceDetails,
    PerformanceImpact,
    PerformanceLevel,
    RequirementAction,
    RollbackRequirements,
    TestingRequirements,
    VulnerabilityCounts,
    VulnerabilityLevel,
    VulnerabilityScore,
)
from gatekeeper.schemas.maintenance import MaintenanceWindow
from gatekeeper.schemas.policy import Policy
from gatekeeper.schemas.update_request import Severity, UpdateRequest

SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 5,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

# (minimum score, level, action), checked top-down
_VULNERABILITY_BANDS = (
    (10, VulnerabilityLevel.CRITICAL, "immediate"),
    (5, VulnerabilityLevel.HIGH, "24h"),
    (2, VulnerabilityLevel.MEDIUM, "72h"),
)
_COMPATIBILITY_BANDS = (
    (95, CompatibilityStatus.EXCELLENT, "proceed"),
    (80, CompatibilityStatus.GOOD, "caution"),
    (60, CompatibilityStatus.ACCEPTABLE, "review"),
)
# (maximum impact, level, action)
_PERFORMANCE_BANDS = (
    (5, PerformanceLevel.MINIMAL, "proceed"),
    (15, PerformanceLevel.MODERATE, "monitor"),
    (25, PerformanceLevel.SIGNIFICANT, "review"),
)


def vulnerability_score(request: UpdateRequest) -> VulnerabilityScore:
    if not request.vulnerabilities:
        return VulnerabilityScore(score=0, level=VulnerabilityLevel.NONE, action="none")

    counts = Counter(v.severity for v in request.vulnerabilities)
    score = sum(SEVERITY_WEIGHTS.get(sev, 0) * n for sev, n in counts.items())

    level, action = VulnerabilityLevel.LOW, "7d"
    for minimum, band_level, band_action in _VULNERABILITY_BANDS:
        if score >= minimum:
            level, action = band_level, band_action
            break

    return VulnerabilityScore(
        score=score,
        level=level,
        action=action,
        details=VulnerabilityCounts(
            critical=counts[Severity.CRITICAL],
            high=counts[Severity.HIGH],
            medium=counts[Severity.MEDIUM],
            low=counts[Severity.LOW],
            total=len(request.vulnerabilities),
        ),
    )


def compatibility_score(request: UpdateRequest) -> CompatibilityScore:
    test = request.compatibility_test
    if test is None:
        return CompatibilityScore(score=0, status=CompatibilityStatus.UNKNOWN, action="required")

    status, action = CompatibilityStatus.POOR, "reject"
    for minimum, band_status, band_action in _COMPATIBILITY_BANDS:
        if test.compatibility >= minimum:
            status, action = band_status, band_action
            break

    return CompatibilityScore(
        score=test.compatibility,
        status=status,
        action=action,
        details=CompatibilityDetails(
            total_tests=test.total_tests,
            passed_tests=test.passed_tests,
            failed_tests=test.failed_tests,
        ),
    )


def performance_impact(request: UpdateRequest) -> PerformanceImpact:
    test = request.performance_test
    if test is None:
        return PerformanceImpact(impact=0, level=PerformanceLevel.UNKNOWN, action="required")

    impact = max(test.response_time_impact, test.memory_impact, test.cpu_impact)
    level, action = PerformanceLevel.SEVERE, "reject"
    for maximum, band_level, band_action in _PERFORMANCE_BANDS:
        if impact <= maximum:
            level, action = band_level, band_action
            break

    return PerformanceImpact(
        impact=impact,
        level=level,
        action=action,
        details=PerformanceDetails(
            response_time=test.response_time_impact,
            memory=test.memory_impact,
            cpu=test.cpu_impact,
        ),
    )


def maintenance_window(
    policy: Policy,
    current: list[MaintenanceWindow],
    upcoming: MaintenanceWindow | None,
) -> MaintenanceWindowCheck:
    if not policy.rules.require_maintenance_window:
        return MaintenanceWindowCheck(required=False, available=True)
    return MaintenanceWindowCheck(
        required=True,
        available=bool(current),
        current_windows=list(current),
        next_window=upcoming,
    )


def testing_requirements(request: UpdateRequest, policy: Policy) -> TestingRequirements:
    required = policy.rules.require_testing
    completed = request.compatibility_test is not None and request.performance_test is not None
    passed = completed and (
        request.compatibility_test.compatibility >= policy.conditions.compatibility_score.min
    )

    if required and not completed:
        action = RequirementAction.REQUIRED
    elif required and not passed:
        action = RequirementAction.FAILED
    else:
        action = RequirementAction.PASSED
    return TestingRequirements(required=required, completed=completed, passed=passed, action=action)


def rollback_requirements(request: UpdateRequest, policy: Policy) -> RollbackRequirements:
    required = policy.rules.require_rollback
    available = request.backup and bool(request.rollback_plan)
    action = RequirementAction.REQUIRED if required and not available else RequirementAction.PASSED
    return RollbackRequirements(required=required, available=available, action=action)
