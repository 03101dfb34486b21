"""Condition scoring bands."""

from datetime import datetime, timezone

import pytest

from gatekeeper.schemas.evaluation import (
    CompatibilityStatus,
    PerformanceLevel,
    RequirementAction,
    VulnerabilityLevel,
)
from gatekeeper.schemas.maintenance import MaintenanceWindow
from gatekeeper.schemas.policy import Policy, PolicyRules
from gatekeeper.services import conditions as cond

START = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


def _vulns(*severities):
    return [{"id": f"V-{i}", "severity": s} for i, s in enumerate(severities)]


# ── Vulnerability score ──────────────────────────────────────────────


def test_no_vulnerabilities(request_factory):
    score = cond.vulnerability_score(request_factory())
    assert (score.score, score.level, score.action) == (0, VulnerabilityLevel.NONE, "none")
    assert score.details is None


@pytest.mark.parametrize(
    "severities, score, level, action",
    [
        (("critical",), 10, VulnerabilityLevel.CRITICAL, "immediate"),
        (("high", "high"), 10, VulnerabilityLevel.CRITICAL, "immediate"),
        (("high",), 5, VulnerabilityLevel.HIGH, "24h"),
        (("medium", "medium", "low"), 5, VulnerabilityLevel.HIGH, "24h"),
        (("medium", "medium"), 4, VulnerabilityLevel.MEDIUM, "72h"),
        (("medium",), 2, VulnerabilityLevel.MEDIUM, "72h"),
        (("low",), 1, VulnerabilityLevel.LOW, "7d"),
        (("info",), 0, VulnerabilityLevel.LOW, "7d"),
    ],
)
def test_vulnerability_bands(request_factory, severities, score, level, action):
    result = cond.vulnerability_score(request_factory(vulnerabilities=_vulns(*severities)))
    assert (result.score, result.level, result.action) == (score, level, action)
    assert result.details.total == len(severities)


def test_vulnerability_counts(request_factory):
    result = cond.vulnerability_score(
        request_factory(vulnerabilities=_vulns("critical", "high", "medium", "low", "low"))
    )
    assert result.details.model_dump() == {
        "critical": 1, "high": 1, "medium": 1, "low": 2, "total": 5,
    }
    assert result.score == 10 + 5 + 2 + 2


# ── Compatibility ────────────────────────────────────────────────────


def test_missing_compatibility_test(request_factory):
    result = cond.compatibility_score(request_factory(compatibilityTest=None))
    assert (result.score, result.status, result.action) == (0, CompatibilityStatus.UNKNOWN, "required")


@pytest.mark.parametrize(
    "value, status, action",
    [
        (100, CompatibilityStatus.EXCELLENT, "proceed"),
        (95, CompatibilityStatus.EXCELLENT, "proceed"),
        (94.9, CompatibilityStatus.GOOD, "caution"),
        (80, CompatibilityStatus.GOOD, "caution"),
        (79, CompatibilityStatus.ACCEPTABLE, "review"),
        (60, CompatibilityStatus.ACCEPTABLE, "review"),
        (59.9, CompatibilityStatus.POOR, "reject"),
        (0, CompatibilityStatus.POOR, "reject"),
    ],
)
def test_compatibility_bands(request_factory, value, status, action):
    result = cond.compatibility_score(request_factory(compatibilityTest={"compatibility": value}))
    assert (result.status, result.action) == (status, action)
    assert result.score == value


# ── Performance ──────────────────────────────────────────────────────


def test_missing_performance_test(request_factory):
    result = cond.performance_impact(request_factory(performanceTest=None))
    assert (result.level, result.action) == (PerformanceLevel.UNKNOWN, "required")


@pytest.mark.parametrize(
    "impact, level, action",
    [
        (0, PerformanceLevel.MINIMAL, "proceed"),
        (5, PerformanceLevel.MINIMAL, "proceed"),
        (5.1, PerformanceLevel.MODERATE, "monitor"),
        (15, PerformanceLevel.MODERATE, "monitor"),
        (25, PerformanceLevel.SIGNIFICANT, "review"),
        (25.1, PerformanceLevel.SEVERE, "reject"),
    ],
)
def test_performance_bands(request_factory, impact, level, action):
    result = cond.performance_impact(
        request_factory(performanceTest={"memoryImpact": impact})
    )
    assert (result.level, result.action) == (level, action)


def test_performance_uses_worst_dimension(request_factory):
    result = cond.performance_impact(
        request_factory(performanceTest={"responseTimeImpact": 3, "memoryImpact": 12, "cpuImpact": 30})
    )
    assert result.impact == 30
    assert result.level == PerformanceLevel.SEVERE
    assert result.details.cpu == 30


# ── Testing, rollback, maintenance ───────────────────────────────────


def _policy(**rules):
    return Policy(name="test", rules=PolicyRules(**rules))


def test_testing_required_but_missing(request_factory):
    result = cond.testing_requirements(
        request_factory(performanceTest=None), _policy(require_testing=True)
    )
    assert result.action == RequirementAction.REQUIRED
    assert not result.completed


def test_testing_below_policy_minimum_fails(request_factory):
    result = cond.testing_requirements(
        request_factory(compatibilityTest={"compatibility": 79}), _policy(require_testing=True)
    )
    assert result.completed and not result.passed
    assert result.action == RequirementAction.FAILED


def test_testing_not_required_passes(request_factory):
    result = cond.testing_requirements(
        request_factory(compatibilityTest=None), _policy(require_testing=False)
    )
    assert result.action == RequirementAction.PASSED


@pytest.mark.parametrize(
    "backup, plan, action",
    [
        (True, "restore snapshot", RequirementAction.PASSED),
        (True, None, RequirementAction.REQUIRED),
        (False, "restore snapshot", RequirementAction.REQUIRED),
    ],
)
def test_rollback_requirements(request_factory, backup, plan, action):
    result = cond.rollback_requirements(
        request_factory(backup=backup, rollbackPlan=plan), _policy(require_rollback=True)
    )
    assert result.action == action


def test_rollback_not_required(request_factory):
    result = cond.rollback_requirements(
        request_factory(backup=False, rollbackPlan=None), _policy(require_rollback=False)
    )
    assert result.action == RequirementAction.PASSED


def test_maintenance_window_not_required():
    check = cond.maintenance_window(_policy(require_maintenance_window=False), [], None)
    assert not check.required and check.available


def test_maintenance_window_required_and_open():
    window = MaintenanceWindow(id="w1", start=START, end=START.replace(hour=14))
    check = cond.maintenance_window(_policy(require_maintenance_window=True), [window], None)
    assert check.required and check.available
    assert [w.id for w in check.current_windows] == ["w1"]
