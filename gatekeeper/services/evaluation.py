"""Evaluation engine — turns an update request into an approval decision."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from gatekeeper.schemas.audit import ErrorDetails, EvaluationDetails
from gatekeeper.schemas.evaluation import (
    CompatibilityStatus,
    Conditions,
    Evaluation,
    PerformanceLevel,
    Recommendation,
    RecommendationType,
    RequirementAction,
    VulnerabilityLevel,
)
from gatekeeper.schemas.policy import EngineOptions, Policy
from gatekeeper.schemas.update_request import UpdateRequest
from gatekeeper.services import conditions as cond
from gatekeeper.services.audit_log import AuditLog
from gatekeeper.services.classifier import classify
from gatekeeper.services.maintenance import MaintenanceScheduler
from gatekeeper.services.policy_registry import PolicyRegistry
from gatekeeper.utils.ids import utcnow

logger = logging.getLogger(__name__)


def evaluate_conditions(
    request: UpdateRequest,
    policy: Policy,
    scheduler: MaintenanceScheduler,
    now: datetime,
) -> Conditions:
    window = cond.maintenance_window(
        policy,
        scheduler.current_windows(now) if policy.rules.require_maintenance_window else [],
        scheduler.next_window(now) if policy.rules.require_maintenance_window else None,
    )
    return Conditions(
        vulnerability_score=cond.vulnerability_score(request),
        compatibility_score=cond.compatibility_score(request),
        performance_impact=cond.performance_impact(request),
        maintenance_window=window,
        testing_requirements=cond.testing_requirements(request, policy),
        rollback_requirements=cond.rollback_requirements(request, policy),
    )


def requires_approval(options: EngineOptions, policy: Policy, c: Conditions) -> bool:
    """Any single rule forces a human decision; checked in this order."""
    return (
        options.approval_required
        or not policy.rules.auto_approve
        or c.vulnerability_score.level in (VulnerabilityLevel.CRITICAL, VulnerabilityLevel.HIGH)
        or c.compatibility_score.status == CompatibilityStatus.POOR
        or c.performance_impact.level == PerformanceLevel.SEVERE
        or c.testing_requirements.action == RequirementAction.FAILED
        or c.rollback_requirements.action == RequirementAction.REQUIRED
    )


def favorable(c: Conditions) -> list[bool]:
    """The per-condition facts that must all hold for auto-approval."""
    return [
        c.vulnerability_score.level in (VulnerabilityLevel.NONE, VulnerabilityLevel.LOW),
        c.compatibility_score.status in (CompatibilityStatus.EXCELLENT, CompatibilityStatus.GOOD),
        c.performance_impact.level in (PerformanceLevel.MINIMAL, PerformanceLevel.MODERATE),
        c.testing_requirements.action == RequirementAction.PASSED,
        c.rollback_requirements.action == RequirementAction.PASSED,
    ]


def can_auto_approve(options: EngineOptions, policy: Policy, c: Conditions, approval_required: bool) -> bool:
    return (
        options.auto_approve_safe_updates
        and policy.rules.auto_approve
        and not approval_required
        and all(favorable(c))
    )


def recommendations(c: Conditions) -> list[Recommendation]:
    recs = []
    vuln = c.vulnerability_score
    if vuln.level != VulnerabilityLevel.NONE:
        total = vuln.details.total if vuln.details else 0
        recs.append(Recommendation(
            type=RecommendationType.SECURITY,
            priority=str(vuln.level),
            message=f"Vulnerabilities found: {total} ({vuln.level})",
            action=vuln.action,
        ))

    compat = c.compatibility_score
    if compat.status != CompatibilityStatus.EXCELLENT:
        recs.append(Recommendation(
            type=RecommendationType.COMPATIBILITY,
            priority="high" if compat.status == CompatibilityStatus.POOR else "medium",
            message=f"Compatibility: {compat.score:g}% ({compat.status})",
            action=compat.action,
        ))

    perf = c.performance_impact
    if perf.level != PerformanceLevel.MINIMAL:
        recs.append(Recommendation(
            type=RecommendationType.PERFORMANCE,
            priority="high" if perf.level == PerformanceLevel.SEVERE else "medium",
            message=f"Performance impact: {perf.impact:g}% ({perf.level})",
            action=perf.action,
        ))

    window = c.maintenance_window
    if window.required and not window.available:
        recs.append(Recommendation(
            type=RecommendationType.MAINTENANCE,
            priority="medium",
            message="A maintenance window is required",
            action="schedule",
            next_window=window.next_window,
        ))

    if c.testing_requirements.action == RequirementAction.REQUIRED:
        recs.append(Recommendation(
            type=RecommendationType.TESTING,
            priority="high",
            message="Compatibility and performance tests are required",
            action="run_tests",
        ))

    if c.rollback_requirements.action == RequirementAction.REQUIRED:
        recs.append(Recommendation(
            type=RecommendationType.ROLLBACK,
            priority="high",
            message="A backup and rollback plan are required",
            action="prepare_rollback",
        ))
    return recs


class EvaluationEngine:
    def __init__(
        self,
        registry: PolicyRegistry,
        scheduler: MaintenanceScheduler,
        audit: AuditLog,
        options: EngineOptions,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.audit = audit
        self.options = options
        self.clock = clock

    async def evaluate(self, request: UpdateRequest) -> Evaluation:
        """Score the request against its policy and decide. Always audited."""
        logger.info("Evaluating update request %s", request.id)
        try:
            category = classify(request)
            policy = self.registry.get(category)
            now = self.clock()
            c = evaluate_conditions(request, policy, self.scheduler, now)
            approval_required = requires_approval(self.options, policy, c)
            evaluation = Evaluation(
                request_id=request.id,
                timestamp=now,
                policy=category,
                conditions=c,
                approval_required=approval_required,
                auto_approve=can_auto_approve(self.options, policy, c, approval_required),
                recommendations=recommendations(c),
            )
        except Exception as exc:
            await self.audit.append(
                "evaluation_failed", ErrorDetails(request_id=request.id, error=str(exc))
            )
            raise

        await self.audit.append("update_request_evaluated", EvaluationDetails(evaluation=evaluation))
        logger.info(
            "Evaluated %s as %s: %s",
            request.id,
            category,
            "approval required" if approval_required else "no approval required",
        )
        return evaluation
