"""Approval workflow — the approval request state machine.

    pending ──► approved ──► executed
       │                └──► execution_failed
       ├──► rejected
       ├──► expired
       └──► cancelled

Quorum is ceil(approvers / 2) distinct approvals; a single authorized
rejection is final. Every vote, cancellation and expiry is persisted before
it is audited and announced.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta

from gatekeeper.adapters.base import UpdateExecutor
from gatekeeper.errors import (
    DuplicateVoteError,
    ExecutionError,
    GatekeeperError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from gatekeeper.schemas.approval import (
    ApprovalMetadata,
    ApprovalRequest,
    ApprovalStatistics,
    ApprovalStatus,
    ApproverStats,
    Cancellation,
    Execution,
    ExecutionStep,
    ExecutionStepName,
    PolicyStats,
    Rejection,
    Vote,
)
from gatekeeper.schemas.audit import (
    ApprovalDetails,
    ApprovalRequestDetails,
    ErrorDetails,
    ExecutionDetails,
)
from gatekeeper.schemas.evaluation import Evaluation
from gatekeeper.schemas.policy import EngineOptions
from gatekeeper.schemas.update_request import UpdateRequest
from gatekeeper.services.audit_log import AuditLog
from gatekeeper.services.notifications import NotificationDispatcher
from gatekeeper.services.persistence import PersistenceFacade
from gatekeeper.services.policy_registry import PolicyRegistry
from gatekeeper.utils.ids import new_id, utcnow

logger = logging.getLogger(__name__)


class ApprovalWorkflow:
    def __init__(
        self,
        registry: PolicyRegistry,
        persistence: PersistenceFacade,
        audit: AuditLog,
        dispatcher: NotificationDispatcher,
        executor: UpdateExecutor,
        options: EngineOptions,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.persistence = persistence
        self.audit = audit
        self.dispatcher = dispatcher
        self.executor = executor
        self.options = options
        self.clock = clock
        self._queue: list[ApprovalRequest] = []

    async def load(self) -> None:
        self._queue = await self.persistence.load_queue()

    async def replace(self, queue: list[ApprovalRequest]) -> None:
        self._queue = list(queue)
        await self.persistence.save_queue(self._queue)

    # ── Lookup ───────────────────────────────────────────────────────

    def get(self, approval_id: str) -> ApprovalRequest:
        for request in self._queue:
            if request.id == approval_id:
                return request
        raise NotFoundError(f"Approval request not found: {approval_id}")

    def list_requests(self, status: ApprovalStatus | str | None = None) -> list[ApprovalRequest]:
        requests = [r for r in self._queue if status is None or r.status == status]
        return sorted(requests, key=lambda r: r.timestamp, reverse=True)

    # ── Creation ─────────────────────────────────────────────────────

    async def create_approval_request(
        self, update_request: UpdateRequest, evaluation: Evaluation
    ) -> ApprovalRequest:
        try:
            policy = self.registry.get(evaluation.policy)
        except GatekeeperError as exc:
            await self.audit.append(
                "approval_request_failed",
                ErrorDetails(request_id=update_request.id, error=str(exc)),
            )
            raise

        now = self.clock()
        request = ApprovalRequest(
            id=new_id(),
            request_id=update_request.id,
            timestamp=now,
            policy=evaluation.policy,
            requester=update_request.requester,
            approvers=list(policy.rules.approvers),
            conditions=evaluation.conditions.model_copy(deep=True),
            recommendations=[r.model_copy(deep=True) for r in evaluation.recommendations],
            deadline=now + timedelta(milliseconds=self.options.max_approval_time),
            metadata=ApprovalMetadata(
                update_request=update_request.model_copy(deep=True),
                evaluation=evaluation.model_copy(deep=True),
            ),
        )
        if not request.approvers:
            logger.warning("Policy %s lists no approvers; request %s can only expire", request.policy, request.id)

        self._queue.append(request)
        await self.persistence.save_queue(self._queue)
        await self.audit.append(
            "created",
            ApprovalRequestDetails(
                approval_id=request.id,
                request_id=request.request_id,
                policy=request.policy,
                approvers=request.approvers,
                deadline=request.deadline,
            ),
        )
        await self._notify(
            "approval_request",
            {
                "id": request.id,
                "requestId": request.request_id,
                "policy": str(request.policy),
                "deadline": request.deadline.isoformat(),
                "approvers": request.approvers,
                "recommendations": [r.to_document() for r in request.recommendations],
            },
            policy.rules.notification_channels,
        )
        await self.dispatcher.emit("approval:created", request)
        logger.info("Approval request %s created for %s", request.id, request.request_id)
        return request

    # ── Votes ────────────────────────────────────────────────────────

    def _votable(self, approval_id: str, approver: str) -> ApprovalRequest:
        request = self.get(approval_id)
        if request.status != ApprovalStatus.PENDING:
            raise InvalidStateError(f"Approval request {approval_id} is not pending: {request.status}")
        if approver not in request.approvers:
            raise UnauthorizedError(f"Approver not authorized: {approver}")
        if request.has_voted(approver):
            raise DuplicateVoteError(approval_id, approver)
        return request

    async def approve(self, approval_id: str, approver: str, comment: str | None = None) -> ApprovalRequest:
        """Record an approval; reaching quorum approves and executes at once.

        Raises ``ExecutionError`` after recording ``execution_failed`` when
        the delegated update fails.
        """
        try:
            request = self._votable(approval_id, approver)
        except GatekeeperError as exc:
            await self.audit.append(
                "approval_failed",
                ErrorDetails(approval_id=approval_id, approver=approver, error=str(exc)),
            )
            raise

        now = self.clock()
        request.approvals.append(Vote(approver=approver, timestamp=now, comment=comment))
        reached = len(request.approvals) >= request.quorum
        if reached:
            request.status = ApprovalStatus.APPROVED
            request.approved_at = now

        await self.persistence.save_queue(self._queue)
        await self.audit.append(
            "approved",
            ApprovalDetails(
                approval_id=approval_id,
                request_id=request.request_id,
                approver=approver,
                comment=comment,
                status=request.status,
            ),
        )
        logger.info(
            "Approval %s by %s (%d/%d)", approval_id, approver, len(request.approvals), request.quorum
        )

        try:
            if reached:
                await self.execute_approved_update(request)
        finally:
            await self._notify_status(request)
            await self.dispatcher.emit("approval:updated", request)
        return request

    async def reject(
        self, approval_id: str, approver: str, reason: str, comment: str | None = None
    ) -> ApprovalRequest:
        try:
            request = self._votable(approval_id, approver)
        except GatekeeperError as exc:
            await self.audit.append(
                "rejection_failed",
                ErrorDetails(approval_id=approval_id, approver=approver, error=str(exc)),
            )
            raise

        now = self.clock()
        request.rejections.append(
            Rejection(approver=approver, reason=reason, timestamp=now, comment=comment)
        )
        request.status = ApprovalStatus.REJECTED
        request.rejected_at = now

        await self.persistence.save_queue(self._queue)
        await self.audit.append(
            "rejected",
            ApprovalDetails(
                approval_id=approval_id,
                request_id=request.request_id,
                approver=approver,
                reason=reason,
                comment=comment,
                status=request.status,
            ),
        )
        await self._notify_status(request)
        await self.dispatcher.emit("approval:updated", request)
        logger.info("Approval %s rejected by %s: %s", approval_id, approver, reason)
        return request

    async def cancel(self, approval_id: str, actor: str, reason: str = "") -> ApprovalRequest:
        """Withdraw a pending request. Allowed for its approvers and requester."""
        try:
            request = self.get(approval_id)
            if request.status != ApprovalStatus.PENDING:
                raise InvalidStateError(f"Approval request {approval_id} is not pending: {request.status}")
            if actor not in request.approvers and actor != request.requester:
                raise UnauthorizedError(f"Not allowed to cancel: {actor}")
        except GatekeeperError as exc:
            await self.audit.append(
                "cancellation_failed",
                ErrorDetails(approval_id=approval_id, approver=actor, error=str(exc)),
            )
            raise

        now = self.clock()
        request.status = ApprovalStatus.CANCELLED
        request.cancelled_at = now
        request.cancellation = Cancellation(actor=actor, reason=reason, timestamp=now)

        await self.persistence.save_queue(self._queue)
        await self.audit.append(
            "cancelled",
            ApprovalDetails(
                approval_id=approval_id,
                request_id=request.request_id,
                approver=actor,
                reason=reason,
                status=request.status,
            ),
        )
        await self._notify_status(request)
        await self.dispatcher.emit("approval:updated", request)
        logger.info("Approval %s cancelled by %s", approval_id, actor)
        return request

    # ── Expiry ───────────────────────────────────────────────────────

    async def process_expired_requests(self) -> int:
        """Expire every pending request whose deadline has passed."""
        now = self.clock()
        expired = [
            r for r in self._queue
            if r.status == ApprovalStatus.PENDING and r.deadline < now
        ]
        if not expired:
            return 0

        for request in expired:
            request.status = ApprovalStatus.EXPIRED
            request.expired_at = now
        await self.persistence.save_queue(self._queue)

        for request in expired:
            await self.audit.append(
                "expired",
                ApprovalDetails(
                    approval_id=request.id,
                    request_id=request.request_id,
                    status=request.status,
                ),
            )
            await self._notify_status(request)
            await self.dispatcher.emit("approval:updated", request)
        logger.info("Expired %d approval request(s)", len(expired))
        return len(expired)

    # ── Execution ────────────────────────────────────────────────────

    async def execute_approved_update(self, request: ApprovalRequest) -> Execution:
        """Hand an approved request to the executor and record the outcome."""
        if request.status != ApprovalStatus.APPROVED:
            raise InvalidStateError(f"Approval request {request.id} is not approved: {request.status}")

        logger.info("Executing approved update %s", request.request_id)
        execution = Execution(
            approval_id=request.id,
            request_id=request.request_id,
            started_at=self.clock(),
        )
        try:
            result = await self.executor.execute(request)
        except Exception as exc:
            steps = exc.steps if isinstance(exc, ExecutionError) else []
            execution.steps = list(steps)
            execution.status = "failed"
            execution.error = str(exc)
            if self.options.rollback_enabled:
                execution.steps.append(await self._attempt_rollback(request))
            execution.completed_at = self.clock()

            request.status = ApprovalStatus.EXECUTION_FAILED
            request.error = str(exc)
            request.execution = execution
            await self.persistence.save_queue(self._queue)
            await self.audit.append(
                "execution_failed",
                ErrorDetails(approval_id=request.id, request_id=request.request_id, error=str(exc)),
            )
            logger.error("Update %s failed: %s", request.request_id, exc)
            if isinstance(exc, ExecutionError):
                raise
            raise ExecutionError(str(exc), steps) from exc

        execution.steps = list(result.steps)
        execution.status = "completed"
        execution.completed_at = self.clock()
        request.status = ApprovalStatus.EXECUTED
        request.execution = execution

        await self.persistence.save_queue(self._queue)
        await self.audit.append(
            "update_executed",
            ExecutionDetails(approval_id=request.id, request_id=request.request_id, execution=execution),
        )
        await self.dispatcher.emit("update:executed", {"approvalRequest": request, "execution": execution})
        logger.info("Update %s executed", request.request_id)
        return execution

    async def _attempt_rollback(self, request: ApprovalRequest) -> ExecutionStep:
        try:
            detail = await self.executor.rollback(request)
        except Exception as exc:
            logger.error("Rollback of %s failed: %s", request.request_id, exc)
            return ExecutionStep(
                step=ExecutionStepName.ROLLBACK, status="failed", timestamp=self.clock(), detail=str(exc)
            )
        return ExecutionStep(
            step=ExecutionStepName.ROLLBACK, status="completed", timestamp=self.clock(), detail=detail or ""
        )

    # ── Statistics ───────────────────────────────────────────────────

    def get_approval_statistics(self) -> ApprovalStatistics:
        stats = ApprovalStatistics(
            total=len(self._queue),
            by_status={status: 0 for status in ApprovalStatus},
        )
        stats.by_status.update(Counter(r.status for r in self._queue))

        approval_times = []
        for request in self._queue:
            bucket = stats.by_policy.setdefault(str(request.policy), PolicyStats())
            bucket.total += 1
            if request.status in (ApprovalStatus.APPROVED, ApprovalStatus.EXECUTED):
                bucket.approved += 1
            elif request.status == ApprovalStatus.REJECTED:
                bucket.rejected += 1
            elif request.status == ApprovalStatus.EXPIRED:
                bucket.expired += 1

            for vote in request.approvals:
                stats.approver_stats.setdefault(vote.approver, ApproverStats()).approvals += 1
            for vote in request.rejections:
                stats.approver_stats.setdefault(vote.approver, ApproverStats()).rejections += 1

            if request.approved_at is not None:
                delta = request.approved_at - request.timestamp
                approval_times.append(delta.total_seconds() * 1000)

        if approval_times:
            stats.average_approval_time = sum(approval_times) / len(approval_times)
        return stats

    # ── Notifications ────────────────────────────────────────────────

    async def _notify(self, kind: str, payload: dict, channels: list[str] | None = None) -> None:
        await self.dispatcher.notify(kind, payload, channels or self.options.notification_channels)

    async def _notify_status(self, request: ApprovalRequest) -> None:
        try:
            channels = self.registry.get(request.policy).rules.notification_channels
        except GatekeeperError:
            channels = None
        await self._notify(
            "approval_status",
            {
                "id": request.id,
                "requestId": request.request_id,
                "status": str(request.status),
                "approvals": len(request.approvals),
                "rejections": len(request.rejections),
                "approvers": request.approvers,
            },
            channels,
        )
