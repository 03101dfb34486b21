"""UpdatePolicyEngine — builds the components once and exposes the boundary operations.

One instance per process; the HTTP layer and any scheduler share it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import Request
from pydantic import ValidationError
from pydantic.alias_generators import to_snake
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gatekeeper.adapters.base import NotificationChannel, UpdateExecutor
from gatekeeper.adapters.executor import NoopExecutor, build_executor
from gatekeeper.adapters.notify import LogChannel, WebhookChannel
from gatekeeper.config import Settings
from gatekeeper.errors import ConfigurationError
from gatekeeper.schemas.approval import ApprovalRequest, ApprovalStatistics, ApprovalStatus, SubmitResult
from gatekeeper.schemas.audit import AuditPage, ConfigurationDetails, ErrorDetails
from gatekeeper.schemas.evaluation import Evaluation
from gatekeeper.schemas.export import PolicyExport, PolicyImport
from gatekeeper.schemas.maintenance import MaintenanceWindow, MaintenanceWindowCreate
from gatekeeper.schemas.policy import EngineOptions, Policy, PolicyCategory
from gatekeeper.schemas.update_request import UpdateRequest
from gatekeeper.services.approval_workflow import ApprovalWorkflow
from gatekeeper.services.audit_log import AuditLog
from gatekeeper.services.evaluation import EvaluationEngine
from gatekeeper.services.maintenance import MaintenanceScheduler
from gatekeeper.services.notifications import NotificationDispatcher
from gatekeeper.services.persistence import DocumentStore, PersistenceFacade
from gatekeeper.services.policy_registry import PolicyRegistry
from gatekeeper.utils.crypto import AuditSigner
from gatekeeper.utils.ids import utcnow

logger = logging.getLogger(__name__)


def options_from_settings(settings: Settings) -> EngineOptions:
    return EngineOptions(
        approval_required=settings.approval_required,
        auto_approve_safe_updates=settings.auto_approve_safe_updates,
        max_approval_time=settings.max_approval_time,
        rollback_enabled=settings.rollback_enabled,
        notification_channels=list(settings.notification_channels),
        approvers=list(settings.approvers),
    )


def channels_from_settings(settings: Settings) -> list[NotificationChannel]:
    channels: list[NotificationChannel] = [LogChannel()]
    if settings.notification_webhook_url:
        channels.append(
            WebhookChannel(settings.notification_webhook_url, timeout=settings.notification_timeout)
        )
    return channels


class UpdatePolicyEngine:
    def __init__(
        self,
        persistence: PersistenceFacade,
        *,
        options: EngineOptions | None = None,
        executor: UpdateExecutor | None = None,
        dispatcher: NotificationDispatcher | None = None,
        signer: AuditSigner | None = None,
        maintenance_seed: list[dict] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.options = options or EngineOptions()
        self.persistence = persistence
        self.dispatcher = dispatcher or NotificationDispatcher(
            [LogChannel()], default_channels=self.options.notification_channels
        )
        self.maintenance_seed = maintenance_seed or []
        self.clock = clock
        self.audit = AuditLog(persistence, self.dispatcher, signer=signer, clock=clock)
        self.registry = PolicyRegistry(persistence, self.audit, self.options)
        self.scheduler = MaintenanceScheduler(persistence, self.audit, clock=clock)
        self.evaluator = EvaluationEngine(
            self.registry, self.scheduler, self.audit, self.options, clock=clock
        )
        self.workflow = ApprovalWorkflow(
            self.registry,
            persistence,
            self.audit,
            self.dispatcher,
            executor or NoopExecutor(),
            self.options,
            clock=clock,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        **overrides,
    ) -> UpdatePolicyEngine:
        options = overrides.pop("options", None) or options_from_settings(settings)
        signer = None
        if settings.audit_signing_key:
            signer = AuditSigner.from_pem_file(settings.audit_signing_key)
        overrides.setdefault("executor", build_executor(settings))
        overrides.setdefault(
            "dispatcher",
            NotificationDispatcher(
                channels_from_settings(settings),
                default_channels=options.notification_channels,
            ),
        )
        return cls(
            PersistenceFacade(DocumentStore(session_factory)),
            options=options,
            signer=signer,
            maintenance_seed=list(settings.maintenance_windows),
            **overrides,
        )

    async def initialize(self) -> None:
        """Load every document; policies get defaults on first run."""
        await self.audit.load()
        await self.registry.load()
        await self.workflow.load()
        await self.scheduler.load(self.maintenance_seed)
        logger.info(
            "Engine ready: %d policies, %d approval requests, %d windows, %d audit entries",
            len(self.registry.all()),
            len(self.workflow.list_requests()),
            len(self.scheduler.list_windows()),
            len(self.audit),
        )

    # ── Evaluation ───────────────────────────────────────────────────

    async def evaluate(self, request: UpdateRequest) -> Evaluation:
        return await self.evaluator.evaluate(request)

    async def submit(self, request: UpdateRequest) -> SubmitResult:
        """Evaluate, then open an approval request when one is needed."""
        evaluation = await self.evaluate(request)
        approval = None
        if evaluation.approval_required:
            approval = await self.workflow.create_approval_request(request, evaluation)
        return SubmitResult(evaluation=evaluation, approval_request=approval)

    # ── Policies ─────────────────────────────────────────────────────

    def get_policy(self, category: PolicyCategory | str) -> Policy:
        return self.registry.get(category)

    def list_policies(self) -> dict[PolicyCategory, Policy]:
        return self.registry.all()

    async def set_policy(self, category: PolicyCategory, policy: Policy) -> Policy:
        return await self.registry.set_policy(category, policy)

    # ── Workflow ─────────────────────────────────────────────────────

    def get_approval(self, approval_id: str) -> ApprovalRequest:
        return self.workflow.get(approval_id)

    def list_approvals(self, status: ApprovalStatus | None = None) -> list[ApprovalRequest]:
        return self.workflow.list_requests(status)

    async def create_approval_request(
        self, request: UpdateRequest, evaluation: Evaluation
    ) -> ApprovalRequest:
        return await self.workflow.create_approval_request(request, evaluation)

    async def approve(self, approval_id: str, approver: str, comment: str | None = None) -> ApprovalRequest:
        return await self.workflow.approve(approval_id, approver, comment)

    async def reject(
        self, approval_id: str, approver: str, reason: str, comment: str | None = None
    ) -> ApprovalRequest:
        return await self.workflow.reject(approval_id, approver, reason, comment)

    async def cancel(self, approval_id: str, actor: str, reason: str = "") -> ApprovalRequest:
        return await self.workflow.cancel(approval_id, actor, reason)

    async def process_expired_requests(self) -> int:
        return await self.workflow.process_expired_requests()

    def get_approval_statistics(self) -> ApprovalStatistics:
        return self.workflow.get_approval_statistics()

    # ── Maintenance ──────────────────────────────────────────────────

    def list_windows(self) -> list[MaintenanceWindow]:
        return self.scheduler.list_windows()

    def next_window(self) -> MaintenanceWindow | None:
        return self.scheduler.next_window()

    async def add_window(self, window: MaintenanceWindowCreate) -> MaintenanceWindow:
        return await self.scheduler.add_window(window)

    async def remove_window(self, window_id: str) -> MaintenanceWindow:
        return await self.scheduler.remove_window(window_id)

    # ── Audit ────────────────────────────────────────────────────────

    def get_audit_history(self, **filters) -> AuditPage:
        return self.audit.query(**filters)

    def verify_audit(self) -> list[str]:
        return self.audit.verify()

    # ── Policy import / export ───────────────────────────────────────

    def export_policies(self) -> PolicyExport:
        return PolicyExport(
            policies=self.registry.all(),
            maintenance_schedule=self.scheduler.list_windows(),
            configuration=self.options.model_copy(deep=True),
            exported_at=self.clock(),
        )

    async def import_policies(self, config: PolicyImport) -> None:
        """Replace the parts present in ``config``; merge configuration options.

        The merged options are validated before anything changes, so a bad
        import leaves policies, schedule and options untouched.
        """
        merged = None
        if config.configuration:
            try:
                merged = EngineOptions.model_validate(
                    {**self.options.model_dump(), **{to_snake(k): v for k, v in config.configuration.items()}}
                )
            except ValidationError as exc:
                await self.audit.append("policies_import_failed", ErrorDetails(error=str(exc)))
                raise ConfigurationError(f"Invalid configuration in import: {exc}") from exc

        if config.policies is not None:
            await self.registry.replace(config.policies)
        if config.maintenance_schedule is not None:
            await self.scheduler.replace(config.maintenance_schedule)

        keys: list[str] = []
        if merged is not None:
            for name in EngineOptions.model_fields:
                setattr(self.options, name, getattr(merged, name))
            self.dispatcher.default_channels = list(self.options.notification_channels)
            keys = sorted(config.configuration)

        await self.audit.append(
            "policies_imported",
            ConfigurationDetails(
                categories=[str(c) for c in config.policies or {}],
                maintenance_windows=(
                    len(config.maintenance_schedule) if config.maintenance_schedule is not None else None
                ),
                configuration_keys=keys,
            ),
        )
        logger.info("Policy configuration imported")

    # ── Housekeeping ─────────────────────────────────────────────────

    async def run_expiry_sweeper(self, interval: float) -> None:
        """Sweep expired requests forever; cancel the task to stop."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.process_expired_requests()
                await self.persistence.flush()
            except Exception:
                logger.exception("Expiry sweep failed")


def get_engine(request: Request) -> UpdatePolicyEngine:
    """FastAPI dependency: the engine built during app startup."""
    return request.app.state.engine
