"""Policy registry — per-category rules and scoring thresholds."""

from __future__ import annotations

import logging

from gatekeeper.errors import PolicyNotFoundError
from gatekeeper.schemas.audit import ConfigurationDetails
from gatekeeper.schemas.policy import (
    EngineOptions,
    Policy,
    PolicyCategory,
    PolicyRules,
    Priority,
)
from gatekeeper.services.audit_log import AuditLog
from gatekeeper.services.persistence import PersistenceFacade

logger = logging.getLogger(__name__)

# category → (name, description, priority, auto_approve, testing, rollback, window)
_DEFAULTS: dict[PolicyCategory, tuple[str, str, Priority, bool, bool, bool, bool]] = {
    PolicyCategory.SECURITY: (
        "Security Updates", "Critical security fixes", Priority.HIGH, False, True, True, True,
    ),
    PolicyCategory.PATCH: (
        "Patch Updates", "Patch-level releases", Priority.MEDIUM, True, False, False, False,
    ),
    PolicyCategory.MINOR: (
        "Minor Updates", "Minor releases with new features", Priority.MEDIUM, False, True, True, True,
    ),
    PolicyCategory.MAJOR: (
        "Major Updates", "Major releases with breaking changes", Priority.HIGH, False, True, True, True,
    ),
    PolicyCategory.DEPENDENCY: (
        "Dependency Updates", "Other dependency changes", Priority.MEDIUM, False, True, True, False,
    ),
}


def default_policies(options: EngineOptions) -> dict[PolicyCategory, Policy]:
    policies = {}
    for category, (name, desc, priority, auto, testing, rollback, window) in _DEFAULTS.items():
        policies[category] = Policy(
            name=name,
            description=desc,
            priority=priority,
            rules=PolicyRules(
                auto_approve=auto,
                require_testing=testing,
                require_rollback=rollback,
                require_maintenance_window=window,
                approvers=list(options.approvers),
                notification_channels=list(options.notification_channels),
            ),
        )
    return policies


class PolicyRegistry:
    def __init__(self, persistence: PersistenceFacade, audit: AuditLog, options: EngineOptions):
        self.persistence = persistence
        self.audit = audit
        self.options = options
        self._policies: dict[PolicyCategory, Policy] = {}

    async def load(self) -> None:
        stored = await self.persistence.load_policies()
        if stored is None:
            logger.info("No stored policies — creating defaults")
            self._policies = default_policies(self.options)
            await self.persistence.save_policies(self._policies)
        else:
            self._policies = stored

    def get(self, category: PolicyCategory | str) -> Policy:
        try:
            return self._policies[PolicyCategory(category)]
        except (KeyError, ValueError):
            raise PolicyNotFoundError(str(category)) from None

    def all(self) -> dict[PolicyCategory, Policy]:
        return dict(self._policies)

    async def set_policy(self, category: PolicyCategory, policy: Policy) -> Policy:
        self._policies[category] = policy
        await self.persistence.save_policies(self._policies)
        await self.audit.append("policy_updated", ConfigurationDetails(categories=[str(category)]))
        logger.info("Policy %s updated", category)
        return policy

    async def replace(self, policies: dict[PolicyCategory, Policy]) -> None:
        self._policies = dict(policies)
        await self.persistence.save_policies(self._policies)
