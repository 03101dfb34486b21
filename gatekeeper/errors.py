"""Domain error taxonomy.

Business-rule violations are audited and surfaced to the caller; the HTTP
layer maps each class onto a status code via ``status_code``.
"""

from __future__ import annotations


class GatekeeperError(Exception):
    status_code = 500


class ConfigurationError(GatekeeperError):
    """Missing or invalid policy configuration."""

    status_code = 500


class PolicyNotFoundError(ConfigurationError):
    def __init__(self, category: str):
        super().__init__(f"No policy registered for category: {category}")
        self.category = category


class NotFoundError(GatekeeperError):
    status_code = 404


class InvalidStateError(GatekeeperError):
    """Transition attempted from a state that does not allow it."""

    status_code = 409


class DuplicateVoteError(InvalidStateError):
    def __init__(self, approval_id: str, approver: str):
        super().__init__(f"Approver {approver} already voted on {approval_id}")
        self.approval_id = approval_id
        self.approver = approver


class UnauthorizedError(GatekeeperError):
    status_code = 403


class PersistenceError(GatekeeperError):
    status_code = 500


class ExecutionError(GatekeeperError):
    """Delegated update execution failed.

    ``steps`` holds the stage records completed before the failure.
    """

    status_code = 502

    def __init__(self, message: str, steps: list | None = None):
        super().__init__(message)
        self.steps = list(steps or [])
