"""Abstract contracts for the collaborators the engine drives.

Swap the shipped executor or channels by implementing these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from gatekeeper.errors import ExecutionError
from gatekeeper.schemas.approval import (
    ApprovalRequest,
    ExecutionResult,
    ExecutionStep,
    ExecutionStepName,
)
from gatekeeper.utils.ids import utcnow


class UpdateExecutor(ABC):
    """Performs an approved update: backup → update → verification.

    ``execute`` runs the three stages in order and records one step per
    stage. A stage signals failure by raising; the steps completed so far
    travel on the resulting ``ExecutionError``.
    """

    @abstractmethod
    async def backup(self, request: ApprovalRequest) -> str:
        """Snapshot whatever the update may break. Returns a short detail."""

    @abstractmethod
    async def apply(self, request: ApprovalRequest) -> str:
        """Install the updates."""

    @abstractmethod
    async def verify(self, request: ApprovalRequest) -> str:
        """Check the system still works after the update."""

    async def rollback(self, request: ApprovalRequest) -> str:
        """Undo a failed update. Optional."""
        raise NotImplementedError(f"{type(self).__name__} cannot roll back")

    async def execute(self, request: ApprovalRequest) -> ExecutionResult:
        steps: list[ExecutionStep] = []
        stages = (
            (ExecutionStepName.BACKUP, self.backup),
            (ExecutionStepName.UPDATE, self.apply),
            (ExecutionStepName.VERIFICATION, self.verify),
        )
        for name, stage in stages:
            try:
                detail = await stage(request)
            except ExecutionError as exc:
                steps.append(_step(name, "failed", str(exc)))
                raise ExecutionError(str(exc), steps) from exc
            except Exception as exc:
                steps.append(_step(name, "failed", str(exc)))
                raise ExecutionError(f"{name} step failed: {exc}", steps) from exc
            steps.append(_step(name, "completed", detail or ""))
        return ExecutionResult(steps=steps, message="completed")


def _step(name: ExecutionStepName, status: str, detail: str) -> ExecutionStep:
    return ExecutionStep(step=name, status=status, timestamp=utcnow(), detail=detail)


class NotificationChannel(ABC):
    """A delivery channel (email, chat, webhook…) for workflow notifications."""

    name: str

    @abstractmethod
    async def send(self, kind: str, payload: dict[str, Any]) -> None:
        """Deliver one notification. May raise; the dispatcher logs and moves on."""
