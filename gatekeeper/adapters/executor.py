"""Shipped update executors.

``NoopExecutor`` only records the stages. ``CommandExecutor`` runs one shell
command per stage; the approval's package list is exposed to the commands
through ``GATEKEEPER_*`` environment variables.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shlex

from gatekeeper.adapters.base import UpdateExecutor
from gatekeeper.config import Settings
from gatekeeper.errors import ExecutionError
from gatekeeper.schemas.approval import ApprovalRequest

logger = logging.getLogger(__name__)


class NoopExecutor(UpdateExecutor):
    async def backup(self, request: ApprovalRequest) -> str:
        return "skipped"

    async def apply(self, request: ApprovalRequest) -> str:
        return "skipped"

    async def verify(self, request: ApprovalRequest) -> str:
        return "skipped"

    async def rollback(self, request: ApprovalRequest) -> str:
        return "skipped"


async def _run(
    cmd: list[str],
    *,
    timeout: float = 600.0,
    env_extra: dict | None = None,
) -> tuple[int, str, str]:
    """Run a subprocess and return (returncode, stdout, stderr)."""
    env = os.environ.copy()
    if env_extra:
        env.update(env_extra)

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            proc.communicate(), timeout=timeout,
        )
        return (
            proc.returncode or 0,
            stdout_bytes.decode(errors="replace").strip(),
            stderr_bytes.decode(errors="replace").strip(),
        )
    except FileNotFoundError:
        return (127, "", f"Command not found: {cmd[0]}")
    except TimeoutError:
        proc.kill()  # type: ignore[possibly-undefined]
        await proc.wait()
        return (1, "", f"Command timed out after {timeout}s")


class CommandExecutor(UpdateExecutor):
    def __init__(
        self,
        *,
        backup_command: str = "",
        update_command: str = "",
        verify_command: str = "",
        rollback_command: str = "",
        timeout: float = 600.0,
    ):
        self.commands = {
            "backup": backup_command,
            "update": update_command,
            "verify": verify_command,
            "rollback": rollback_command,
        }
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> CommandExecutor:
        return cls(
            backup_command=settings.backup_command,
            update_command=settings.update_command,
            verify_command=settings.verify_command,
            rollback_command=settings.rollback_command,
            timeout=settings.executor_timeout,
        )

    def _env(self, request: ApprovalRequest) -> dict[str, str]:
        update = request.metadata.update_request
        return {
            "GATEKEEPER_APPROVAL_ID": request.id,
            "GATEKEEPER_REQUEST_ID": request.request_id,
            "GATEKEEPER_POLICY": str(request.policy),
            "GATEKEEPER_UPDATES": json.dumps(
                [u.model_dump(mode="json", by_alias=True) for u in update.updates]
            ),
        }

    async def _stage(self, stage: str, request: ApprovalRequest) -> str:
        command = self.commands[stage]
        if not command:
            return "no command configured"
        logger.info("Running %s command for %s: %s", stage, request.request_id, command)
        code, out, err = await _run(
            shlex.split(command), timeout=self.timeout, env_extra=self._env(request)
        )
        if code != 0:
            raise ExecutionError(f"{stage} command exited {code}: {err or out}")
        return out[-500:]

    async def backup(self, request: ApprovalRequest) -> str:
        return await self._stage("backup", request)

    async def apply(self, request: ApprovalRequest) -> str:
        return await self._stage("update", request)

    async def verify(self, request: ApprovalRequest) -> str:
        return await self._stage("verify", request)

    async def rollback(self, request: ApprovalRequest) -> str:
        return await self._stage("rollback", request)


def build_executor(settings: Settings) -> UpdateExecutor:
    if settings.executor == "command":
        return CommandExecutor.from_settings(settings)
    return NoopExecutor()
