"""Persistence facade — durable copies of policies, queue, schedule and audit log.

Policies, the approval queue and the maintenance schedule are whole-document
replaced on every save. The audit log is insert-only, one row per entry.

Writes are best-effort: a failed write is logged, the payload is kept as
dirty, and every later write retries the dirty documents first. Callers keep
their in-memory state either way.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gatekeeper.errors import PersistenceError
from gatekeeper.models.audit import AuditRecord
from gatekeeper.models.document import Document
from gatekeeper.schemas.approval import ApprovalRequest
from gatekeeper.schemas.audit import AuditEntry, audit_entry_adapter
from gatekeeper.schemas.maintenance import MaintenanceWindow
from gatekeeper.schemas.policy import Policy, PolicyCategory

logger = logging.getLogger(__name__)

POLICIES = "policies"
APPROVAL_QUEUE = "approval-queue"
MAINTENANCE_SCHEDULE = "maintenance-schedule"

_WRITE_ERRORS = (SQLAlchemyError, OSError)


class DocumentStore:
    """Key → JSON document store plus the insert-only audit table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def load(self, key: str) -> Any | None:
        async with self._session_factory() as session:
            doc = await session.get(Document, key)
            return json.loads(doc.body) if doc else None

    async def save(self, key: str, value: Any) -> int:
        """Replace the document at ``key``; returns its new version."""
        body = json.dumps(value)
        async with self._session_factory() as session:
            doc = await session.get(Document, key)
            if doc is None:
                doc = Document(key=key, body=body, version=1)
                session.add(doc)
            else:
                doc.body = body
                doc.version += 1
            await session.commit()
            return doc.version

    async def append_line(self, entry: AuditEntry, line: str) -> None:
        async with self._session_factory() as session:
            session.add(
                AuditRecord(
                    entry_id=entry.id,
                    timestamp=entry.timestamp,
                    type=entry.type,
                    action=entry.action,
                    line=line,
                )
            )
            await session.commit()

    async def load_lines(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(AuditRecord.line).order_by(AuditRecord.seq))
            return list(result.scalars().all())


class PersistenceFacade:
    def __init__(self, store: DocumentStore):
        self.store = store
        self._dirty: dict[str, Any] = {}
        self._pending_lines: list[tuple[AuditEntry, str]] = []

    @property
    def dirty_keys(self) -> list[str]:
        return sorted(self._dirty)

    @property
    def pending_audit_lines(self) -> int:
        return len(self._pending_lines)

    @property
    def unsaved_keys(self) -> list[str]:
        """Dirty document keys, plus ``audit-log`` while audit lines are queued."""
        keys = self.dirty_keys
        if self._pending_lines:
            keys.append("audit-log")
        return keys

    # ── Loading (failures are fatal: the engine cannot start blind) ──

    async def _load(self, key: str) -> Any | None:
        try:
            return await self.store.load(key)
        except (*_WRITE_ERRORS, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to load {key}: {exc}") from exc

    async def load_policies(self) -> dict[PolicyCategory, Policy] | None:
        raw = await self._load(POLICIES)
        if raw is None:
            return None
        try:
            return {PolicyCategory(k): Policy.model_validate(v) for k, v in raw.items()}
        except (ValueError, ValidationError) as exc:
            raise PersistenceError(f"Stored policies are invalid: {exc}") from exc

    async def load_queue(self) -> list[ApprovalRequest]:
        raw = await self._load(APPROVAL_QUEUE)
        if raw is None:
            return []
        try:
            return [ApprovalRequest.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise PersistenceError(f"Stored approval queue is invalid: {exc}") from exc

    async def load_schedule(self) -> list[MaintenanceWindow] | None:
        raw = await self._load(MAINTENANCE_SCHEDULE)
        if raw is None:
            return None
        try:
            return [MaintenanceWindow.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise PersistenceError(f"Stored maintenance schedule is invalid: {exc}") from exc

    async def load_audit(self) -> list[AuditEntry]:
        try:
            lines = await self.store.load_lines()
        except _WRITE_ERRORS as exc:
            raise PersistenceError(f"Failed to load audit log: {exc}") from exc
        entries = []
        for line in lines:
            try:
                entries.append(audit_entry_adapter.validate_json(line))
            except ValidationError:
                logger.warning("Skipping unreadable audit line: %.120s", line)
        return entries

    # ── Saving (best-effort) ─────────────────────────────────────────

    async def save_policies(self, policies: dict[PolicyCategory, Policy]) -> bool:
        payload = {str(k): p.to_document() for k, p in policies.items()}
        return await self._write(POLICIES, payload)

    async def save_queue(self, queue: list[ApprovalRequest]) -> bool:
        return await self._write(APPROVAL_QUEUE, [r.to_document() for r in queue])

    async def save_schedule(self, schedule: list[MaintenanceWindow]) -> bool:
        return await self._write(MAINTENANCE_SCHEDULE, [w.to_document() for w in schedule])

    async def _write(self, key: str, payload: Any) -> bool:
        self._dirty[key] = payload
        await self._flush_documents()
        return key not in self._dirty

    async def _flush_documents(self) -> None:
        for key in list(self._dirty):
            try:
                await self.store.save(key, self._dirty[key])
            except _WRITE_ERRORS as exc:
                logger.error("Failed to save %s (kept dirty for retry): %s", key, exc)
            else:
                del self._dirty[key]

    async def append_audit(self, entry: AuditEntry) -> bool:
        """Append one entry; earlier failed lines go first so order holds."""
        line = entry.model_dump_json(by_alias=True)
        self._pending_lines.append((entry, line))
        await self._flush_lines()
        return not self._pending_lines

    async def _flush_lines(self) -> None:
        while self._pending_lines:
            entry, line = self._pending_lines[0]
            try:
                await self.store.append_line(entry, line)
            except _WRITE_ERRORS as exc:
                logger.error("Failed to write audit entry %s: %s", entry.id, exc)
                return
            self._pending_lines.pop(0)

    async def flush(self) -> list[str]:
        """Retry everything outstanding; returns the keys still dirty."""
        await self._flush_documents()
        await self._flush_lines()
        return self.unsaved_keys
