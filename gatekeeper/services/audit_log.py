"""Audit log — append-only record of every decision and state transition."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from gatekeeper.schemas.audit import (
    ENTRY_FOR_DETAILS,
    AuditDetails,
    AuditEntry,
    AuditPage,
)
from gatekeeper.services.notifications import NotificationDispatcher
from gatekeeper.services.persistence import PersistenceFacade
from gatekeeper.utils.crypto import AuditSigner
from gatekeeper.utils.ids import as_utc, new_id, utcnow

logger = logging.getLogger(__name__)


def _signing_payload(entry: AuditEntry) -> str:
    return entry.model_dump_json(by_alias=True, exclude={"signature"})


class AuditLog:
    def __init__(
        self,
        persistence: PersistenceFacade,
        dispatcher: NotificationDispatcher,
        *,
        signer: AuditSigner | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.persistence = persistence
        self.dispatcher = dispatcher
        self.signer = signer
        self.clock = clock
        self._entries: list[AuditEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[AuditEntry, ...]:
        return tuple(self._entries)

    async def load(self) -> None:
        self._entries = await self.persistence.load_audit()

    async def append(self, action: str, details: AuditDetails) -> AuditEntry:
        """Stamp, keep, durably append, and announce one entry.

        A failed durable write is logged by the persistence layer and does
        not raise.
        """
        entry_cls = ENTRY_FOR_DETAILS[type(details)]
        entry = entry_cls(id=new_id(), timestamp=self.clock(), action=action, details=details)
        if self.signer is not None:
            entry = entry.model_copy(update={"signature": self.signer.sign(_signing_payload(entry))})

        self._entries.append(entry)
        await self.persistence.append_audit(entry)
        await self.dispatcher.emit("audit:log", entry)
        return entry

    def query(
        self,
        *,
        type: str | None = None,
        action: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> AuditPage:
        """Filter, sort newest first, then paginate."""
        # newest first; equal timestamps keep reverse insertion order
        filtered = self._entries[::-1]
        if type:
            filtered = [e for e in filtered if e.type == type]
        if action:
            filtered = [e for e in filtered if e.action == action]
        if start is not None:
            start = as_utc(start)
            filtered = [e for e in filtered if e.timestamp >= start]
        if end is not None:
            end = as_utc(end)
            filtered = [e for e in filtered if e.timestamp <= end]

        filtered.sort(key=lambda e: e.timestamp, reverse=True)
        return AuditPage(
            entries=filtered[offset:offset + limit],
            total=len(filtered),
            offset=offset,
            limit=limit,
        )

    def verify(self) -> list[str]:
        """Ids of entries whose signature is missing or does not match."""
        if self.signer is None:
            return []
        return [
            e.id
            for e in self._entries
            if not e.signature or not self.signer.verify(_signing_payload(e), e.signature)
        ]
