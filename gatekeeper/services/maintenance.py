"""Maintenance window scheduler.

Windows may overlap; a moment is inside the schedule if any window covers it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from gatekeeper.errors import NotFoundError
from gatekeeper.schemas.audit import MaintenanceDetails
from gatekeeper.schemas.maintenance import MaintenanceWindow, MaintenanceWindowCreate
from gatekeeper.services.audit_log import AuditLog
from gatekeeper.services.persistence import PersistenceFacade
from gatekeeper.utils.ids import as_utc, new_id, utcnow

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    def __init__(
        self,
        persistence: PersistenceFacade,
        audit: AuditLog,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.persistence = persistence
        self.audit = audit
        self.clock = clock
        self._windows: list[MaintenanceWindow] = []

    async def load(self, seed: list[MaintenanceWindowCreate | dict] | None = None) -> None:
        stored = await self.persistence.load_schedule()
        if stored is not None:
            self._windows = stored
            return
        self._windows = []
        for item in seed or []:
            data = item.model_dump() if isinstance(item, MaintenanceWindowCreate) else dict(item)
            data.setdefault("id", new_id())
            self._windows.append(MaintenanceWindow.model_validate(data))
        if self._windows:
            logger.info("No stored schedule — seeding %d maintenance windows", len(self._windows))
            await self.persistence.save_schedule(self._windows)

    def list_windows(self) -> list[MaintenanceWindow]:
        return list(self._windows)

    async def replace(self, windows: list[MaintenanceWindow]) -> None:
        self._windows = list(windows)
        await self.persistence.save_schedule(self._windows)

    async def add_window(self, window: MaintenanceWindowCreate) -> MaintenanceWindow:
        added = MaintenanceWindow(**window.model_dump(), id=new_id(), created_at=self.clock())
        self._windows.append(added)
        await self.persistence.save_schedule(self._windows)
        await self.audit.append("window_added", MaintenanceDetails(window_id=added.id, window=added))
        logger.info("Maintenance window added: %s → %s", added.start, added.end)
        return added

    async def remove_window(self, window_id: str) -> MaintenanceWindow:
        for index, window in enumerate(self._windows):
            if window.id == window_id:
                break
        else:
            raise NotFoundError(f"Maintenance window not found: {window_id}")

        removed = self._windows.pop(index)
        await self.persistence.save_schedule(self._windows)
        await self.audit.append("window_removed", MaintenanceDetails(window_id=window_id, window=removed))
        logger.info("Maintenance window removed: %s", window_id)
        return removed

    def current_windows(self, now: datetime | None = None) -> list[MaintenanceWindow]:
        now = as_utc(now or self.clock())
        return [w for w in self._windows if w.contains(now)]

    def next_window(self, now: datetime | None = None) -> MaintenanceWindow | None:
        now = as_utc(now or self.clock())
        upcoming = sorted((w for w in self._windows if w.start > now), key=lambda w: w.start)
        return upcoming[0] if upcoming else None
