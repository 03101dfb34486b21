"""Maintenance window schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator, model_validator

from gatekeeper.schemas.common import CamelModel
from gatekeeper.schemas.policy import PolicyCategory
from gatekeeper.utils.ids import as_utc


class MaintenanceWindowCreate(CamelModel):
    start: datetime
    end: datetime
    description: str = ""
    categories: list[PolicyCategory] = Field(
        default_factory=list,
        description="Policy categories the window is meant for (informational)",
    )

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end <= self.start:
            raise ValueError("window end must be after its start")
        return self


class MaintenanceWindow(MaintenanceWindowCreate):
    id: str
    created_at: datetime | None = None

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end
