"""Policy export/import documents."""

from datetime import datetime

from pydantic import Field

from gatekeeper.schemas.common import CamelModel
from gatekeeper.schemas.maintenance import MaintenanceWindow
from gatekeeper.schemas.policy import EngineOptions, Policy, PolicyCategory


class PolicyExport(CamelModel):
    policies: dict[PolicyCategory, Policy]
    maintenance_schedule: list[MaintenanceWindow] = Field(default_factory=list)
    configuration: EngineOptions
    exported_at: datetime


class PolicyImport(CamelModel):
    """Any subset of an export; absent parts are left untouched."""

    policies: dict[PolicyCategory, Policy] | None = None
    maintenance_schedule: list[MaintenanceWindow] | None = None
    configuration: dict | None = None
