"""Maintenance window endpoints."""

from fastapi import APIRouter, Depends

from gatekeeper.engine import UpdatePolicyEngine, get_engine
from gatekeeper.schemas.maintenance import MaintenanceWindow, MaintenanceWindowCreate

router = APIRouter()


@router.get("/windows", response_model=list[MaintenanceWindow])
async def list_windows(engine: UpdatePolicyEngine = Depends(get_engine)):
    return engine.list_windows()


@router.post("/windows", response_model=MaintenanceWindow, status_code=201)
async def add_window(body: MaintenanceWindowCreate, engine: UpdatePolicyEngine = Depends(get_engine)):
    return await engine.add_window(body)


@router.delete("/windows/{window_id}", status_code=204)
async def remove_window(window_id: str, engine: UpdatePolicyEngine = Depends(get_engine)):
    await engine.remove_window(window_id)


@router.get("/next", response_model=MaintenanceWindow | None)
async def next_window(engine: UpdatePolicyEngine = Depends(get_engine)):
    return engine.next_window()
