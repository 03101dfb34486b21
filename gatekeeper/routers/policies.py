"""Update policy endpoints, including bulk import / export."""

from fastapi import APIRouter, Depends

from gatekeeper.engine import UpdatePolicyEngine, get_engine
from gatekeeper.schemas.export import PolicyExport, PolicyImport
from gatekeeper.schemas.policy import Policy, PolicyCategory

router = APIRouter()


@router.get("/", response_model=dict[PolicyCategory, Policy])
async def list_policies(engine: UpdatePolicyEngine = Depends(get_engine)):
    return engine.list_policies()


@router.get("/export", response_model=PolicyExport)
async def export_policies(engine: UpdatePolicyEngine = Depends(get_engine)):
    return engine.export_policies()


@router.post("/import", response_model=PolicyExport)
async def import_policies(body: PolicyImport, engine: UpdatePolicyEngine = Depends(get_engine)):
    await engine.import_policies(body)
    return engine.export_policies()


@router.get("/{category}", response_model=Policy)
async def get_policy(category: PolicyCategory, engine: UpdatePolicyEngine = Depends(get_engine)):
    return engine.get_policy(category)


@router.put("/{category}", response_model=Policy)
async def set_policy(
    category: PolicyCategory, body: Policy, engine: UpdatePolicyEngine = Depends(get_engine)
):
    return await engine.set_policy(category, body)
