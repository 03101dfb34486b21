"""Update request endpoints — evaluation and submission."""

from fastapi import APIRouter, Depends

from gatekeeper.engine import UpdatePolicyEngine, get_engine
from gatekeeper.schemas.approval import SubmitResult
from gatekeeper.schemas.evaluation import Evaluation
from gatekeeper.schemas.update_request import UpdateRequest

router = APIRouter()


@router.post("/evaluate", response_model=Evaluation)
async def evaluate_update(body: UpdateRequest, engine: UpdatePolicyEngine = Depends(get_engine)):
    return await engine.evaluate(body)


@router.post("/submit", response_model=SubmitResult, status_code=201)
async def submit_update(body: UpdateRequest, engine: UpdatePolicyEngine = Depends(get_engine)):
    """Evaluate and open an approval request when the decision requires one."""
    return await engine.submit(body)
