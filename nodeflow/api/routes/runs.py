"""
Run API Routes.

Endpoints for inspecting finished flow runs.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Query, status
import logging

from nodeflow.api.schemas import ErrorResponse, FlowRunResponse, RunListResponse
from nodeflow.engine.context import ExecutionStatus
from nodeflow.storage.memory import run_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/runs", tags=["Runs"])


@router.get(
    "/",
    response_model=RunListResponse,
)
async def list_runs(
    run_status: Optional[ExecutionStatus] = Query(None, alias="status"),
) -> RunListResponse:
    """List stored runs, optionally filtered by status."""
    if run_status is not None:
        runs = await run_storage.list_by_status(run_status.value)
    else:
        runs = await run_storage.list_all()

    return RunListResponse(
        runs=[FlowRunResponse(**r.to_dict()) for r in runs],
        total=len(runs),
    )


@router.get(
    "/{run_id}",
    response_model=FlowRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run(run_id: str) -> FlowRunResponse:
    """Get the log, outputs and status of a run."""
    stored = await run_storage.get(run_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return FlowRunResponse(**stored.to_dict())


@router.delete(
    "/{run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_run(run_id: str):
    """Delete a stored run."""
    deleted = await run_storage.delete(run_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    logger.info(f"Deleted run: {run_id}")
