"""Bulk queue API: edit items, start/cancel runs, poll progress.

POST /api/queues/{template}/run
  → Debits the batch, returns { run_id } immediately; processing continues in the background.

GET /api/queues/{template}
  → Returns items, run progress and estimated seconds remaining.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.auth import require_auth
from backend.ratelimit import limit_generation
from backend.sessions import get_studio, http_error
from seoimg.errors import SeoImgError
from seoimg.schemas.models import GenerationRequest, QueueRun, TemplateType

logger = logging.getLogger(__name__)
router = APIRouter()


class QueueStateResponse(BaseModel):
    template_type: TemplateType
    items: list[GenerationRequest]
    run: Optional[QueueRun] = None
    is_running: bool = False
    valid_count: int = 0
    batch_cost: int = 0
    estimated_seconds_remaining: Optional[int] = None


class ItemFieldsRequest(BaseModel):
    fields: dict[str, str] = Field(default_factory=dict)


class ItemCreatedResponse(BaseModel):
    item_id: str


class RunStartedResponse(BaseModel):
    run_id: str
    total_count: int


def _state(queue) -> QueueStateResponse:
    snapshot = queue.snapshot()
    return QueueStateResponse(
        template_type=snapshot.template_type,
        items=snapshot.items,
        run=snapshot.run,
        is_running=queue.is_running,
        valid_count=len(queue.valid_items()),
        batch_cost=queue.batch_cost(),
        estimated_seconds_remaining=queue.get_estimated_time_remaining(),
    )


@router.get("/queues/{template}", response_model=QueueStateResponse)
async def get_queue(template: TemplateType, session: dict = Depends(require_auth)):
    return _state(get_studio(session["account_id"]).queue(template))


@router.post("/queues/{template}/items", response_model=ItemCreatedResponse, status_code=status.HTTP_201_CREATED)
async def add_item(template: TemplateType, request: ItemFieldsRequest, session: dict = Depends(require_auth)):
    queue = get_studio(session["account_id"]).queue(template)
    if request.fields and (queue.is_running or queue.has_active_run):
        raise HTTPException(status_code=409, detail="Items cannot be edited while a run is active")
    item_id = queue.add_item(template)
    if request.fields:
        queue.update_item_fields(item_id, request.fields)
    return ItemCreatedResponse(item_id=item_id)


@router.put("/queues/{template}/items/{item_id}")
async def update_item(
    template: TemplateType, item_id: str, request: ItemFieldsRequest, session: dict = Depends(require_auth)
):
    queue = get_studio(session["account_id"]).queue(template)
    if queue.is_running or queue.has_active_run:
        raise HTTPException(status_code=409, detail="Items cannot be edited while a run is active")
    if not queue.update_item_fields(item_id, request.fields):
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
    return {"status": "ok"}


@router.delete("/queues/{template}/items/{item_id}")
async def remove_item(template: TemplateType, item_id: str, session: dict = Depends(require_auth)):
    queue = get_studio(session["account_id"]).queue(template)
    if item_id == queue.current_item_id:
        raise HTTPException(status_code=409, detail="Item is being processed")
    if not queue.remove_item(item_id):
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
    return {"status": "ok"}


@router.delete("/queues/{template}/items")
async def clear_items(template: TemplateType, session: dict = Depends(require_auth)):
    try:
        get_studio(session["account_id"]).queue(template).clear_items()
    except SeoImgError as e:
        raise http_error(e)
    return {"status": "ok"}


@router.post("/queues/{template}/run", response_model=RunStartedResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_run(template: TemplateType, session: dict = Depends(limit_generation)):
    studio = get_studio(session["account_id"])
    try:
        run_id = await studio.start_run(template)
    except SeoImgError as e:
        raise http_error(e)
    return RunStartedResponse(run_id=run_id, total_count=studio.queue(template).run.total_count)


@router.post("/queues/{template}/resume", response_model=RunStartedResponse, status_code=status.HTTP_202_ACCEPTED)
async def resume_run(template: TemplateType, session: dict = Depends(limit_generation)):
    queue = get_studio(session["account_id"]).queue(template)
    try:
        run_id = await queue.resume_run()
    except SeoImgError as e:
        raise http_error(e)
    return RunStartedResponse(run_id=run_id, total_count=queue.run.total_count)


@router.post("/queues/{template}/cancel")
async def cancel_run(template: TemplateType, session: dict = Depends(require_auth)):
    if not get_studio(session["account_id"]).queue(template).cancel_run():
        raise HTTPException(status_code=404, detail="No active run")
    return {"status": "cancelled"}
