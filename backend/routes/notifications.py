"""Notification log routes."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from backend.auth import require_auth
from backend.sessions import get_studio
from seoimg.schemas.models import Notification

router = APIRouter()


class NotificationListResponse(BaseModel):
    unread_count: int
    notifications: list[Notification]


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(unread_only: bool = False, session: dict = Depends(require_auth)):
    log = get_studio(session["account_id"]).notifications
    return NotificationListResponse(unread_count=log.unread_count, notifications=log.list(unread_only))


@router.post("/notifications/read")
async def mark_all_read(session: dict = Depends(require_auth)):
    get_studio(session["account_id"]).notifications.mark_all_read()
    return {"status": "ok"}


@router.post("/notifications/{notification_id}/read")
async def mark_read(notification_id: str, session: dict = Depends(require_auth)):
    if not get_studio(session["account_id"]).notifications.mark_read(notification_id):
        raise HTTPException(status_code=404, detail=f"Notification not found: {notification_id}")
    return {"status": "ok"}


@router.delete("/notifications/{notification_id}")
async def remove(notification_id: str, session: dict = Depends(require_auth)):
    if not get_studio(session["account_id"]).notifications.remove(notification_id):
        raise HTTPException(status_code=404, detail=f"Notification not found: {notification_id}")
    return {"status": "ok"}


@router.delete("/notifications")
async def clear_all(session: dict = Depends(require_auth)):
    get_studio(session["account_id"]).notifications.clear_all()
    return {"status": "ok"}
