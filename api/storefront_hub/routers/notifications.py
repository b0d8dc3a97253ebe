# storefront_hub/routers/notifications.py
"""
Notification settings (email / webhook) and test-send endpoints.
"""
from __future__ import annotations
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import get_session, get_session_factory, init_db
from storefront_hub.models import SettingValueIn
from storefront_hub.services.kv_settings import notification_settings
from storefront_hub.services.notifications import NotificationDispatcher, sample_notification

router = APIRouter(prefix="/admin/notifications", tags=["Notifications"])


async def get_dispatcher() -> NotificationDispatcher:
    """Dispatcher bound to the application's session factory."""
    if get_session_factory() is None:
        await init_db()
    return NotificationDispatcher(get_session_factory())


@router.get("")
async def list_notification_settings(db: AsyncSession = Depends(get_session)):
    return await notification_settings(db).all()


@router.put("")
async def update_notification_settings(
    values: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_session),
):
    return await notification_settings(db).update(values)


@router.post("/test-email")
async def test_email(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    ok = await dispatcher.send_email(sample_notification())
    return {"success": ok, "message": "Test email sent" if ok else "Test email failed, check the logs"}


@router.post("/test-webhook")
async def test_webhook(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    ok = await dispatcher.send_webhook(sample_notification())
    return {"success": ok, "message": "Test webhook sent" if ok else "Test webhook failed, check the logs"}


@router.get("/{key}")
async def get_notification_setting(key: str, db: AsyncSession = Depends(get_session)):
    return {"key": key, "value": await notification_settings(db).get(key)}


@router.put("/{key}")
async def set_notification_setting(
    key: str,
    payload: SettingValueIn,
    db: AsyncSession = Depends(get_session),
):
    await notification_settings(db).set(key, payload.value)
    return {"key": key, "value": payload.value}
