# storefront_hub/routers/settings.py
"""
Store settings (name, contact, theme colors, minimum order).
"""
from __future__ import annotations
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.database import get_session
from storefront_hub.services.kv_settings import store_settings

router = APIRouter(prefix="/admin/settings", tags=["Settings"])


@router.get("")
async def get_store_settings(db: AsyncSession = Depends(get_session)):
    return await store_settings(db).all()


@router.patch("")
async def update_store_settings(
    values: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_session),
):
    return await store_settings(db).update(values)
