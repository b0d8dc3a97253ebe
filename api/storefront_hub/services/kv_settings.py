# storefront_hub/services/kv_settings.py
"""
Key/value settings tables (notification_settings, store_settings).

Missing keys read as their defaults; writes upsert one row per key.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, Mapping, Optional, Type, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_hub.db_models import NotificationSetting, StoreSetting
from storefront_hub.errors import NotFoundError, ValidationError
from storefront_hub.services.notifications import DEFAULT_NOTIFICATION_SETTINGS

logger = logging.getLogger(__name__)

SettingModel = Union[Type[NotificationSetting], Type[StoreSetting]]

DEFAULT_STORE_SETTINGS: Dict[str, str] = {
    "store_name": "Chinelos Store",
    "store_description": "Loja especializada em chinelos de alta qualidade",
    "contact_email": "",
    "contact_whatsapp": "",
    "minimum_order": "",
    "primary_color": "#f97316",
    "secondary_color": "#ea580c",
    "accent_color": "#fed7aa",
    "background_color": "#ffffff",
    "text_color": "#1f2937",
}


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class KeyValueSettings:
    def __init__(self, db: AsyncSession, model: SettingModel, defaults: Mapping[str, str]):
        self.db = db
        self.model = model
        self.defaults = dict(defaults)

    async def _row(self, key: str):
        stmt = select(self.model).where(self.model.setting_key == key)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def all(self) -> Dict[str, Optional[str]]:
        values: Dict[str, Optional[str]] = dict(self.defaults)
        for row in (await self.db.execute(select(self.model))).scalars().all():
            values[row.setting_key] = row.setting_value
        return values

    async def get(self, key: str) -> Optional[str]:
        row = await self._row(key)
        if row is not None:
            return row.setting_value
        if key in self.defaults:
            return self.defaults[key]
        raise NotFoundError(f"Setting {key} not found", code="setting_not_found")

    async def set(self, key: str, value: Any) -> None:
        key = (key or "").strip()
        if not key:
            raise ValidationError("Setting key is required", code="key_required")
        text_value = None if value is None else _to_text(value)
        row = await self._row(key)
        if row is None:
            self.db.add(self.model(setting_key=key, setting_value=text_value))
        else:
            row.setting_value = text_value
        await self.db.flush()

    async def update(self, values: Mapping[str, Any]) -> Dict[str, Optional[str]]:
        if not isinstance(values, Mapping):
            raise ValidationError("Settings must be an object of key/value pairs")
        for key, value in values.items():
            await self.set(key, value)
        logger.info("%s updated: %s", self.model.__tablename__, sorted(values))
        return await self.all()


def notification_settings(db: AsyncSession) -> KeyValueSettings:
    return KeyValueSettings(db, NotificationSetting, DEFAULT_NOTIFICATION_SETTINGS)


def store_settings(db: AsyncSession) -> KeyValueSettings:
    return KeyValueSettings(db, StoreSetting, DEFAULT_STORE_SETTINGS)
