# storefront_hub/services/notifications.py
"""
Order notifications - email (SMTP) and webhook (httpx).

Configuration lives in the notification_settings key/value table. Delivery
is fire-and-forget from the order path: failures are logged and reported
as False, never raised into the caller.
"""
from __future__ import annotations
import asyncio
import json
import logging
import smtplib
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from decimal import Decimal
from email.message import EmailMessage
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_hub.db_models import NotificationSetting
from storefront_hub.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_TEMPLATE = """<!DOCTYPE html>
<html lang="pt-BR">
<head><meta charset="UTF-8"><title>Novo Pedido</title></head>
<body>
  <h2>Novo pedido #{{ORDER_ID}}</h2>
  <p><strong>Cliente:</strong> {{CUSTOMER_NAME}}<br>
     <strong>Email:</strong> {{CUSTOMER_EMAIL}}<br>
     <strong>WhatsApp:</strong> {{CUSTOMER_WHATSAPP}}</p>
  <p><strong>Data:</strong> {{ORDER_DATE}} | <strong>Status:</strong> {{ORDER_STATUS}}</p>
  {{ORDER_ITEMS}}
  <p><strong>Total:</strong> {{TOTAL_PRICE}}</p>
  <small>Enviado em {{EMAIL_DATE}}</small>
</body>
</html>"""

DEFAULT_WEBHOOK_TEMPLATE = """{
  "event": "order.created",
  "order_id": "{{ORDER_ID}}",
  "customer": {
    "name": "{{CUSTOMER_NAME}}",
    "email": "{{CUSTOMER_EMAIL}}",
    "whatsapp": "{{CUSTOMER_WHATSAPP}}"
  },
  "items": {{ORDER_ITEMS_JSON}},
  "total_price": "{{TOTAL_PRICE}}",
  "status": "{{ORDER_STATUS}}",
  "timestamp": "{{TIMESTAMP}}"
}"""

DEFAULT_NOTIFICATION_SETTINGS: Dict[str, str] = {
    # Email SMTP
    "smtp_host": "",
    "smtp_port": "587",
    "smtp_user": "",
    "smtp_password": "",
    "smtp_from_email": "",
    "smtp_from_name": "Storefront",
    "email_enabled": "false",
    "email_subject": "Novo Pedido Recebido - #{{ORDER_ID}}",
    "email_template": DEFAULT_EMAIL_TEMPLATE,
    # Webhook
    "webhook_enabled": "false",
    "webhook_url": "",
    "webhook_method": "POST",
    "webhook_headers": '{"Content-Type": "application/json"}',
    "webhook_template": DEFAULT_WEBHOOK_TEMPLATE,
}


@dataclass
class NotificationItem:
    product_name: Optional[str]
    color_name: Optional[str]
    grade_name: Optional[str]
    quantity: int
    price: Decimal


@dataclass
class OrderNotification:
    order_id: str
    customer_name: str
    customer_email: str
    customer_whatsapp: str
    items: List[NotificationItem]
    total_price: Decimal
    order_date: datetime
    status: str

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape consumed by notification collaborators."""
        return {
            "orderId": self.order_id,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerWhatsapp": self.customer_whatsapp,
            "items": [
                {**asdict(item), "price": float(item.price)} for item in self.items
            ],
            "totalPrice": float(self.total_price),
            "orderDate": self.order_date.isoformat(),
            "status": self.status,
        }


Notifier = Callable[[OrderNotification], Awaitable[Any]]


def _money(value: Decimal) -> str:
    return f"{Decimal(value):.2f}"


def _items_html(items: List[NotificationItem]) -> str:
    parts = []
    for item in items:
        line_total = Decimal(item.price) * item.quantity
        parts.append(
            '<div class="item">'
            f"<strong>{item.product_name}</strong><br>"
            f"Cor: {item.color_name} | Grade: {item.grade_name}<br>"
            f"Quantidade: {item.quantity} x {settings.CURRENCY_SYMBOL} {_money(item.price)}"
            f" = {settings.CURRENCY_SYMBOL} {_money(line_total)}"
            "</div>"
        )
    return "".join(parts)


def render_template(template: str, data: OrderNotification, now: Optional[datetime] = None) -> str:
    """Replace {{PLACEHOLDER}} variables with order data."""
    now = now or datetime.now(timezone.utc)
    items_json = json.dumps(data.to_dict()["items"], ensure_ascii=False)
    replacements = {
        "{{ORDER_ID}}": str(data.order_id),
        "{{CUSTOMER_NAME}}": data.customer_name or "",
        "{{CUSTOMER_EMAIL}}": data.customer_email or "",
        "{{CUSTOMER_WHATSAPP}}": data.customer_whatsapp or "",
        "{{TOTAL_PRICE}}": _money(data.total_price),
        "{{ORDER_DATE}}": data.order_date.strftime("%d/%m/%Y %H:%M:%S"),
        "{{ORDER_STATUS}}": data.status,
        "{{EMAIL_DATE}}": now.strftime("%d/%m/%Y %H:%M:%S"),
        "{{TIMESTAMP}}": now.isoformat(),
        "{{ORDER_ITEMS_JSON}}": items_json,
        "{{ORDER_ITEMS}}": _items_html(data.items),
    }
    out = template or ""
    for key, value in replacements.items():
        out = out.replace(key, value)
    return out


class NotificationDispatcher:
    """Fan out one committed order to email and webhook."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_factory = session_factory
        self.timeout = timeout if timeout is not None else settings.NOTIFY_TIMEOUT
        self.transport = transport

    async def load_settings(self) -> Dict[str, str]:
        values = dict(DEFAULT_NOTIFICATION_SETTINGS)
        async with self.session_factory() as db:
            result = await db.execute(select(NotificationSetting))
            for row in result.scalars().all():
                if row.setting_value is not None:
                    values[row.setting_key] = row.setting_value
        return values

    async def send_email(self, data: OrderNotification, cfg: Optional[Dict[str, str]] = None) -> bool:
        try:
            cfg = cfg or await self.load_settings()
            if cfg.get("email_enabled") != "true":
                logger.info("Email notifications disabled")
                return False

            host = cfg.get("smtp_host")
            user = cfg.get("smtp_user")
            password = cfg.get("smtp_password")
            from_email = cfg.get("smtp_from_email")
            if not host or not user or not password or not from_email:
                logger.error("Email settings not configured")
                return False

            msg = EmailMessage()
            msg["Subject"] = render_template(cfg.get("email_subject") or "Novo Pedido", data)
            msg["From"] = f'"{cfg.get("smtp_from_name") or ""}" <{from_email}>'
            msg["To"] = from_email  # store owner
            msg.set_content(render_template(cfg.get("email_template") or "", data), subtype="html")

            port = int(cfg.get("smtp_port") or 587)
            await asyncio.to_thread(self._smtp_send, host, port, user, password, msg)
            logger.info("Email notification sent for order %s", data.order_id)
            return True
        except Exception:
            logger.exception("Error sending email notification for order %s", data.order_id)
            return False

    def _smtp_send(self, host: str, port: int, user: str, password: str, msg: EmailMessage) -> None:
        if port == 465:
            with smtplib.SMTP_SSL(host, port, timeout=self.timeout) as smtp:
                smtp.login(user, password)
                smtp.send_message(msg)
            return
        with smtplib.SMTP(host, port, timeout=self.timeout) as smtp:
            smtp.starttls()
            smtp.login(user, password)
            smtp.send_message(msg)

    async def send_webhook(self, data: OrderNotification, cfg: Optional[Dict[str, str]] = None) -> bool:
        try:
            cfg = cfg or await self.load_settings()
            if cfg.get("webhook_enabled") != "true":
                logger.info("Webhook notifications disabled")
                return False

            url = cfg.get("webhook_url")
            if not url:
                logger.error("Webhook URL not configured")
                return False

            method = (cfg.get("webhook_method") or "POST").upper()
            try:
                headers = json.loads(cfg.get("webhook_headers") or "{}")
            except json.JSONDecodeError:
                headers = {"Content-Type": "application/json"}
            payload = render_template(cfg.get("webhook_template") or "{}", data)

            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method, url, headers=headers, content=payload.encode("utf-8"))
            if resp.is_success:
                logger.info("Webhook notification sent for order %s", data.order_id)
                return True
            logger.error("Webhook failed for order %s: %s %s", data.order_id, resp.status_code, resp.reason_phrase)
            return False
        except Exception:
            logger.exception("Error sending webhook notification for order %s", data.order_id)
            return False

    async def send_order_notifications(self, data: OrderNotification) -> Dict[str, bool]:
        logger.info("Sending notifications for order %s", data.order_id)
        cfg = await self.load_settings()
        email_ok, webhook_ok = await asyncio.gather(
            self.send_email(data, cfg),
            self.send_webhook(data, cfg),
        )
        return {"email": email_ok, "webhook": webhook_ok}


# ============================================================================
# Fire-and-forget scheduling
# ============================================================================

_pending: Set[asyncio.Task] = set()


async def _run_notifier(notifier: Notifier, data: OrderNotification) -> None:
    try:
        result = await notifier(data)
        logger.info("Notifications for order %s finished: %s", data.order_id, result)
    except Exception:
        logger.exception("Notification dispatch failed for order %s", data.order_id)


def spawn_notification(notifier: Notifier, data: OrderNotification) -> asyncio.Task:
    """Schedule delivery without awaiting it; keeps a reference until done."""
    task = asyncio.get_running_loop().create_task(_run_notifier(notifier, data))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain_notifications() -> None:
    """Wait for in-flight deliveries (shutdown, tests)."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)


def sample_notification() -> OrderNotification:
    """Payload used by the admin test-send endpoints."""
    now = datetime.now(timezone.utc)
    return OrderNotification(
        order_id=f"TEST-{int(now.timestamp() * 1000)}",
        customer_name="Cliente Teste",
        customer_email="teste@email.com",
        customer_whatsapp="(11) 99999-9999",
        items=[NotificationItem("Produto Teste", "Cor Teste", "Grade Teste", 1, Decimal("29.90"))],
        total_price=Decimal("29.90"),
        order_date=now,
        status="pending",
    )
