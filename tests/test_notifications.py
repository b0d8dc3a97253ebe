"""
Tests for order notifications (template rendering, webhook, email).
"""
import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx

from storefront_hub.services.kv_settings import notification_settings
from storefront_hub.services.notifications import (
    DEFAULT_NOTIFICATION_SETTINGS, NotificationDispatcher, NotificationItem, OrderNotification,
    render_template,
)


def _order(**overrides):
    data = dict(
        order_id="17",
        customer_name="Maria Silva",
        customer_email="maria@example.com",
        customer_whatsapp="5511999991111",
        items=[NotificationItem("Chinelo Brasil", "Vermelho", "G1", 2, Decimal("50.00"))],
        total_price=Decimal("100.00"),
        order_date=datetime(2024, 3, 5, 14, 30, 0, tzinfo=timezone.utc),
        status="pending",
    )
    data.update(overrides)
    return OrderNotification(**data)


def _webhook_cfg(**overrides):
    cfg = dict(DEFAULT_NOTIFICATION_SETTINGS)
    cfg.update(webhook_enabled="true", webhook_url="https://hooks.example.com/orders")
    cfg.update(overrides)
    return cfg


def test_render_replaces_placeholders():
    out = render_template(
        "#{{ORDER_ID}} {{CUSTOMER_NAME}} {{TOTAL_PRICE}} {{ORDER_DATE}} {{ORDER_STATUS}}", _order()
    )
    assert out == "#17 Maria Silva 100.00 05/03/2024 14:30:00 pending"


def test_render_items_html_and_json():
    html = render_template("{{ORDER_ITEMS}}", _order())
    assert "<strong>Chinelo Brasil</strong>" in html
    assert "Quantidade: 2 x R$ 50.00 = R$ 100.00" in html

    items = json.loads(render_template("{{ORDER_ITEMS_JSON}}", _order()))
    assert items == [{"product_name": "Chinelo Brasil", "color_name": "Vermelho",
                      "grade_name": "G1", "quantity": 2, "price": 50.0}]


def test_default_webhook_template_is_valid_json():
    body = json.loads(render_template(DEFAULT_NOTIFICATION_SETTINGS["webhook_template"], _order()))
    assert body["event"] == "order.created"
    assert body["order_id"] == "17"
    assert body["customer"]["email"] == "maria@example.com"
    assert body["items"][0]["grade_name"] == "G1"


async def test_webhook_posts_rendered_payload(session_factory):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    dispatcher = NotificationDispatcher(session_factory, transport=httpx.MockTransport(handler))
    ok = await dispatcher.send_webhook(_order(), _webhook_cfg(webhook_headers='{"X-Token": "abc"}'))

    assert ok is True
    [request] = seen
    assert request.method == "POST"
    assert request.headers["X-Token"] == "abc"
    assert json.loads(request.content)["order_id"] == "17"


async def test_webhook_error_status_reports_failure(session_factory):
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    dispatcher = NotificationDispatcher(session_factory, transport=transport)

    assert await dispatcher.send_webhook(_order(), _webhook_cfg()) is False


async def test_webhook_transport_error_reports_failure(session_factory):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    dispatcher = NotificationDispatcher(session_factory, transport=httpx.MockTransport(handler))

    assert await dispatcher.send_webhook(_order(), _webhook_cfg()) is False


async def test_webhook_disabled_sends_nothing(session_factory):
    seen = []
    transport = httpx.MockTransport(lambda request: seen.append(request) or httpx.Response(200))
    dispatcher = NotificationDispatcher(session_factory, transport=transport)

    assert await dispatcher.send_webhook(_order(), _webhook_cfg(webhook_enabled="false")) is False
    assert seen == []


async def test_email_uses_stored_settings(db, session_factory, monkeypatch):
    await notification_settings(db).update({
        "email_enabled": True,
        "smtp_host": "smtp.example.com",
        "smtp_port": "465",
        "smtp_user": "loja",
        "smtp_password": "secret",
        "smtp_from_email": "loja@example.com",
    })
    await db.commit()
    sent = []
    dispatcher = NotificationDispatcher(session_factory)
    monkeypatch.setattr(dispatcher, "_smtp_send", lambda *args: sent.append(args))

    result = await dispatcher.send_order_notifications(_order())

    assert result == {"email": True, "webhook": False}
    [(host, port, user, password, msg)] = sent
    assert (host, port, user) == ("smtp.example.com", 465, "loja")
    assert msg["Subject"] == "Novo Pedido Recebido - #17"
    assert msg["To"] == "loja@example.com"


async def test_email_without_smtp_settings_is_skipped(session_factory):
    cfg = dict(DEFAULT_NOTIFICATION_SETTINGS, email_enabled="true")
    dispatcher = NotificationDispatcher(session_factory)

    assert await dispatcher.send_email(_order(), cfg) is False
