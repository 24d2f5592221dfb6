from types import SimpleNamespace

import pytest

from storefront.services import email_channel, notification_service
from storefront.services.email_channel import EmailChannel
from storefront.services.notification_service import (
    ORDER_CANCELLED,
    ORDER_SHIPPED,
    NotificationService,
    build_payload,
    render_message,
    send_order_notification_task,
)


def _order(**overrides):
    data = dict(
        id=7,
        order_number="ORD26100007",
        status="shipped",
        total="16900.00",
        payment_status="approved",
        tracking_number="CX-1",
        cancellation_reason=None,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


USER = SimpleNamespace(name="Ana", email="ana@example.com")


@pytest.fixture
def queued(monkeypatch):
    calls = []

    def fake_apply_async(args=None, **options):
        calls.append((args, options))

    monkeypatch.setattr(send_order_notification_task, "apply_async", fake_apply_async)
    return calls


class TestNotificationService:
    def test_queues_task_with_flat_payload(self, queued):
        assert NotificationService().notify_order_shipped(_order(), USER) is True

        (template, payload), options = queued[0]
        assert template == ORDER_SHIPPED
        assert payload["email"] == "ana@example.com"
        assert payload["order_number"] == "ORD26100007"
        assert options["retry"] is True
        assert options["retry_policy"]["max_retries"] == 2

    def test_missing_recipient_is_not_sent(self, queued):
        assert NotificationService().notify_order_created(_order(), None) is False
        assert queued == []

    def test_broker_failure_returns_false(self, monkeypatch):
        def broken(*args, **kwargs):
            raise ConnectionError("broker down")

        monkeypatch.setattr(send_order_notification_task, "apply_async", broken)

        assert NotificationService().notify_order_cancelled(_order(), USER) is False


class TestRendering:
    def test_shipped_message_contains_tracking(self):
        subject, body = render_message(ORDER_SHIPPED, build_payload(_order(), USER))

        assert subject == "Order ORD26100007 has been shipped"
        assert "Hello Ana," in body
        assert "Tracking number: CX-1" in body

    def test_cancelled_message_contains_reason(self):
        order = _order(status="cancelled", cancellation_reason="duplicate")

        _, body = render_message(ORDER_CANCELLED, build_payload(order, USER))

        assert "Reason: duplicate" in body


class TestTask:
    def test_runs_without_smtp(self):
        payload = build_payload(_order(), USER)

        result = send_order_notification_task(ORDER_SHIPPED, payload)

        assert result == {"order_id": 7, "template": ORDER_SHIPPED, "sent": False}

    def test_task_retries_on_smtp_errors(self):
        assert OSError in send_order_notification_task.autoretry_for
        assert notification_service.smtplib.SMTPException in send_order_notification_task.autoretry_for


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.calls = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user))

    def send_message(self, message):
        self.calls.append(("send", message["To"], message["Subject"]))


class TestEmailChannel:
    def test_disabled_without_host(self):
        channel = EmailChannel()

        assert channel.enabled is False
        assert channel.send("ana@example.com", "hi", "body") is False

    def test_sends_through_smtp(self, monkeypatch):
        FakeSMTP.instances.clear()
        monkeypatch.setattr(email_channel.smtplib, "SMTP", FakeSMTP)
        channel = EmailChannel(host="smtp.example.com", port=2525, user="mailer", password="secret")

        assert channel.send("ana@example.com", "Order shipped", "body") is True

        smtp = FakeSMTP.instances[0]
        assert (smtp.host, smtp.port) == ("smtp.example.com", 2525)
        assert smtp.calls == [
            "starttls",
            ("login", "mailer"),
            ("send", "ana@example.com", "Order shipped"),
        ]
