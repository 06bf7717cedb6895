"""邮件发送协作者测试。"""
from app.core.config import Settings
from app.services import email_sender
from app.services.email_sender import (
    DisabledEmailSender,
    EmailMessage,
    SmtpEmailSender,
    build_email_sender,
)

MSG = EmailMessage(
    to="ops@example.com",
    subject="[ALERT] Checkout - ERROR",
    message="Checkout is currently offline",
    service_name="Checkout",
    severity="error",
)


class TestBuildEmailSender:
    def test_disabled_without_smtp(self):
        assert isinstance(build_email_sender(Settings(smtp_host="")), DisabledEmailSender)

    def test_smtp_when_configured(self):
        sender = build_email_sender(Settings(smtp_host="smtp.example.com", smtp_user="alerts@example.com",
                                             smtp_port=587, smtp_ssl=False))
        assert isinstance(sender, SmtpEmailSender)
        assert sender.port == 587
        assert sender.use_ssl is False


class TestSenders:
    async def test_disabled_returns_false(self):
        assert await DisabledEmailSender().send(MSG) is False

    async def test_smtp_send(self, monkeypatch):
        captured = {}

        async def fake_send(message, **kwargs):
            captured["message"] = message
            captured["kwargs"] = kwargs

        monkeypatch.setattr(email_sender.aiosmtplib, "send", fake_send)
        sender = SmtpEmailSender("smtp.example.com", 465, "alerts@example.com", "pw", use_ssl=True)
        assert await sender.send(MSG) is True
        assert captured["message"]["Subject"] == MSG.subject
        assert captured["message"]["To"] == "ops@example.com"
        assert captured["kwargs"]["use_tls"] is True
        assert captured["kwargs"]["hostname"] == "smtp.example.com"
