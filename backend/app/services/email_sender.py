"""
邮件发送协作者 (Email Sender)

分发器只依赖 ``send(EmailMessage) -> bool`` 这一接口。配置了 SMTP 时使用
aiosmtplib 发送；未配置时使用 DisabledEmailSender，记录日志后返回 False，
通知如实落为 failed。
"""
import html
import logging
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    to: str
    subject: str
    message: str
    service_name: str
    severity: str


def _email_html(msg: EmailMessage) -> str:
    """生成告警邮件 HTML 正文。"""
    color = "#d32f2f" if msg.severity == "error" else "#f57c00"
    return f"""
    <div style="font-family:Arial,sans-serif;max-width:600px;margin:auto;border:1px solid #e0e0e0;border-radius:8px;overflow:hidden;">
      <div style="background:{color};color:#fff;padding:16px 24px;">
        <h2 style="margin:0;">PulseWatch Alert</h2>
      </div>
      <div style="padding:24px;">
        <table style="width:100%;border-collapse:collapse;">
          <tr><td style="padding:8px 0;font-weight:bold;">Service</td><td>{html.escape(msg.service_name)}</td></tr>
          <tr><td style="padding:8px 0;font-weight:bold;">Severity</td><td>{html.escape(msg.severity.upper())}</td></tr>
          <tr><td style="padding:8px 0;font-weight:bold;">Message</td><td>{html.escape(msg.message)}</td></tr>
        </table>
      </div>
    </div>
    """


class SmtpEmailSender:
    """通过 SMTP 发送告警邮件。发送失败时抛出 aiosmtplib 的异常，由分发器记录为 failed。"""

    def __init__(self, host: str, port: int = 465, username: str = "", password: str = "", use_ssl: bool = True):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl

    async def send(self, msg: EmailMessage) -> bool:
        mime = MIMEMultipart("alternative")
        mime["From"] = self.username
        mime["To"] = msg.to
        mime["Subject"] = msg.subject
        mime.attach(MIMEText(msg.message, "plain", "utf-8"))
        mime.attach(MIMEText(_email_html(msg), "html", "utf-8"))

        kwargs = {
            "hostname": self.host,
            "port": self.port,
            "username": self.username or None,
            "password": self.password or None,
        }
        if self.use_ssl:
            kwargs["use_tls"] = True
        else:
            kwargs["start_tls"] = True

        await aiosmtplib.send(mime, **kwargs)
        logger.info(f"Alert email sent to {msg.to}: {msg.subject}")
        return True


class DisabledEmailSender:
    """SMTP 未配置时使用，不发送任何邮件。"""

    async def send(self, msg: EmailMessage) -> bool:
        logger.warning(f"SMTP not configured, email to {msg.to} not sent: {msg.subject}")
        return False


def build_email_sender(settings):
    """根据配置选择邮件发送实现。"""
    if settings.smtp_configured:
        return SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_ssl=settings.smtp_ssl,
        )
    return DisabledEmailSender()
