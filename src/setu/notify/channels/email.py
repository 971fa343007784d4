"""Email (SMTP) notification channel."""

from __future__ import annotations

import smtplib
import ssl
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Any

from setu.core.errors import ConfigError, TransientError, ValidationError
from setu.core.logging import get_logger
from setu.core.settings import SmtpSettings
from setu.notify.base import BaseChannel
from setu.notify.protocol import DeliveryResult, Notification

logger = get_logger(__name__)


class EmailChannel(BaseChannel):
    """
    Email channel using SMTP.

    ``secure`` opens an implicit-TLS connection (SMTPS); otherwise the
    connection is upgraded with STARTTLS when ``require_tls`` is set or
    the server offers it.
    """

    def __init__(
        self,
        name: str,
        smtp_host: str,
        from_address: str,
        *,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        secure: bool = False,
        require_tls: bool = False,
        allow_self_signed: bool = False,
        timeout: float = 30.0,
        **kwargs: Any,
    ):
        super().__init__(name, **kwargs)
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._from_address = from_address
        self._secure = secure
        self._require_tls = require_tls
        self._allow_self_signed = allow_self_signed
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: SmtpSettings, name: str = "email") -> EmailChannel:
        return cls(
            name,
            settings.host,
            settings.from_address,
            smtp_port=settings.port,
            smtp_user=settings.user or None,
            smtp_password=settings.password or None,
            secure=settings.secure,
            require_tls=settings.require_tls,
            allow_self_signed=settings.allow_self_signed,
            timeout=settings.timeout_seconds,
        )

    @property
    def ready(self) -> bool:
        return self.enabled and bool(self._smtp_host and self._from_address)

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if self._allow_self_signed:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _build_message(self, notification: Notification) -> MIMEMultipart:
        """Build a multipart message: text/html alternative plus attachments."""
        recipients = notification.recipients
        msg = MIMEMultipart("mixed")
        msg["Subject"] = notification.subject
        msg["From"] = recipients.from_address or self._from_address
        if recipients.to:
            msg["To"] = ", ".join(recipients.to)
        if recipients.cc:
            msg["Cc"] = ", ".join(recipients.cc)
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid(domain=self._smtp_host or None)

        body = MIMEMultipart("alternative")
        body.attach(MIMEText(notification.text, "plain", "utf-8"))
        body.attach(MIMEText(notification.html, "html", "utf-8"))
        msg.attach(body)

        for attachment in notification.attachments:
            part = MIMEApplication(attachment.content.encode("utf-8"), Name=attachment.filename)
            part.replace_header("Content-Type", f'{attachment.content_type}; name="{attachment.filename}"')
            part["Content-Disposition"] = f'attachment; filename="{attachment.filename}"'
            msg.attach(part)
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self._secure:
            return smtplib.SMTP_SSL(
                self._smtp_host,
                self._smtp_port,
                timeout=self._timeout,
                context=self._ssl_context(),
            )
        server = smtplib.SMTP(self._smtp_host, self._smtp_port, timeout=self._timeout)
        server.ehlo()
        if self._require_tls or server.has_extn("starttls"):
            server.starttls(context=self._ssl_context())
            server.ehlo()
        return server

    def send(self, notification: Notification) -> DeliveryResult:
        """Send *notification* via SMTP."""
        if not self.ready:
            return DeliveryResult.fail(self._name, ConfigError("SMTP host or sender not configured"))
        rcpts = notification.recipients.all
        if not rcpts:
            return DeliveryResult.fail(self._name, ValidationError("No recipients for notification"))

        try:
            message = self._build_message(notification)
            server = self._connect()
            try:
                if self._smtp_user or self._smtp_password:
                    server.login(self._smtp_user or "", self._smtp_password or "")
                refused = server.sendmail(message["From"], rcpts, message.as_string())
            finally:
                server.quit()

            logger.info(
                "email_sent",
                subject=notification.subject,
                recipients=len(rcpts),
                refused=len(refused or {}),
            )
            return DeliveryResult.ok(
                self._name,
                message["Message-ID"],
                response={"accepted": [r for r in rcpts if r not in (refused or {})], "rejected": list(refused or {})},
            )

        except (smtplib.SMTPException, OSError) as e:
            return DeliveryResult.fail(self._name, TransientError(str(e), cause=e))
        except Exception as e:
            return DeliveryResult.fail(self._name, e)


__all__ = ["EmailChannel"]
