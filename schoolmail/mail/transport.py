import asyncio
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid

import aiosmtplib
from fastapi import Request

from schoolmail.core.config import Settings

DEFAULT_CONTENT_TYPE = 'application/octet-stream'
SMTP_SSL_PORT = 465

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when the mail server does not accept a message."""


@dataclass(frozen=True)
class Attachment:
    filename: str
    content_type: str
    content: bytes

    def metadata(self) -> dict:
        return {'filename': self.filename, 'contentType': self.content_type}


def build_message(
    sender: str,
    to: list[str],
    subject: str,
    html: str,
    attachments: list[Attachment] | None = None,
) -> EmailMessage:
    message = EmailMessage()
    message['From'] = sender
    message['To'] = ', '.join(to)
    message['Subject'] = subject
    message['Date'] = formatdate(localtime=True)
    message['Message-ID'] = make_msgid()
    message.set_content(html, subtype='html')

    for attachment in attachments or []:
        content_type = attachment.content_type or DEFAULT_CONTENT_TYPE
        maintype, _, subtype = content_type.partition('/')
        if not subtype:
            maintype, subtype = DEFAULT_CONTENT_TYPE.split('/')
        message.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype,
            filename=attachment.filename,
        )

    return message


class SmtpMailer:
    """Sends messages through one SMTP server, one connection per send."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.verify_cert = settings.smtp_verify_cert
        self.timeout = settings.smtp_timeout_seconds
        self.sender = settings.mail_from or settings.smtp_username

    async def _deliver(self, message: EmailMessage, to: list[str]) -> None:
        smtp = aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            timeout=self.timeout,
            use_tls=self.port == SMTP_SSL_PORT,
            start_tls=False,
            validate_certs=self.verify_cert,
        )
        await smtp.connect()
        try:
            if self.use_tls and self.port != SMTP_SSL_PORT:
                await smtp.starttls(validate_certs=self.verify_cert)
            if self.username:
                await smtp.login(self.username, self.password)
            await smtp.send_message(message, sender=self.sender, recipients=to)
        finally:
            if smtp.is_connected:
                await smtp.quit()

    def send(
        self,
        to: list[str],
        subject: str,
        html: str,
        attachments: list[Attachment] | None = None,
    ) -> None:
        """Send one message to every address in ``to``.

        Route handlers are plain ``def`` functions run in the threadpool, so
        each send drives its own event loop.
        """
        try:
            # Header values with CR/LF are rejected by the email package.
            message = build_message(self.sender, to, subject, html, attachments)
            asyncio.run(self._deliver(message, to))
        except aiosmtplib.SMTPResponseException as exc:
            raise TransportError(f'{exc.code} {exc.message}') from exc
        except (aiosmtplib.SMTPException, OSError, ValueError) as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

        logger.info('Delivered "%s" to %d recipient(s) via %s:%s', subject, len(to), self.host, self.port)


def get_mailer(request: Request) -> SmtpMailer:
    return request.app.state.mailer
