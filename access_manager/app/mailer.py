import asyncio
import logging
import smtplib
import uuid
from email.message import EmailMessage
from pathlib import Path
from typing import AbstractSet

from .errors import DispatchFailure, PermanentDispatchFailure

logger = logging.getLogger(__name__)


def build_message(sender: str, recipients: AbstractSet[str], subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = ", ".join(sorted(recipients))
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


class SmtpDispatcher:
    """Немедленная отправка письма владельцам через SMTP."""

    def __init__(self, host: str, port: int, sender: str):
        self._host = host
        self._port = port
        self._sender = sender

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=30) as server:
            server.send_message(msg)

    async def send(self, recipients: AbstractSet[str], subject: str, body: str) -> None:
        if not recipients:
            raise PermanentDispatchFailure("no recipients")
        msg = build_message(self._sender, recipients, subject, body)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except smtplib.SMTPRecipientsRefused as exc:
            raise PermanentDispatchFailure(f"recipients refused: {exc}") from exc
        except smtplib.SMTPResponseException as exc:
            if exc.smtp_code >= 500:
                raise PermanentDispatchFailure(f"smtp rejected message: {exc}") from exc
            raise DispatchFailure(f"smtp delivery failed: {exc}") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise DispatchFailure(f"smtp delivery failed: {exc}") from exc
        logger.info("Notification mailed to %s", msg["To"])


class DraftFileDispatcher:
    """
    Сохраняет письмо как .eml-черновик для просмотра и отправки пользователем.
    """

    def __init__(self, drafts_dir: str, sender: str):
        self._drafts_dir = Path(drafts_dir)
        self._sender = sender

    def _write(self, msg: EmailMessage) -> Path:
        self._drafts_dir.mkdir(parents=True, exist_ok=True)
        path = self._drafts_dir / f"access-request-{uuid.uuid4().hex}.eml"
        msg["X-Unsent"] = "1"
        path.write_bytes(bytes(msg))
        return path

    async def send(self, recipients: AbstractSet[str], subject: str, body: str) -> None:
        msg = build_message(self._sender, recipients, subject, body)
        try:
            path = await asyncio.to_thread(self._write, msg)
        except OSError as exc:
            raise DispatchFailure(f"cannot write mail draft: {exc}") from exc
        logger.info("Mail draft for %s saved to %s", msg["To"], path)
