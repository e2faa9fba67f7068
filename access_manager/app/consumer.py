import asyncio
import json
import logging
from aio_pika.abc import AbstractIncomingMessage
import aio_pika

from .errors import DispatchFailure, PermanentDispatchFailure
from .mailer import SmtpDispatcher
from .settings import settings

logger = logging.getLogger(__name__)

RABBITMQ_URL = settings.rabbitmq_url
QUEUE_NAME = settings.notifications_queue


def get_mailer() -> SmtpDispatcher:
    return SmtpDispatcher(settings.smtp_host, settings.smtp_port, settings.mail_sender)


async def process_message(message: AbstractIncomingMessage) -> None:
    """
    Обработать одно сообщение из очереди:
    1) распарсить payload {recipients, subject, body}
    2) отправить письмо владельцам по SMTP
    Временная ошибка SMTP возвращает сообщение в очередь.
    Битое сообщение, пустой список адресатов и постоянный отказ SMTP отбрасываются.
    Любая другая ошибка отбрасывает сообщение в message.process().
    """
    async with message.process(requeue=False, ignore_processed=True):
        try:
            payload = json.loads(message.body)
            recipients = set(payload["recipients"])
            subject = payload["subject"]
            body = payload["body"]
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("Dropping malformed notification: %s", exc)
            await message.reject(requeue=False)
            return

        if not recipients:
            logger.error("Dropping notification without recipients")
            await message.reject(requeue=False)
            return

        try:
            await get_mailer().send(recipients, subject, body)
        except PermanentDispatchFailure as exc:
            logger.error("Notification rejected, dropping: %s", exc)
            await message.reject(requeue=False)
        except DispatchFailure as exc:
            logger.warning("Notification delivery failed, requeueing: %s", exc)
            await message.nack(requeue=True)


async def run_consumer() -> None:
    """
    Запустить подписчика на очередь уведомлений
    и обрабатывать сообщения бесконечно.
    Используется QoS prefetch и подтверждения сообщений.
    """
    connection = await aio_pika.connect_robust(RABBITMQ_URL)
    channel = await connection.channel()
    await channel.set_qos(prefetch_count=10)
    queue = await channel.declare_queue(QUEUE_NAME, durable=True)
    await queue.consume(process_message)

    await asyncio.Event().wait()


if __name__ == "__main__":
    from .logging_config import configure_logging

    configure_logging()
    asyncio.run(run_consumer())
