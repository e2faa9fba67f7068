import json
import logging
from typing import AbstractSet, Protocol

import aio_pika
from aio_pika.exceptions import AMQPError

from .errors import DispatchFailure
from .settings import settings

logger = logging.getLogger(__name__)

RABBITMQ_URL = settings.rabbitmq_url
QUEUE_NAME = settings.notifications_queue


class NotificationDispatcher(Protocol):
    async def send(self, recipients: AbstractSet[str], subject: str, body: str) -> None: ...


async def publish_notification(message: dict) -> None:
    connection = await aio_pika.connect_robust(RABBITMQ_URL)
    async with connection:
        channel = await connection.channel()
        queue = await channel.declare_queue(QUEUE_NAME, durable=True)
        await channel.default_exchange.publish(
            aio_pika.Message(
                body=json.dumps(message).encode("utf-8"),
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            ),
            routing_key=queue.name,
        )


class QueueDispatcher:
    """
    Передаёт письмо в очередь; доставку по SMTP выполняет consumer.
    Письмо считается принятым, когда публикация завершилась без ошибки.
    """

    async def send(self, recipients: AbstractSet[str], subject: str, body: str) -> None:
        message = {"recipients": sorted(recipients), "subject": subject, "body": body}
        try:
            await publish_notification(message)
        except (AMQPError, OSError) as exc:
            raise DispatchFailure(f"queue publish failed: {exc}") from exc
        logger.info("Notification queued for %s", ", ".join(message["recipients"]))
