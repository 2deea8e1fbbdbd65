import json

from aio_pika import DeliveryMode, Message, connect_robust

from .config import NOTIFICATION_QUEUE, NOTIFICATIONS_ENABLED, RABBITMQ_URL
from .logger_config import logger


async def push_to_queue(payload: dict):
    connection = await connect_robust(RABBITMQ_URL)
    try:
        channel = await connection.channel()
        queue = await channel.declare_queue(NOTIFICATION_QUEUE, durable=True)
        message = Message(
            json.dumps(payload, default=str).encode(),
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
        )
        await channel.default_exchange.publish(message, routing_key=queue.name)
    finally:
        await connection.close()


async def notify_booking(event_type: str, booking: dict, enabled: bool = NOTIFICATIONS_ENABLED):
    """
    Hand a booking notification to the mail service queue.

    Runs after the booking transaction has committed, so a broker outage is
    logged and never fails the request.
    """
    if not enabled:
        return
    payload = {"type": event_type, **booking}
    try:
        await push_to_queue(payload)
        logger.info(f"Queued {event_type} notification for booking {booking.get('booking_id')}")
    except Exception as exc:
        logger.error(f"Failed to queue {event_type} notification: {exc}")
