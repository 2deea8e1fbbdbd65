import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ticketing import notifications
from ticketing.models import BookingStatus
from ticketing.schemas import BookingRequest
from ticketing.services import booking_status, bookings


def _fake_connection():
    queue = MagicMock()
    queue.name = "booking_notifications"
    channel = MagicMock()
    channel.declare_queue = AsyncMock(return_value=queue)
    channel.default_exchange.publish = AsyncMock()
    connection = MagicMock()
    connection.channel = AsyncMock(return_value=channel)
    connection.close = AsyncMock()
    return connection, channel


@pytest.mark.asyncio
async def test_push_to_queue_publishes_persistent_json():
    connection, channel = _fake_connection()

    with patch.object(notifications, "connect_robust", AsyncMock(return_value=connection)):
        await notifications.push_to_queue({"type": "booking_created", "booking_id": 7})

    channel.declare_queue.assert_awaited_once_with("booking_notifications", durable=True)
    message = channel.default_exchange.publish.await_args.args[0]
    assert json.loads(message.body) == {"type": "booking_created", "booking_id": 7}
    assert channel.default_exchange.publish.await_args.kwargs["routing_key"] == "booking_notifications"
    connection.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_notify_booking_disabled_does_nothing():
    with patch.object(notifications, "push_to_queue", AsyncMock()) as push:
        await notifications.notify_booking("booking_created", {"booking_id": 1}, enabled=False)
    push.assert_not_awaited()


@pytest.mark.asyncio
async def test_notify_booking_swallows_broker_errors():
    failing = AsyncMock(side_effect=ConnectionError("broker down"))
    with patch.object(notifications, "push_to_queue", failing):
        await notifications.notify_booking("booking_created", {"booking_id": 1}, enabled=True)
    failing.assert_awaited_once_with({"type": "booking_created", "booking_id": 1})


@pytest.mark.asyncio
async def test_booking_lifecycle_queues_notifications(session, customer, event, seats):
    with patch.object(bookings, "notify_booking", AsyncMock()) as created, \
            patch.object(booking_status, "notify_booking", AsyncMock()) as changed:
        booking = await bookings.create_booking(
            BookingRequest(event_id=event.event_id, seat_ids=[seats[0].seat_id], total_amount=25), customer, session
        )
        await booking_status.update_booking_status(booking.booking_id, BookingStatus.CANCELLED, session)
        await booking_status.update_booking_status(booking.booking_id, BookingStatus.CANCELLED, session)

    created.assert_awaited_once()
    assert created.await_args.args[0] == "booking_created"
    assert created.await_args.args[1]["booking_id"] == booking.booking_id
    # the repeated cancel is a no-op and stays silent
    changed.assert_awaited_once()
    assert changed.await_args.args[1]["status"] == "cancelled"
