from abc import ABC, abstractmethod

from logging_config import get_logger

logger = get_logger(__name__)

MESSAGE_EVENT = "chat.message"
DESTROY_EVENT = "chat.destroy"
CONNECTED_EVENT = "chat.connected"


class EventPublisher(ABC):
    """Pushes room events to whoever is subscribed to the room's channel."""

    @abstractmethod
    def publish(self, room_id: str, event: str, data: dict) -> None:
        ...


class RedisEventPublisher(EventPublisher):
    """Publishes ``{event, room_id, seq, data}`` envelopes over Redis pub/sub.

    ``seq`` increases by one per event in a room, so a subscriber that sees a
    gap knows it missed something and should re-read the room.
    """

    def __init__(self, backend):
        self.backend = backend

    def publish(self, room_id: str, event: str, data: dict) -> None:
        seq = self.backend.next_event_seq(room_id)
        envelope = {"event": event, "room_id": room_id, "seq": seq, "data": data}
        subscribers = self.backend.publish_message(room_id, envelope)
        logger.debug(f"Event {event} #{seq} for room {room_id} delivered to {subscribers} subscribers")
