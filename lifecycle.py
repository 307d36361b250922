import uuid
from datetime import datetime, timezone

from constants import ROOM_TTL_SECONDS
from events import DESTROY_EVENT, EventPublisher
from logging_config import get_logger
from schemas.rooms import Session

logger = get_logger(__name__)


class RoomLifecycleManager:
    """Creates rooms, reports their remaining lifetime and tears them down.

    Expiry itself is left to the store: every room key carries its own TTL.
    """

    def __init__(self, backend, publisher: EventPublisher, ttl: int = ROOM_TTL_SECONDS):
        self.backend = backend
        self.publisher = publisher
        self.ttl = ttl

    def create_room(self) -> str:
        room_id = uuid.uuid4().hex
        created_at = datetime.now(timezone.utc).isoformat()
        self.backend.create_room(room_id, created_at=created_at, ttl=self.ttl)
        logger.info(f"Room {room_id} created, expires in {self.ttl} seconds")
        return room_id

    def get_remaining_ttl(self, room_id: str) -> int:
        ttl = self.backend.get_ttl(room_id)
        return ttl if ttl > 0 else 0

    def destroy_room(self, session: Session) -> None:
        room_id = session.room_id
        # participants hear about it while the room can still be read
        self.publisher.publish(room_id, DESTROY_EVENT, {"is_destroyed": True})
        self.backend.delete_room(room_id)
        logger.info(f"Room {room_id} destroyed by a participant")
