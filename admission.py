import secrets
from typing import Optional

from constants import MAX_PARTICIPANTS
from errors import RoomFull
from logging_config import get_logger
from schemas.rooms import AdmissionOutcome

logger = get_logger(__name__)


def generate_token() -> str:
    return secrets.token_urlsafe(24)


class AdmissionController:
    """Hands out session tokens for a room, at most ``capacity`` of them."""

    def __init__(self, backend, capacity: int = MAX_PARTICIPANTS):
        self.backend = backend
        self.capacity = capacity

    def admit(self, room_id: str, presented_token: Optional[str] = None) -> tuple[str, AdmissionOutcome]:
        """Join ``room_id``, or re-enter it with an already admitted token.

        Raises RoomNotFound when the room is gone and RoomFull when every slot
        is taken by someone else. The new token is written to the membership
        list before it is returned.
        """
        fresh_token = generate_token()

        def decide(connected: list[str]):
            if presented_token and presented_token in connected:
                return None, (presented_token, AdmissionOutcome.REUSE)
            if len(connected) >= self.capacity:
                raise RoomFull(room_id)
            return connected + [fresh_token], (fresh_token, AdmissionOutcome.ADMITTED)

        try:
            token, outcome = self.backend.update_connected(room_id, decide)
        except RoomFull:
            logger.warning(f"Admission to room {room_id} rejected: room is full ({self.capacity}/{self.capacity})")
            raise

        if outcome is AdmissionOutcome.ADMITTED:
            logger.info(f"New participant admitted to room {room_id}")
        else:
            logger.debug(f"Participant re-entered room {room_id} with an existing token")
        return token, outcome
