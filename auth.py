from typing import Optional

from errors import InvalidToken, Unauthorized
from logging_config import get_logger
from schemas.rooms import Session

logger = get_logger(__name__)


class SessionAuthenticator:
    def __init__(self, backend):
        self.backend = backend

    def authenticate(self, room_id: Optional[str], token: Optional[str]) -> Session:
        """Resolve a room/token pair into a Session.

        Membership is read fresh on every call. A room that expired or was
        destroyed has no members, so its tokens fail with InvalidToken.
        """
        if not room_id or not token:
            logger.warning(f"Authentication failed for room {room_id}: missing credentials")
            raise Unauthorized("Unauthorized")

        connected = self.backend.get_connected(room_id)
        if token not in connected:
            logger.warning(f"Authentication failed for room {room_id}: token not a member")
            raise InvalidToken("Invalid token")
        return Session(room_id=room_id, token=token, connected=connected)
