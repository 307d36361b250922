import uuid
from datetime import datetime, timezone

from pydantic import ValidationError as PydanticValidationError

from constants import SENDER_MAX_LENGTH, TEXT_MAX_LENGTH
from errors import RoomNotFound, ValidationError
from events import MESSAGE_EVENT, EventPublisher
from logging_config import get_logger
from schemas.messages import Message
from schemas.rooms import Session

logger = get_logger(__name__)


def _check_field(name: str, value, max_length: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    if len(value) > max_length:
        raise ValidationError(f"{name} must be at most {max_length} characters")


class MessageLog:
    def __init__(self, backend, publisher: EventPublisher):
        self.backend = backend
        self.publisher = publisher

    def post_message(self, session: Session, sender: str, text: str) -> Message:
        """Append a message, announce it, and pull the room's keys into line.

        The log and event keys get the room's *remaining* TTL, not a new one,
        so everything belonging to the room expires together.
        """
        _check_field("sender", sender, SENDER_MAX_LENGTH)
        _check_field("text", text, TEXT_MAX_LENGTH)

        room_id = session.room_id
        if not self.backend.room_exists(room_id):
            logger.warning(f"Post to room {room_id} failed: room no longer exists")
            raise RoomNotFound(room_id)

        message = Message(
            id=uuid.uuid4().hex,
            sender=sender,
            text=text,
            timestamp=datetime.now(timezone.utc).isoformat(),
            room_id=room_id,
            token=session.token,
        )
        self.backend.append_message(room_id, message.model_dump_json())
        self.publisher.publish(room_id, MESSAGE_EVENT, message.model_dump())

        remaining = self.backend.get_ttl(room_id)
        self.backend.refresh_expiry(room_id, remaining)
        logger.debug(f"Message {message.id} posted to room {room_id}")
        return message

    def list_messages(self, session: Session) -> list[Message]:
        """Return the room's messages in append order.

        Only the caller's own messages keep their token. Entries that do not
        decode are logged and skipped.
        """
        messages = []
        for raw in self.backend.get_messages(session.room_id):
            if raw is None:
                continue
            try:
                message = Message.model_validate_json(raw)
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed message in room {session.room_id}: {e.error_count()} errors")
                continue
            if message.token != session.token:
                message = message.model_copy(update={"token": None})
            messages.append(message)
        return messages
