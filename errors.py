class ChatError(Exception):
    """Base class for room and session failures."""


class RoomNotFound(ChatError):
    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} not found")
        self.room_id = room_id


class RoomFull(ChatError):
    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} is full")
        self.room_id = room_id


class AuthError(ChatError):
    """Access denied. Subclasses say why, callers only ever see 'Unauthorized'."""


class Unauthorized(AuthError):
    pass


class InvalidToken(AuthError):
    pass


class ValidationError(ChatError):
    pass


class StoreUnavailable(ChatError):
    pass
