from typing import Optional

from fastapi import Cookie, Depends

from admission import AdmissionController
from auth import SessionAuthenticator
from backend import RedisBackend, get_backend
from constants import AUTH_COOKIE_NAME
from events import EventPublisher, RedisEventPublisher
from lifecycle import RoomLifecycleManager
from message_log import MessageLog
from schemas.rooms import Session


def get_publisher(backend: RedisBackend = Depends(get_backend)) -> EventPublisher:
    return RedisEventPublisher(backend)


def get_admission_controller(backend: RedisBackend = Depends(get_backend)) -> AdmissionController:
    return AdmissionController(backend)


def get_lifecycle_manager(
    backend: RedisBackend = Depends(get_backend),
    publisher: EventPublisher = Depends(get_publisher),
) -> RoomLifecycleManager:
    return RoomLifecycleManager(backend, publisher)


def get_message_log(
    backend: RedisBackend = Depends(get_backend),
    publisher: EventPublisher = Depends(get_publisher),
) -> MessageLog:
    return MessageLog(backend, publisher)


def require_session(
    room_id: str,
    token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
    backend: RedisBackend = Depends(get_backend),
) -> Session:
    return SessionAuthenticator(backend).authenticate(room_id, token)
