from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response
from fastapi.responses import JSONResponse, RedirectResponse

from admission import AdmissionController
from constants import AUTH_COOKIE_NAME, AUTH_COOKIE_SECURE
from dependencies import get_admission_controller, get_lifecycle_manager, require_session
from errors import RoomFull, RoomNotFound
from lifecycle import RoomLifecycleManager
from logging_config import get_logger
from schemas.rooms import AdmissionOutcome, AdmissionResponse, CreateRoomResponse, Session, TTLResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])
admission_router = APIRouter(tags=["admission"])


@rooms_router.post("", response_model=CreateRoomResponse, status_code=201)
def create_room(lifecycle: RoomLifecycleManager = Depends(get_lifecycle_manager)):
    room_id = lifecycle.create_room()
    return CreateRoomResponse(room_id=room_id)


@rooms_router.get("/{room_id}/ttl", response_model=TTLResponse)
def get_room_ttl(
    session: Session = Depends(require_session),
    lifecycle: RoomLifecycleManager = Depends(get_lifecycle_manager),
):
    return TTLResponse(ttl=lifecycle.get_remaining_ttl(session.room_id))


@rooms_router.delete("/{room_id}", status_code=204)
def destroy_room(
    session: Session = Depends(require_session),
    lifecycle: RoomLifecycleManager = Depends(get_lifecycle_manager),
):
    lifecycle.destroy_room(session)
    return Response(status_code=204)


@admission_router.get("/room/{room_id}")
def enter_room(
    room_id: str,
    token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
    controller: AdmissionController = Depends(get_admission_controller),
):
    # Page entry point: failures send the browser back to the landing page
    # with a reason it can render.
    try:
        admitted_token, outcome = controller.admit(room_id, token)
    except RoomNotFound:
        logger.info(f"Admission failed: Room {room_id} not found")
        return RedirectResponse(url="/?error=room-not-found")
    except RoomFull:
        return RedirectResponse(url="/?error=room-full")

    response = JSONResponse(AdmissionResponse(room_id=room_id, outcome=outcome).model_dump(mode="json"))
    if outcome is AdmissionOutcome.ADMITTED:
        response.set_cookie(
            AUTH_COOKIE_NAME,
            admitted_token,
            path="/",
            httponly=True,
            secure=AUTH_COOKIE_SECURE,
            samesite="strict",
        )
    return response
