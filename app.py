import asyncio
import json
import os
from functools import partial

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import SessionAuthenticator
from backend import RedisBackend, get_backend
from constants import AUTH_COOKIE_NAME
from errors import AuthError, RoomFull, RoomNotFound, StoreUnavailable, ValidationError
from events import CONNECTED_EVENT, DESTROY_EVENT
from logging_config import get_logger, setup_logging
from routers.messages import messages_router
from routers.rooms import admission_router, rooms_router

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)
app.include_router(messages_router)
app.include_router(admission_router)

logger.info("FastAPI application initialized")


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    # Same answer for missing and unknown credentials
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


@app.exception_handler(RoomNotFound)
async def room_not_found_handler(request: Request, exc: RoomNotFound):
    return JSONResponse(status_code=404, content={"error": "room-not-found"})


@app.exception_handler(RoomFull)
async def room_full_handler(request: Request, exc: RoomFull):
    return JSONResponse(status_code=403, content={"error": "room-full"})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"Store unavailable while handling {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"error": "Service unavailable"})


@app.get("/health")
def health(backend: RedisBackend = Depends(get_backend)):
    backend.ping()
    return {"status": "ok"}


async def relay_room_events(websocket: WebSocket, backend: RedisBackend, room_id: str):
    """Forward the room's channel to one websocket until the room is destroyed.

    The first frame is a ``chat.connected`` envelope carrying the room's
    current event ``seq``; it is sent once the subscription is live, so
    anything published after it reaches this socket.
    """
    logger.info(f"Starting Redis pub/sub relay for room: {room_id}")
    loop = asyncio.get_running_loop()
    pubsub = await loop.run_in_executor(None, backend.subscribe_to_room, room_id)
    get_message = partial(pubsub.get_message, ignore_subscribe_messages=True, timeout=1.0)
    try:
        seq = await loop.run_in_executor(None, backend.current_event_seq, room_id)
        await websocket.send_text(json.dumps({"event": CONNECTED_EVENT, "room_id": room_id, "seq": seq, "data": {}}))
        while True:
            message = await loop.run_in_executor(None, get_message)
            if message is None or message.get("type") != "message":
                continue

            await websocket.send_text(message["data"])
            try:
                envelope = json.loads(message["data"])
            except json.JSONDecodeError as e:
                logger.warning(f"Relayed undecodable event for room {room_id}: {e}")
                continue
            if envelope.get("event") == DESTROY_EVENT:
                logger.info(f"Room {room_id} destroyed, closing relay")
                return
    finally:
        try:
            pubsub.close()
        except Exception as e:
            logger.debug(f"Error closing pub/sub for room {room_id}: {e}")


async def wait_for_disconnect(websocket: WebSocket):
    # Clients post over HTTP; anything they send here is ignored.
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@app.websocket("/rooms/{room_id}/ws")
async def room_events(websocket: WebSocket, room_id: str, backend: RedisBackend = Depends(get_backend)):
    """Subscribe an admitted participant to the room's event channel."""
    token = websocket.cookies.get(AUTH_COOKIE_NAME)
    authenticator = SessionAuthenticator(backend)
    try:
        await asyncio.get_running_loop().run_in_executor(None, authenticator.authenticate, room_id, token)
    except AuthError:
        logger.info(f"WebSocket connection rejected for room {room_id}: unauthorized")
        await websocket.close(code=1008, reason="Unauthorized")
        return
    except StoreUnavailable:
        await websocket.close(code=1011, reason="Service unavailable")
        return

    await websocket.accept()
    relay = asyncio.create_task(relay_room_events(websocket, backend, room_id))
    receiver = asyncio.create_task(wait_for_disconnect(websocket))
    done, pending = await asyncio.wait({relay, receiver}, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)

    if relay in done:
        if relay.exception() is not None:
            logger.error(f"Relay for room {room_id} failed: {relay.exception()}")
        try:
            await websocket.close()
        except RuntimeError as e:
            logger.debug(f"Error closing WebSocket: {e}")
    logger.info(f"WebSocket for room {room_id} finished")
