from fastapi import APIRouter, Depends

from dependencies import get_message_log, require_session
from message_log import MessageLog
from schemas.messages import ListMessagesResponse, PostMessageRequest, PostMessageResponse
from schemas.rooms import Session

messages_router = APIRouter(prefix="/rooms/{room_id}/messages", tags=["messages"])


@messages_router.post("", response_model=PostMessageResponse)
def post_message(
    body: PostMessageRequest,
    session: Session = Depends(require_session),
    message_log: MessageLog = Depends(get_message_log),
):
    message = message_log.post_message(session, body.sender, body.text)
    return PostMessageResponse(message=message)


@messages_router.get("", response_model=ListMessagesResponse, response_model_exclude_none=True)
def list_messages(
    session: Session = Depends(require_session),
    message_log: MessageLog = Depends(get_message_log),
):
    return ListMessagesResponse(messages=message_log.list_messages(session))
