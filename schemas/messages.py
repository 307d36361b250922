from typing import Optional

from pydantic import BaseModel, Field

from constants import SENDER_MAX_LENGTH, TEXT_MAX_LENGTH


class Message(BaseModel):
    id: str
    sender: str
    text: str
    timestamp: str
    room_id: str
    token: Optional[str] = None

class PostMessageRequest(BaseModel):
    sender: str = Field(..., min_length=1, max_length=SENDER_MAX_LENGTH)
    text: str = Field(..., min_length=1, max_length=TEXT_MAX_LENGTH)

class PostMessageResponse(BaseModel):
    message: Message

class ListMessagesResponse(BaseModel):
    messages: list[Message]
