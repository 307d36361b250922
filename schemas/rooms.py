from enum import Enum

from pydantic import BaseModel


class AdmissionOutcome(str, Enum):
    ADMITTED = "admitted"
    REUSE = "reuse"


class CreateRoomResponse(BaseModel):
    room_id: str

class AdmissionResponse(BaseModel):
    room_id: str
    outcome: AdmissionOutcome

class TTLResponse(BaseModel):
    ttl: int

class Session(BaseModel):
    room_id: str
    token: str
    connected: list[str]
