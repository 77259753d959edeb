"""
Pydantic schemas: API request/response bodies and the live room view
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from models import Role, RoomStatus, RoundStatus, Winner


# ============ Requests ============

class RoomCreate(BaseModel):
    max_players: int = Field(default=6)
    impostor_count: int = Field(default=1)
    max_rounds: int = Field(default=5)


class PlayerJoin(BaseModel):
    name: str


class ClueSubmit(BaseModel):
    player_id: UUID
    text: str


class VoteSubmit(BaseModel):
    voter_id: UUID
    target_id: UUID


# ============ Rows ============

class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    status: RoomStatus
    max_players: int
    impostor_count: int
    max_rounds: int
    current_round: int
    player_count: int = 0
    secret_word: Optional[str] = None
    winner: Optional[Winner] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class PlayerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_id: UUID
    name: str
    role: Optional[Role] = None
    is_alive: bool
    is_host: bool
    seat: int
    joined_at: Optional[datetime] = None


class RoundOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_id: UUID
    round_number: int
    status: RoundStatus
    current_turn_player_id: Optional[UUID] = None
    eliminated_player_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class ClueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    round_id: UUID
    player_id: UUID
    clue_text: str


# ============ Responses ============

class PlayerResponse(BaseModel):
    player_id: UUID
    room_id: UUID
    room_code: str
    name: str
    is_host: bool


class SubmissionResponse(BaseModel):
    """created=False means the submission already existed (no-op)"""
    status: str = "ok"
    created: bool
    round_status: RoundStatus


class RoundResultResponse(BaseModel):
    resolved: bool
    eliminated_player_id: Optional[UUID] = None
    eliminated_role: Optional[Role] = None
    game_over: bool = False
    winner: Optional[Winner] = None
    next_round_number: Optional[int] = None


class RoomView(BaseModel):
    """
    Everything a client renders for one room

    Always a full snapshot: consumers re-render, they never apply deltas.
    """
    room: RoomOut
    players: List[PlayerOut]
    current_round: Optional[RoundOut] = None
    clues: List[ClueOut] = Field(default_factory=list)
    votes_cast: int = 0
    alive_count: int = 0
    version: int = 0
