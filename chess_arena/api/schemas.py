"""Request/response models for the HTTP API.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Matches
# =============================================================================


class CreateMatchRequest(CamelModel):
    """Free match creation (admin)."""

    white_player_id: str = Field(..., min_length=1, max_length=64)
    black_player_id: str = Field(..., min_length=1, max_length=64)


class SubmitMoveRequest(CamelModel):
    """SAN (``Nf3``) or UCI (``g1f3``)."""

    move: str = Field(..., min_length=1, max_length=16)


class TournamentRefResponse(CamelModel):
    tournament_id: int
    round: int
    match_number: int
    game_number: int


class MatchResponse(CamelModel):
    id: int
    white: str
    black: str
    status: str
    fen: str
    moves: list[str]
    tournament: Optional[TournamentRefResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# Tournaments
# =============================================================================


class CreateTournamentRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    max_participants: Optional[int] = Field(default=None, ge=0, le=4096)


class UpdateTournamentRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    max_participants: Optional[int] = Field(default=None, ge=0, le=4096)


class StartTournamentRequest(CamelModel):
    seed: Optional[int] = Field(default=None, ge=0, le=2**31 - 1)


class BracketSlotResponse(CamelModel):
    match_number: int
    player1: Optional[str] = None
    player2: Optional[str] = None
    match_id: Optional[int] = None
    winner: Optional[str] = None
    status: Optional[str] = None


class BracketRoundResponse(CamelModel):
    round: int
    matches: list[BracketSlotResponse]


class BracketResponse(CamelModel):
    rounds: list[BracketRoundResponse]


class TournamentResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    status: str
    max_participants: int
    participants: list[str]
    bracket: Optional[BracketResponse] = None
    champion: Optional[str] = None
    seed: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


# =============================================================================
# Errors
# =============================================================================


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str = Field(..., description="Error code (e.g., MATCH_NOT_FOUND)")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error details")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorDetail
    trace_id: Optional[str] = Field(default=None, alias="traceId")
