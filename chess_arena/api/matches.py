"""Match API endpoints."""

from fastapi import APIRouter, Query, status

from chess_arena.api.deps import CurrentPrincipal, Matches, OptionalPrincipal, raise_for_result
from chess_arena.api.schemas import (
    CreateMatchRequest,
    ErrorResponse,
    MatchResponse,
    SubmitMoveRequest,
)

router = APIRouter(prefix="/matches", tags=["Matches"])
admin_router = APIRouter(prefix="/admin/matches", tags=["Admin"])


@router.get("", response_model=list[MatchResponse])
async def list_matches(
    matches: Matches,
    tournament_id: int | None = Query(default=None, alias="tournamentId"),
):
    """List matches, newest first."""
    snapshots = await matches.list_matches(tournament_id=tournament_id)
    return [MatchResponse.model_validate(s.to_dict()) for s in snapshots]


@router.get(
    "/{match_id}",
    response_model=MatchResponse,
    responses={404: {"model": ErrorResponse, "description": "Match not found"}},
)
async def get_match(match_id: int, matches: Matches):
    result = await matches.get_match(match_id)
    if not result.success:
        raise_for_result(result)
    return MatchResponse.model_validate(result.data.to_dict())


@router.post(
    "/{match_id}/moves",
    response_model=MatchResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Illegal move"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Match not found"},
        409: {"model": ErrorResponse, "description": "Wrong turn, not a participant or finished"},
    },
)
async def submit_move(
    match_id: int,
    request: SubmitMoveRequest,
    principal: CurrentPrincipal,
    matches: Matches,
):
    """Play one move as the authenticated player.

    Accepts SAN (``Nf3``) or UCI (``g1f3``). Returns the updated match.
    """
    result = await matches.submit_move(match_id, principal.id, request.move)
    if not result.success:
        raise_for_result(result)
    return MatchResponse.model_validate(result.data.to_dict())


# =============================================================================
# Admin
# =============================================================================


@admin_router.post(
    "",
    response_model=MatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid players"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin role required"},
    },
)
async def create_match(request: CreateMatchRequest, principal: OptionalPrincipal, matches: Matches):
    result = await matches.create_match(principal, request.white_player_id, request.black_player_id)
    if not result.success:
        raise_for_result(result)
    return MatchResponse.model_validate(result.data.to_dict())


@admin_router.post("/{match_id}/abort", response_model=MatchResponse)
async def abort_match(match_id: int, principal: OptionalPrincipal, matches: Matches):
    """Force an unfinished match into ``aborted``."""
    result = await matches.abort_match(principal, match_id)
    if not result.success:
        raise_for_result(result)
    return MatchResponse.model_validate(result.data.to_dict())


@admin_router.delete("/{match_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_match(match_id: int, principal: OptionalPrincipal, matches: Matches):
    result = await matches.delete_match(principal, match_id)
    if not result.success:
        raise_for_result(result)
