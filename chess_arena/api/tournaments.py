"""Tournament API endpoints.

Public:
- GET  /tournaments                 list tournaments
- GET  /tournaments/{id}            tournament with bracket
- GET  /tournaments/{id}/bracket    bracket only (after start)
- POST /tournaments/{id}/register   register the caller

Admin:
- POST  /admin/tournaments                                      create
- PATCH /admin/tournaments/{id}                                 edit during registration
- POST  /admin/tournaments/{id}/start                           build bracket
- POST  /admin/tournaments/{id}/cancel                          cancel
- POST  /admin/tournaments/{id}/matches/{match_id}/resync       re-apply a result
"""

from fastapi import APIRouter, status

from chess_arena.api.deps import (
    CurrentPrincipal,
    OptionalPrincipal,
    Tournaments,
    raise_for_result,
)
from chess_arena.api.schemas import (
    BracketResponse,
    CreateTournamentRequest,
    ErrorResponse,
    StartTournamentRequest,
    TournamentResponse,
    UpdateTournamentRequest,
)
from chess_arena.tournament.models import TournamentSnapshot

router = APIRouter(prefix="/tournaments", tags=["Tournaments"])
admin_router = APIRouter(prefix="/admin/tournaments", tags=["Admin"])

_ADMIN_ERRORS = {
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Admin role required"},
    404: {"model": ErrorResponse, "description": "Tournament not found"},
}


def _to_response(snapshot: TournamentSnapshot) -> TournamentResponse:
    return TournamentResponse.model_validate(snapshot.to_dict())


@router.get("", response_model=list[TournamentResponse])
async def list_tournaments(tournaments: Tournaments):
    snapshots = await tournaments.list_tournaments()
    return [_to_response(s) for s in snapshots]


@router.get(
    "/{tournament_id}",
    response_model=TournamentResponse,
    responses={404: {"model": ErrorResponse, "description": "Tournament not found"}},
)
async def get_tournament(tournament_id: int, tournaments: Tournaments):
    result = await tournaments.get_tournament(tournament_id)
    if not result.success:
        raise_for_result(result)
    return _to_response(result.data)


@router.get(
    "/{tournament_id}/bracket",
    response_model=BracketResponse,
    responses={404: {"model": ErrorResponse, "description": "Tournament or bracket not found"}},
)
async def get_bracket(tournament_id: int, tournaments: Tournaments):
    result = await tournaments.get_tournament_bracket(tournament_id)
    if not result.success:
        raise_for_result(result)
    return BracketResponse.model_validate(result.data.to_dict())


@router.post(
    "/{tournament_id}/register",
    response_model=TournamentResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Tournament not found"},
        409: {"model": ErrorResponse, "description": "Closed, full or already registered"},
    },
)
async def register(tournament_id: int, principal: CurrentPrincipal, tournaments: Tournaments):
    """Register the authenticated user."""
    result = await tournaments.register_participant(tournament_id, principal.id)
    if not result.success:
        raise_for_result(result)
    return _to_response(result.data)


# =============================================================================
# Admin
# =============================================================================


@admin_router.post(
    "",
    response_model=TournamentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ADMIN_ERRORS,
)
async def create_tournament(
    request: CreateTournamentRequest,
    principal: OptionalPrincipal,
    tournaments: Tournaments,
):
    result = await tournaments.create_tournament(
        principal,
        name=request.name,
        description=request.description,
        max_participants=request.max_participants,
    )
    if not result.success:
        raise_for_result(result)
    return _to_response(result.data)


@admin_router.patch("/{tournament_id}", response_model=TournamentResponse, responses=_ADMIN_ERRORS)
async def update_tournament(
    tournament_id: int,
    request: UpdateTournamentRequest,
    principal: OptionalPrincipal,
    tournaments: Tournaments,
):
    result = await tournaments.update_tournament(
        principal,
        tournament_id,
        name=request.name,
        description=request.description,
        max_participants=request.max_participants,
    )
    if not result.success:
        raise_for_result(result)
    return _to_response(result.data)


@admin_router.post(
    "/{tournament_id}/start",
    response_model=TournamentResponse,
    responses=_ADMIN_ERRORS,
)
async def start_tournament(
    tournament_id: int,
    principal: OptionalPrincipal,
    tournaments: Tournaments,
    request: StartTournamentRequest | None = None,
):
    """Build the bracket and create the first-round matches.

    An explicit seed reproduces the same bracket for the same participants.
    """
    seed = request.seed if request is not None else None
    result = await tournaments.start_tournament(principal, tournament_id, seed=seed)
    if not result.success:
        raise_for_result(result)
    return _to_response(result.data)


@admin_router.post(
    "/{tournament_id}/cancel",
    response_model=TournamentResponse,
    responses=_ADMIN_ERRORS,
)
async def cancel_tournament(tournament_id: int, principal: OptionalPrincipal, tournaments: Tournaments):
    result = await tournaments.cancel_tournament(principal, tournament_id)
    if not result.success:
        raise_for_result(result)
    return _to_response(result.data)


@admin_router.post(
    "/{tournament_id}/matches/{match_id}/resync",
    response_model=TournamentResponse,
    responses=_ADMIN_ERRORS,
)
async def resync_match(
    tournament_id: int,
    match_id: int,
    principal: OptionalPrincipal,
    tournaments: Tournaments,
):
    """Re-apply a decided match to the bracket. Safe to repeat."""
    result = await tournaments.resync_match(principal, tournament_id, match_id)
    if not result.success:
        raise_for_result(result)
    return _to_response(result.data)
