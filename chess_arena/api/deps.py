"""API dependencies for the caller identity, services and result mapping."""

from typing import Annotated, NoReturn

from fastapi import Depends, Header, HTTPException, Request, status

from chess_arena.container import ArenaServices
from chess_arena.match.service import MatchService
from chess_arena.tournament.engine import TournamentOrchestrator
from chess_arena.utils.errors import ActionResult, ErrorCode, ErrorKind
from chess_arena.utils.security import Principal

# Rejections caused by malformed input rather than record state
_BAD_REQUEST_CODES = frozenset([
    ErrorCode.INVALID_REQUEST,
    ErrorCode.ILLEGAL_MOVE,
    ErrorCode.SAME_PLAYER,
])

_KIND_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.REJECTED: status.HTTP_409_CONFLICT,
    ErrorKind.INVARIANT: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_services(request: Request) -> ArenaServices:
    return request.app.state.services


def get_match_service(
    services: Annotated[ArenaServices, Depends(get_services)],
) -> MatchService:
    return services.matches


def get_orchestrator(
    services: Annotated[ArenaServices, Depends(get_services)],
) -> TournamentOrchestrator:
    return services.tournaments


def get_principal_optional(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_roles: Annotated[str | None, Header()] = None,
) -> Principal | None:
    """Identity asserted by the upstream authentication proxy, if any."""
    if not x_user_id or not x_user_id.strip():
        return None
    return Principal.from_header_values(x_user_id, x_user_roles)


def get_current_principal(
    principal: Annotated[Principal | None, Depends(get_principal_optional)],
) -> Principal:
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": ErrorCode.UNAUTHORIZED.value,
                    "message": "Authentication required",
                    "details": {},
                }
            },
        )
    return principal


def status_for(result: ActionResult) -> int:
    if result.error_code in _BAD_REQUEST_CODES:
        return status.HTTP_400_BAD_REQUEST
    return _KIND_STATUS.get(result.kind, status.HTTP_400_BAD_REQUEST)


def raise_for_result(result: ActionResult) -> NoReturn:
    """Translate a failed ``ActionResult`` into an HTTP error."""
    raise HTTPException(status_code=status_for(result), detail=result.to_dict())


OptionalPrincipal = Annotated[Principal | None, Depends(get_principal_optional)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
Matches = Annotated[MatchService, Depends(get_match_service)]
Tournaments = Annotated[TournamentOrchestrator, Depends(get_orchestrator)]
