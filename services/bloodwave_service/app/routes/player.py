from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..core.errors import UnknownCatalogEntry
from ..dependencies import get_current_user_id, get_player_service
from ..schemas import CreateMatchRequest, LeaderboardEntry, MatchResponse, PlayerStatsResponse
from ..services import PlayerService

router = APIRouter(prefix="/player")


@router.get("/stats", response_model=PlayerStatsResponse)
async def get_stats(
    user_id: int = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> PlayerStatsResponse:
    stats = await service.get_player_stats(user_id)
    if stats is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Player stats not found")
    return PlayerStatsResponse.model_validate(stats)


@router.post("/match", response_model=MatchResponse, status_code=status.HTTP_201_CREATED)
async def create_match(
    payload: CreateMatchRequest,
    user_id: int = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> MatchResponse:
    try:
        match = await service.create_match(user_id, payload)
    except UnknownCatalogEntry as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return MatchResponse.model_validate(match)


@router.get("/matches", response_model=list[MatchResponse])
async def list_matches(
    user_id: int = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> list[MatchResponse]:
    matches = await service.list_matches(user_id)
    return [MatchResponse.model_validate(match) for match in matches]


@router.get("/match/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: int,
    user_id: int = Depends(get_current_user_id),
    service: PlayerService = Depends(get_player_service),
) -> MatchResponse:
    match = await service.get_match(match_id, user_id)
    if match is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match not found")
    return MatchResponse.model_validate(match)


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    limit: int = Query(100),
    service: PlayerService = Depends(get_player_service),
) -> list[LeaderboardEntry]:
    return await service.leaderboard(limit)
