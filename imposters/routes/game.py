from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from imposters.config import settings
from imposters.errors import GameError, Unauthorized
from imposters.game_manager import GameManager
from imposters.schemas import (
    AdjustScoreRequest,
    CreateGameRequest,
    GameDetailResponse,
    GameResponse,
    GameSummary,
    JoinGameRequest,
    ParticipantDetailResponse,
    ParticipantResponse,
    RoundResultsResponse,
    StatusResponse,
    SubmitAnswerRequest,
    SubmitVoteRequest,
    UpdateModeRequest,
    UpdateScoresRequest,
)

router = APIRouter(prefix="/imposters", tags=["imposters"])
game_manager = GameManager()


def get_game_manager() -> GameManager:
    return game_manager


def get_admin_id(request: Request) -> str:
    """The admin identity set by the authentication layer in front of this service."""
    admin_id = request.headers.get(settings.ADMIN_HEADER)
    if not admin_id:
        e = Unauthorized("Admin login required")
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return admin_id


def _http_error(e: GameError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


# ------------------------------
# Games
# ------------------------------
@router.post("/games", response_model=GameResponse, status_code=201)
def create_game(req: CreateGameRequest, admin_id: str = Depends(get_admin_id),
                manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.create_game(
            admin_id,
            req.name,
            req.teams,
            req.question_pairs,
            participants_per_team=req.participants_per_team,
            voters_per_team=req.voters_per_team,
        )
    except GameError as e:
        raise _http_error(e)


@router.get("/games", response_model=List[GameSummary])
def list_games(admin_id: str = Depends(get_admin_id), manager: GameManager = Depends(get_game_manager)):
    return manager.list_games(admin_id)


@router.get("/games/{game_id}", response_model=GameDetailResponse)
def get_game(game_id: str, response: Response, manager: GameManager = Depends(get_game_manager)):
    """Polled by every admin and player page; never cached."""
    response.headers["Cache-Control"] = "no-store"
    try:
        return manager.get_game(game_id)
    except GameError as e:
        raise _http_error(e)


@router.delete("/games/{game_id}", response_model=StatusResponse)
def delete_game(game_id: str, admin_id: str = Depends(get_admin_id),
                manager: GameManager = Depends(get_game_manager)):
    try:
        manager.delete_game(admin_id, game_id)
    except GameError as e:
        raise _http_error(e)
    return StatusResponse(message="Game deleted")


@router.post("/games/{game_id}/join", response_model=ParticipantResponse, status_code=201)
def join_game(game_id: str, req: JoinGameRequest, manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.join_game(game_id, req.name, req.team_name, req.role)
    except GameError as e:
        raise _http_error(e)


# ------------------------------
# Phase changes (admin)
# ------------------------------
@router.patch("/games/{game_id}/mode", response_model=GameResponse)
def update_mode(game_id: str, req: UpdateModeRequest, admin_id: str = Depends(get_admin_id),
                manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.update_mode(admin_id, game_id, req.mode)
    except GameError as e:
        raise _http_error(e)


@router.post("/games/{game_id}/close-signups", response_model=GameResponse)
def close_signups(game_id: str, admin_id: str = Depends(get_admin_id),
                  manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.close_signups(admin_id, game_id)
    except GameError as e:
        raise _http_error(e)


@router.post("/games/{game_id}/questions/{question_number}/start", response_model=GameResponse)
def start_question(game_id: str, question_number: int, admin_id: str = Depends(get_admin_id),
                   manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.start_question(admin_id, game_id, question_number)
    except GameError as e:
        raise _http_error(e)


@router.post("/games/{game_id}/reveal-votes", response_model=GameResponse)
def reveal_and_vote(game_id: str, admin_id: str = Depends(get_admin_id),
                    manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.reveal_and_vote(admin_id, game_id)
    except GameError as e:
        raise _http_error(e)


@router.post("/games/{game_id}/show-results", response_model=GameResponse)
def show_results(game_id: str, admin_id: str = Depends(get_admin_id),
                 manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.show_results(admin_id, game_id)
    except GameError as e:
        raise _http_error(e)


@router.post("/games/{game_id}/end", response_model=GameResponse)
def end_game(game_id: str, admin_id: str = Depends(get_admin_id),
             manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.end_game(admin_id, game_id)
    except GameError as e:
        raise _http_error(e)


# ------------------------------
# Scores and results
# ------------------------------
@router.put("/games/{game_id}/teams", response_model=GameResponse)
def update_scores(game_id: str, req: UpdateScoresRequest, admin_id: str = Depends(get_admin_id),
                  manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.update_scores(admin_id, game_id, req.teams)
    except GameError as e:
        raise _http_error(e)


@router.post("/games/{game_id}/teams/{team_name}/adjust", response_model=GameResponse)
def adjust_team_score(game_id: str, team_name: str, req: AdjustScoreRequest,
                      admin_id: str = Depends(get_admin_id),
                      manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.adjust_team_score(admin_id, game_id, team_name, req.delta)
    except GameError as e:
        raise _http_error(e)


@router.get("/games/{game_id}/results", response_model=RoundResultsResponse)
def round_results(game_id: str, response: Response, question: Optional[int] = None,
                  manager: GameManager = Depends(get_game_manager)):
    response.headers["Cache-Control"] = "no-store"
    try:
        return manager.round_results(game_id, question)
    except GameError as e:
        raise _http_error(e)


# ------------------------------
# Participants
# ------------------------------
@router.delete("/games/{game_id}/participants/{participant_id}", response_model=StatusResponse)
def remove_participant(game_id: str, participant_id: str, admin_id: str = Depends(get_admin_id),
                       manager: GameManager = Depends(get_game_manager)):
    try:
        manager.remove_participant(admin_id, game_id, participant_id)
    except GameError as e:
        raise _http_error(e)
    return StatusResponse(message="Participant removed")


@router.get("/participants/{participant_id}", response_model=ParticipantDetailResponse)
def get_participant(participant_id: str, game_id: Optional[str] = None,
                    manager: GameManager = Depends(get_game_manager)):
    try:
        return manager.get_participant(participant_id, game_id)
    except GameError as e:
        raise _http_error(e)


@router.post("/participants/{participant_id}/answer", response_model=StatusResponse)
def submit_answer(participant_id: str, req: SubmitAnswerRequest,
                  manager: GameManager = Depends(get_game_manager)):
    try:
        manager.submit_answer(participant_id, req.answer, req.question_number)
    except GameError as e:
        raise _http_error(e)
    return StatusResponse(message="Answer submitted successfully")


@router.post("/participants/{participant_id}/vote", response_model=StatusResponse)
def submit_vote(participant_id: str, req: SubmitVoteRequest,
                manager: GameManager = Depends(get_game_manager)):
    try:
        manager.submit_vote(participant_id, req.voted_for_id, req.game_id, req.question_number)
    except GameError as e:
        raise _http_error(e)
    return StatusResponse(message="Vote recorded")
