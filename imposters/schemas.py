# imposters/schemas.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional

from imposters.models import Role


class Team(BaseModel):
    name: str
    score: int = 0


class QuestionPair(BaseModel):
    real_q: str
    fake_q: str


class CreateGameRequest(BaseModel):
    name: str
    teams: List[str]
    question_pairs: List[QuestionPair]
    participants_per_team: Optional[int] = Field(default=None, ge=1)
    voters_per_team: Optional[int] = Field(default=None, ge=0)


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    game_id: str
    name: str
    team_name: str
    role: Role
    has_fake_question: bool
    answer: Optional[str] = None
    question_number: Optional[int] = None
    joined_at: Optional[datetime] = None


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    game_id: str
    question_number: int
    voter_id: str
    voted_for_id: str
    created_at: Optional[datetime] = None


class GameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    teams: List[Team]
    question_pairs: List[QuestionPair]
    participants_per_team: int
    voters_per_team: int
    current_mode: str
    current_question: int
    created_at: Optional[datetime] = None


class GameDetailResponse(GameResponse):
    participants: List[ParticipantResponse]
    votes: List[VoteResponse]


class GameSummary(GameResponse):
    participant_count: int


class ParticipantDetailResponse(ParticipantResponse):
    game: GameResponse
    votes_cast: List[VoteResponse]


class JoinGameRequest(BaseModel):
    name: str
    team_name: str
    role: Role


class SubmitAnswerRequest(BaseModel):
    answer: str
    # Pin the answer to the round it was typed for
    question_number: Optional[int] = None


class SubmitVoteRequest(BaseModel):
    game_id: str
    voted_for_id: str
    question_number: int


class UpdateModeRequest(BaseModel):
    mode: str


class UpdateScoresRequest(BaseModel):
    teams: List[Team]


class AdjustScoreRequest(BaseModel):
    delta: int


class RoundEntry(BaseModel):
    participant_id: str
    name: str
    team_name: str
    answer: Optional[str] = None
    votes: int
    is_imposter: bool


class RoundResultsResponse(BaseModel):
    game_id: str
    question_number: int
    mode: str
    entries: List[RoundEntry]
    vote_counts: Dict[str, int]
    imposter_id: Optional[str] = None
    voters_voted: List[str]
    total_voters: int
    answered: int
    most_voted_ids: List[str]
    imposter_caught: bool


class StatusResponse(BaseModel):
    status: str = "success"
    message: Optional[str] = None
