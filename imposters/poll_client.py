"""
Polling client for admin and player screens.

Every tick re-fetches the whole game and recomputes the view from scratch.
Nothing is pushed; a failed fetch just leaves the previous view in place
until the next tick succeeds.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import httpx

from imposters.config import settings
from imposters.models import Phase, PhaseKind, Role, next_admin_step

logger = logging.getLogger(__name__)


class ParticipantGone(LookupError):
    """The participant is not (or no longer) part of the fetched game."""


@dataclass
class PlayerView:
    phase: Optional[Phase]
    round_number: int
    me: dict
    is_voter: bool
    question: Optional[str]
    has_answered: bool
    has_voted: bool
    my_vote: Optional[str]
    round_participants: List[dict]
    answered_count: int
    vote_counts: Dict[str, int]
    imposter_id: Optional[str]
    teams: List[dict]


@dataclass
class AdminView:
    phase: Optional[Phase]
    round_number: int
    total_rounds: int
    round_participants: List[dict]
    answered_count: int
    voter_ids: List[str]
    voted_voter_ids: List[str]
    vote_counts: Dict[str, int]
    imposter_id: Optional[str]
    next_step: Optional[str]
    teams: List[dict] = field(default_factory=list)


def _parse_phase(mode: str) -> Optional[Phase]:
    try:
        return Phase.parse(mode)
    except ValueError:
        return None


def _round_participants(game: dict) -> List[dict]:
    return [
        p for p in game.get("participants", [])
        if p["role"] == Role.PARTICIPANT.value and p.get("question_number") == game["current_question"]
    ]


def _round_votes(game: dict) -> List[dict]:
    return [v for v in game.get("votes", []) if v["question_number"] == game["current_question"]]


def _tally(votes: List[dict]) -> Dict[str, int]:
    counts = {}
    for vote in votes:
        counts[vote["voted_for_id"]] = counts.get(vote["voted_for_id"], 0) + 1
    return counts


def _current_pair(game: dict) -> Optional[dict]:
    n = game["current_question"]
    pairs = game.get("question_pairs", [])
    if 1 <= n <= len(pairs):
        return pairs[n - 1]
    return None


def derive_player_view(game: dict, participant_id: str) -> PlayerView:
    """Everything a player's screen shows, computed from one fetched game payload."""
    me = next((p for p in game.get("participants", []) if p["id"] == participant_id), None)
    if me is None:
        raise ParticipantGone("Participant not found in game")

    phase = _parse_phase(game["current_mode"])
    players = _round_participants(game)
    votes = _round_votes(game)
    my_vote = next((v for v in votes if v["voter_id"] == participant_id), None)

    # Voters always see the real question; the imposter gets the fake one without knowing it
    pair = _current_pair(game)
    question = None
    if pair is not None:
        question = pair["fake_q"] if me.get("has_fake_question") else pair["real_q"]

    imposter_id = None
    if phase is not None and phase.kind in (PhaseKind.RESULT, PhaseKind.FINISHED):
        imposter_id = next((p["id"] for p in players if p.get("has_fake_question")), None)

    return PlayerView(
        phase=phase,
        round_number=game["current_question"],
        me=me,
        is_voter=me["role"] == Role.VOTER.value,
        question=question,
        has_answered=bool(me.get("answer")),
        has_voted=my_vote is not None,
        my_vote=my_vote["voted_for_id"] if my_vote else None,
        round_participants=players,
        answered_count=sum(1 for p in players if p.get("answer")),
        vote_counts=_tally(votes),
        imposter_id=imposter_id,
        teams=sorted(game.get("teams", []), key=lambda t: t["score"], reverse=True),
    )


def derive_admin_view(game: dict) -> AdminView:
    phase = _parse_phase(game["current_mode"])
    total = len(game.get("question_pairs", []))
    players = _round_participants(game)
    votes = _round_votes(game)
    voter_ids = [p["id"] for p in game.get("participants", []) if p["role"] == Role.VOTER.value]

    next_step = None
    if phase is not None:
        step = next_admin_step(phase, total)
        if step is not None:
            next_step = str(step)

    return AdminView(
        phase=phase,
        round_number=game["current_question"],
        total_rounds=total,
        round_participants=players,
        answered_count=sum(1 for p in players if p.get("answer")),
        voter_ids=voter_ids,
        voted_voter_ids=[v["voter_id"] for v in votes],
        vote_counts=_tally(votes),
        imposter_id=next((p["id"] for p in players if p.get("has_fake_question")), None),
        next_step=next_step,
        teams=list(game.get("teams", [])),
    )


class PollSyncClient:
    """
    Keeps one screen in sync with a game by polling it.

    With a participant_id it derives a PlayerView, otherwise an AdminView.
    The typed answer and chosen vote target are local drafts; they are only
    cleared when the fetched round number moves on, never by a poll that
    lands while the player is still typing.
    """

    def __init__(self, base_url: str, game_id: str, participant_id: Optional[str] = None,
                 interval: Optional[float] = None, client: Optional[httpx.AsyncClient] = None,
                 on_update: Optional[Callable[[object], None]] = None):
        self.game_id = game_id
        self.participant_id = participant_id
        self.interval = settings.POLL_INTERVAL_SECONDS if interval is None else interval
        self.on_update = on_update
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=10.0)

        self.game: Optional[dict] = None
        self.view = None
        self.last_round: Optional[int] = None
        self.draft_answer: str = ""
        self.selected_vote: Optional[str] = None
        self.removed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def poll_once(self):
        """Fetch once and refresh the view. Returns None when the fetch failed."""
        try:
            response = await self._client.get(
                f"/imposters/games/{self.game_id}",
                headers={"Cache-Control": "no-cache"},
            )
            response.raise_for_status()
            game = response.json()
            self._apply(game)
        except ParticipantGone:
            logger.warning("Participant %s is no longer in game %s", self.participant_id, self.game_id)
            self.removed = True
            self.view = None
            return None
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            # Non-JSON bodies and malformed payloads count as a failed tick
            logger.warning("Poll of game %s failed, retrying next tick: %s", self.game_id, e)
            return None

        if self.on_update is not None:
            self.on_update(self.view)
        return self.view

    def _apply(self, game: dict) -> None:
        # Derive first so a bad payload leaves the previous state untouched
        if self.participant_id is None:
            view = derive_admin_view(game)
        else:
            view = derive_player_view(game, self.participant_id)

        if self.last_round is not None and view.round_number != self.last_round:
            self.draft_answer = ""
            self.selected_vote = None
        self.last_round = view.round_number

        self.game = game
        self.view = view
        if self.participant_id is not None and view.me.get("answer"):
            self.draft_answer = view.me["answer"]

    async def run(self, stop: asyncio.Event) -> None:
        """Poll every interval until stop is set."""
        while not stop.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    # ------------------------------
    # Player actions
    # ------------------------------
    async def submit_answer(self, answer: Optional[str] = None) -> None:
        """Send the draft answer pinned to the round it was typed in."""
        if answer is not None:
            self.draft_answer = answer
        response = await self._client.post(
            f"/imposters/participants/{self.participant_id}/answer",
            json={"answer": self.draft_answer, "question_number": self.last_round},
        )
        response.raise_for_status()

    async def submit_vote(self, voted_for_id: Optional[str] = None) -> None:
        if voted_for_id is not None:
            self.selected_vote = voted_for_id
        if not self.selected_vote:
            raise ValueError("Pick someone to vote for first")
        response = await self._client.post(
            f"/imposters/participants/{self.participant_id}/vote",
            json={
                "game_id": self.game_id,
                "voted_for_id": self.selected_vote,
                "question_number": self.last_round,
            },
        )
        response.raise_for_status()
