# imposters/game_manager.py
import logging
import random
from contextlib import contextmanager
from typing import Callable, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from imposters.assignment import pick_imposter
from imposters.config import settings
from imposters.database import SessionLocal
from imposters.db_models import DBGame, DBParticipant, DBVote
from imposters.errors import (
    AlreadyVoted,
    GameAlreadyStarted,
    GameValidationError,
    InvalidState,
    NameTaken,
    NotFound,
    NotOwner,
    StaleRound,
)
from imposters.models import Phase, PhaseKind, Role, allowed_transitions
from imposters.schemas import (
    GameDetailResponse,
    GameResponse,
    GameSummary,
    ParticipantDetailResponse,
    ParticipantResponse,
    QuestionPair,
    RoundEntry,
    RoundResultsResponse,
    Team,
)

logger = logging.getLogger(__name__)


class GameManager:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, rng=None,
                 strict: Optional[bool] = None):
        self._session_factory = session_factory
        self._rng = rng or random.Random()
        self.strict = settings.STRICT_TRANSITIONS if strict is None else strict

    def _get_db(self) -> Session:
        """Get a new database session"""
        return self._session_factory()

    @contextmanager
    def _transaction(self):
        """One session, one commit. Anything raised inside rolls the whole operation back."""
        db = self._get_db()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------
    # Lookups
    # ------------------------------
    @staticmethod
    def _load_game(db: Session, game_id: str, lock: bool = False) -> DBGame:
        query = db.query(DBGame).filter(DBGame.id == game_id)
        if lock:
            query = query.with_for_update()
        db_game = query.first()
        if not db_game:
            raise NotFound("Game not found")
        return db_game

    def _owned_game(self, db: Session, game_id: str, admin_id: str, lock: bool = False) -> DBGame:
        db_game = self._load_game(db, game_id, lock=lock)
        if db_game.admin_id != admin_id:
            raise NotOwner("This game belongs to another admin")
        return db_game

    @staticmethod
    def _round_participants(db: Session, game_id: str) -> List[DBParticipant]:
        return (
            db.query(DBParticipant)
            .filter(DBParticipant.game_id == game_id, DBParticipant.role == Role.PARTICIPANT.value)
            .order_by(DBParticipant.joined_at, DBParticipant.name)
            .all()
        )

    @staticmethod
    def _current_phase(db_game: DBGame) -> Phase:
        try:
            return Phase.parse(db_game.current_mode)
        except ValueError:
            raise InvalidState(f"Game is in an unrecognised mode '{db_game.current_mode}'")

    # ------------------------------
    # Game Management
    # ------------------------------
    def create_game(self, admin_id: str, name: str, team_names: Iterable[str],
                    question_pairs: Iterable, participants_per_team: Optional[int] = None,
                    voters_per_team: Optional[int] = None) -> GameResponse:
        """
        Create a new game in the signup phase.
        Every team starts at 0 points.
        """
        name = (name or "").strip()
        if not name:
            raise GameValidationError("Game name is required")

        teams = [t.strip() for t in (team_names or []) if t and t.strip()]
        if len(teams) < settings.MIN_TEAMS:
            raise GameValidationError(f"At least {settings.MIN_TEAMS} teams are required")
        if len(set(teams)) != len(teams):
            raise GameValidationError("Team names must be unique")

        pairs = [QuestionPair.model_validate(p) for p in (question_pairs or [])]
        pairs = [p for p in pairs if p.real_q.strip() and p.fake_q.strip()]
        if len(pairs) < settings.MIN_QUESTION_PAIRS:
            raise GameValidationError(
                f"At least {settings.MIN_QUESTION_PAIRS} complete question pair(s) are required"
            )

        with self._transaction() as db:
            db_game = DBGame(
                admin_id=admin_id,
                name=name,
                teams=[{"name": t, "score": 0} for t in teams],
                question_pairs=[p.model_dump() for p in pairs],
                participants_per_team=participants_per_team or settings.DEFAULT_PARTICIPANTS_PER_TEAM,
                voters_per_team=voters_per_team or settings.DEFAULT_VOTERS_PER_TEAM,
                current_mode=PhaseKind.SIGNUP.value,
                current_question=0,
            )
            db.add(db_game)
            db.flush()
            game = GameResponse.model_validate(db_game)

        logger.info("✅ Game %s ('%s') created by admin %s", game.id, game.name, admin_id)
        return game

    def list_games(self, admin_id: str) -> List[GameSummary]:
        """The admin's games, newest first."""
        with self._transaction() as db:
            db_games = (
                db.query(DBGame)
                .filter(DBGame.admin_id == admin_id)
                .order_by(DBGame.created_at.desc())
                .all()
            )
            return [
                GameSummary(
                    **GameResponse.model_validate(g).model_dump(),
                    participant_count=len(g.participants),
                )
                for g in db_games
            ]

    def get_game(self, game_id: str) -> GameDetailResponse:
        """
        Load a game with its participants (in join order) and all votes.
        This is what every client polls.
        """
        with self._transaction() as db:
            db_game = self._load_game(db, game_id)
            return GameDetailResponse.model_validate(db_game)

    def get_participant(self, participant_id: str, game_id: Optional[str] = None) -> ParticipantDetailResponse:
        with self._transaction() as db:
            query = db.query(DBParticipant).filter(DBParticipant.id == participant_id)
            if game_id is not None:
                query = query.filter(DBParticipant.game_id == game_id)
            db_participant = query.first()
            if not db_participant:
                raise NotFound("Participant not found")
            return ParticipantDetailResponse.model_validate(db_participant)

    def delete_game(self, admin_id: str, game_id: str) -> None:
        """Delete a game with all its votes and participants in one transaction."""
        with self._transaction() as db:
            self._owned_game(db, game_id, admin_id, lock=True)
            votes = db.query(DBVote).filter(DBVote.game_id == game_id).delete(synchronize_session=False)
            players = db.query(DBParticipant).filter(DBParticipant.game_id == game_id).delete(
                synchronize_session=False
            )
            db.query(DBGame).filter(DBGame.id == game_id).delete(synchronize_session=False)

        logger.info("🗑️ Game %s deleted (%d participants, %d votes)", game_id, players, votes)

    # ------------------------------
    # Participant Session
    # ------------------------------
    def join_game(self, game_id: str, name: str, team_name: str, role) -> ParticipantResponse:
        """
        Add a player to a game that is still in signup.
        The returned id is the player's link; there is no other login.
        """
        name = (name or "").strip()
        if not name or not team_name:
            raise GameValidationError("Missing required fields")
        try:
            role = Role(role)
        except ValueError:
            raise GameValidationError(f"Unknown role '{role}'")

        with self._transaction() as db:
            db_game = self._load_game(db, game_id)

            if db_game.current_mode != PhaseKind.SIGNUP.value:
                raise GameAlreadyStarted("Game has already started")

            if team_name not in [t["name"] for t in db_game.teams]:
                raise GameValidationError(f"Team '{team_name}' does not exist in this game")

            # Check if name is already taken in this game
            existing = db.query(DBParticipant).filter(
                DBParticipant.game_id == game_id,
                DBParticipant.name == name
            ).first()
            if existing:
                raise NameTaken(f"Name '{name}' already taken in this game")

            db_participant = DBParticipant(
                game_id=game_id,
                name=name,
                team_name=team_name,
                role=role.value,
            )
            db.add(db_participant)
            try:
                db.flush()
            except IntegrityError:
                raise NameTaken(f"Name '{name}' already taken in this game")

            participant = ParticipantResponse.model_validate(db_participant)

        logger.info("✅ %s joined game %s as %s for team %s", name, game_id, role.value, team_name)
        return participant

    def submit_answer(self, participant_id: str, answer: str, question_number: Optional[int] = None) -> None:
        """
        Store a participant's answer, overwriting any previous one.

        With question_number the write only lands if the participant is still
        in that round, so a late answer can't reappear after a round reset.
        """
        with self._transaction() as db:
            db_participant = db.get(DBParticipant, participant_id)
            if not db_participant:
                raise NotFound("Participant not found")
            if db_participant.role != Role.PARTICIPANT.value:
                raise InvalidState("Only participants can submit answers")

            if question_number is None:
                db_participant.answer = answer
            else:
                updated = (
                    db.query(DBParticipant)
                    .filter(
                        DBParticipant.id == participant_id,
                        DBParticipant.question_number == question_number,
                    )
                    .update({DBParticipant.answer: answer}, synchronize_session=False)
                )
                if not updated:
                    raise StaleRound(f"Round {question_number} is no longer the current round")

        logger.info("Answer stored for participant %s", participant_id)

    def submit_vote(self, voter_id: str, voted_for_id: str, game_id: str, question_number: Optional[int]) -> None:
        """
        Record a voter's single vote for a round.
        The (game, voter, round) unique constraint is what finally rejects duplicates.
        """
        if not voter_id or not voted_for_id or not game_id or question_number is None:
            raise GameValidationError("Missing required fields")

        with self._transaction() as db:
            db_game = self._load_game(db, game_id)

            voter = db.query(DBParticipant).filter(
                DBParticipant.id == voter_id, DBParticipant.game_id == game_id
            ).first()
            if not voter:
                raise NotFound("Voter not found")
            if voter.role != Role.VOTER.value:
                raise InvalidState("Only voters can vote")

            target = db.query(DBParticipant).filter(
                DBParticipant.id == voted_for_id, DBParticipant.game_id == game_id
            ).first()
            if not target:
                raise NotFound("Participant voted for not found")
            if target.role != Role.PARTICIPANT.value:
                raise InvalidState("Votes can only go to participants")

            if question_number < 1 or question_number > db_game.current_question:
                raise InvalidState(f"Round {question_number} has not started")
            if target.question_number != question_number:
                raise InvalidState(f"{target.name} is not playing round {question_number}")

            existing = db.query(DBVote).filter(
                DBVote.game_id == game_id,
                DBVote.voter_id == voter_id,
                DBVote.question_number == question_number,
            ).first()
            if existing:
                raise AlreadyVoted("Already voted")

            db.add(DBVote(
                game_id=game_id,
                question_number=question_number,
                voter_id=voter_id,
                voted_for_id=voted_for_id,
            ))
            try:
                db.flush()
            except IntegrityError:
                raise AlreadyVoted("Already voted")

        logger.info("🗳️ %s voted in game %s round %d", voter_id, game_id, question_number)

    def remove_participant(self, admin_id: str, game_id: str, participant_id: str) -> None:
        """Remove a player at any phase, together with votes cast by or for them."""
        with self._transaction() as db:
            self._owned_game(db, game_id, admin_id)
            db_participant = db.query(DBParticipant).filter(
                DBParticipant.id == participant_id, DBParticipant.game_id == game_id
            ).first()
            if not db_participant:
                raise NotFound("Participant not found")

            if db_participant.has_fake_question:
                logger.warning("Removing the current imposter %s from game %s", participant_id, game_id)

            db.query(DBVote).filter(
                DBVote.game_id == game_id,
                or_(DBVote.voter_id == participant_id, DBVote.voted_for_id == participant_id),
            ).delete(synchronize_session=False)
            db.delete(db_participant)

        logger.info("Participant %s removed from game %s", participant_id, game_id)

    # ------------------------------
    # Round Controller
    # ------------------------------
    def _apply_mode(self, db_game: DBGame, mode: str) -> None:
        if not self.strict:
            db_game.current_mode = mode
            return

        try:
            target = Phase.parse(mode)
        except ValueError as e:
            raise GameValidationError(str(e))

        if target.kind == PhaseKind.QUESTION:
            raise InvalidState("Rounds are started with start_question")

        current = self._current_phase(db_game)
        if target not in allowed_transitions(current, len(db_game.question_pairs)):
            raise InvalidState(f"Cannot move from '{current}' to '{target}'")

        db_game.current_mode = str(target)

    def update_mode(self, admin_id: str, game_id: str, mode: str) -> GameResponse:
        return self._step(admin_id, game_id, lambda g: mode)

    def _step(self, admin_id: str, game_id: str, target: Callable[[DBGame], str]) -> GameResponse:
        with self._transaction() as db:
            db_game = self._owned_game(db, game_id, admin_id, lock=True)
            previous = db_game.current_mode
            self._apply_mode(db_game, target(db_game))
            db.flush()
            game = GameResponse.model_validate(db_game)

        logger.info("Game %s: %s -> %s", game_id, previous, game.current_mode)
        return game

    def close_signups(self, admin_id: str, game_id: str) -> GameResponse:
        return self._step(admin_id, game_id, lambda g: PhaseKind.GAME.value)

    def reveal_and_vote(self, admin_id: str, game_id: str) -> GameResponse:
        return self._step(admin_id, game_id, lambda g: f"question-{g.current_question}-vote")

    def show_results(self, admin_id: str, game_id: str) -> GameResponse:
        return self._step(admin_id, game_id, lambda g: f"question-{g.current_question}-result")

    def end_game(self, admin_id: str, game_id: str) -> GameResponse:
        return self._step(admin_id, game_id, lambda g: PhaseKind.FINISHED.value)

    def start_question(self, admin_id: str, game_id: str, question_number: int) -> GameResponse:
        """
        Start (or restart) a round.

        Resets every participant's answer and imposter flag, purges the
        round's votes, picks a new imposter from the freshly reset rows and
        moves the game to 'question-N'. All of it commits together.
        """
        if question_number is None or question_number < 1:
            raise GameValidationError("Question number must be 1 or more")

        with self._transaction() as db:
            db_game = self._owned_game(db, game_id, admin_id, lock=True)

            if self.strict:
                total = len(db_game.question_pairs)
                if question_number > total:
                    raise InvalidState(f"This game only has {total} question(s)")
                current = self._current_phase(db_game)
                if Phase.question(question_number) not in allowed_transitions(current, total):
                    raise InvalidState(f"Cannot start question {question_number} from '{current}'")

            # Reset answers and fake question assignments for ALL participants
            db.query(DBParticipant).filter(
                DBParticipant.game_id == game_id,
                DBParticipant.role == Role.PARTICIPANT.value,
            ).update(
                {
                    DBParticipant.answer: None,
                    DBParticipant.has_fake_question: False,
                    DBParticipant.question_number: question_number,
                },
                synchronize_session=False,
            )

            # Clear votes left over from an earlier run of this round
            purged = db.query(DBVote).filter(
                DBVote.game_id == game_id,
                DBVote.question_number == question_number,
            ).delete(synchronize_session=False)

            db.flush()
            fresh = (
                db.query(DBParticipant)
                .filter(DBParticipant.game_id == game_id, DBParticipant.role == Role.PARTICIPANT.value)
                .order_by(DBParticipant.joined_at, DBParticipant.name)
                .populate_existing()
                .all()
            )

            imposter = None
            if fresh:
                imposter = pick_imposter(fresh, self._rng)
                imposter.has_fake_question = True

            db_game.current_mode = str(Phase.question(question_number))
            db_game.current_question = question_number
            db.flush()
            game = GameResponse.model_validate(db_game)

        logger.info(
            "▶️ Game %s round %d started with %d participants (%d stale votes purged)",
            game_id, question_number, len(fresh), purged,
        )
        if imposter is None:
            logger.warning("Game %s round %d has no participants, no imposter assigned", game_id, question_number)
        return game

    # ------------------------------
    # Scores
    # ------------------------------
    def update_scores(self, admin_id: str, game_id: str, teams: Iterable) -> GameResponse:
        """
        Replace the whole team list. Last writer wins.

        Only scores may change: the list must name exactly the game's teams,
        since participants refer to them by name.
        """
        new_teams = [Team.model_validate(t) for t in teams]
        names = [t.name.strip() for t in new_teams]
        if not all(names):
            raise GameValidationError("Team names cannot be blank")
        if len(set(names)) != len(names):
            raise GameValidationError("Team names must be unique")

        with self._transaction() as db:
            db_game = self._owned_game(db, game_id, admin_id)
            current = {t["name"] for t in db_game.teams}
            if set(names) != current:
                raise GameValidationError(
                    f"Teams must stay {sorted(current)}; only scores can be updated"
                )
            db_game.teams = [{"name": n, "score": t.score} for n, t in zip(names, new_teams)]
            db.flush()
            game = GameResponse.model_validate(db_game)

        logger.info("Scores updated for game %s: %s", game_id, {t.name: t.score for t in game.teams})
        return game

    def adjust_team_score(self, admin_id: str, game_id: str, team_name: str, delta: int) -> GameResponse:
        """Add delta (may be negative) to one team's score."""
        with self._transaction() as db:
            db_game = self._owned_game(db, game_id, admin_id, lock=True)
            teams = [dict(t) for t in db_game.teams]
            team = next((t for t in teams if t["name"] == team_name), None)
            if team is None:
                raise NotFound(f"Team '{team_name}' not found")
            team["score"] += delta
            db_game.teams = teams
            db.flush()
            game = GameResponse.model_validate(db_game)

        logger.info("Game %s: %s %+d points", game_id, team_name, delta)
        return game

    # ------------------------------
    # Results
    # ------------------------------
    def round_results(self, game_id: str, question_number: Optional[int] = None) -> RoundResultsResponse:
        """
        Answers, vote tally and imposter for one round (the current one by default).
        Only the current round still has answers; earlier rounds keep their votes.
        """
        with self._transaction() as db:
            db_game = self._load_game(db, game_id)
            n = question_number if question_number is not None else db_game.current_question
            if n < 1 or n > db_game.current_question:
                raise InvalidState(f"Round {n} has not started")

            players = [p for p in self._round_participants(db, game_id) if p.question_number == n]
            voter_ids = [
                p.id for p in db.query(DBParticipant).filter(
                    DBParticipant.game_id == game_id, DBParticipant.role == Role.VOTER.value
                )
            ]
            votes = db.query(DBVote).filter(DBVote.game_id == game_id, DBVote.question_number == n).all()

            vote_counts = {}
            for vote in votes:
                vote_counts[vote.voted_for_id] = vote_counts.get(vote.voted_for_id, 0) + 1

            max_votes = max(vote_counts.values(), default=0)
            most_voted_ids = [pid for pid, count in vote_counts.items() if count == max_votes and max_votes > 0]
            imposter = next((p for p in players if p.has_fake_question), None)

            return RoundResultsResponse(
                game_id=game_id,
                question_number=n,
                mode=db_game.current_mode,
                entries=[
                    RoundEntry(
                        participant_id=p.id,
                        name=p.name,
                        team_name=p.team_name,
                        answer=p.answer,
                        votes=vote_counts.get(p.id, 0),
                        is_imposter=p.has_fake_question,
                    )
                    for p in players
                ],
                vote_counts=vote_counts,
                imposter_id=imposter.id if imposter else None,
                voters_voted=sorted({v.voter_id for v in votes}),
                total_voters=len(voter_ids),
                answered=sum(1 for p in players if p.answer),
                most_voted_ids=most_voted_ids,
                imposter_caught=bool(imposter and imposter.id in most_voted_ids),
            )
