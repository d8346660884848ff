# imposters/db_models.py
from sqlalchemy import Column, String, Integer, Boolean, Text, ForeignKey, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from imposters.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class DBGame(Base):
    """
    Represents an Imposters game in the database.
    Maps to the 'games' table.
    """
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=_new_id)
    admin_id = Column(String(100), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    teams = Column(JSON, nullable=False, default=list)            # [{"name": str, "score": int}]
    question_pairs = Column(JSON, nullable=False, default=list)   # [{"real_q": str, "fake_q": str}]
    participants_per_team = Column(Integer, default=3, nullable=False)
    voters_per_team = Column(Integer, default=5, nullable=False)
    current_mode = Column(String(50), default="signup", nullable=False)
    current_question = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationship: One game has many participants and votes
    participants = relationship(
        "DBParticipant",
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="DBParticipant.joined_at",
    )
    votes = relationship("DBVote", back_populates="game", cascade="all, delete-orphan")


class DBParticipant(Base):
    """
    Represents a player (answerer or voter) in the database.
    Maps to the 'participants' table.
    """
    __tablename__ = "participants"

    id = Column(String(36), primary_key=True, default=_new_id)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    team_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False)  # participant, voter
    has_fake_question = Column(Boolean, default=False, nullable=False)
    answer = Column(Text, nullable=True)
    question_number = Column(Integer, nullable=True)
    joined_at = Column(DateTime, default=datetime.utcnow)

    # Relationship: Participant belongs to one game
    game = relationship("DBGame", back_populates="participants")
    votes_cast = relationship("DBVote", foreign_keys="DBVote.voter_id", viewonly=True)

    # Unique constraint: No duplicate names in same game
    __table_args__ = (
        UniqueConstraint('game_id', 'name', name='unique_participant_name_per_game'),
    )


class DBVote(Base):
    """
    Represents a vote in the database.
    Maps to the 'votes' table.
    """
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    question_number = Column(Integer, nullable=False)
    voter_id = Column(String(36), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    voted_for_id = Column(String(36), ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationship: Vote belongs to one game
    game = relationship("DBGame", back_populates="votes")

    # Unique constraint: Each voter can only vote once per round
    __table_args__ = (
        UniqueConstraint('game_id', 'voter_id', 'question_number', name='unique_vote_per_voter_per_round'),
    )
