# imposters/models.py
import re
from enum import Enum
from typing import List, Optional


class Role(str, Enum):
    PARTICIPANT = "participant"
    VOTER = "voter"


class PhaseKind(str, Enum):
    SIGNUP = "signup"
    GAME = "game"
    QUESTION = "question"
    VOTE = "vote"
    RESULT = "result"
    FINISHED = "finished"


ROUND_KINDS = (PhaseKind.QUESTION, PhaseKind.VOTE, PhaseKind.RESULT)

_ROUND_MODE = re.compile(r"^question-(\d+)")


class Phase:
    """
    A game phase as a tagged value.

    Stored and sent over the wire in the string form clients already parse
    ('signup', 'game', 'question-2', 'question-2-vote', 'question-2-result',
    'finished').
    """

    def __init__(self, kind: PhaseKind, number: int = 0):
        if kind in ROUND_KINDS and number < 1:
            raise ValueError(f"Round phase '{kind.value}' needs a round number >= 1")
        self.kind = kind
        self.number = number if kind in ROUND_KINDS else 0

    @classmethod
    def parse(cls, mode: str) -> "Phase":
        """Parse the string form. Any round mode containing '-vote' or '-result' is that sub-phase."""
        for kind in (PhaseKind.SIGNUP, PhaseKind.GAME, PhaseKind.FINISHED):
            if mode == kind.value:
                return cls(kind)

        match = _ROUND_MODE.match(mode or "")
        if not match:
            raise ValueError(f"Unknown game mode '{mode}'")

        number = int(match.group(1))
        if "-vote" in mode:
            return cls(PhaseKind.VOTE, number)
        if "-result" in mode:
            return cls(PhaseKind.RESULT, number)
        return cls(PhaseKind.QUESTION, number)

    @classmethod
    def question(cls, number: int) -> "Phase":
        return cls(PhaseKind.QUESTION, number)

    @property
    def is_round(self) -> bool:
        return self.kind in ROUND_KINDS

    def __str__(self) -> str:
        if self.kind == PhaseKind.QUESTION:
            return f"question-{self.number}"
        if self.kind == PhaseKind.VOTE:
            return f"question-{self.number}-vote"
        if self.kind == PhaseKind.RESULT:
            return f"question-{self.number}-result"
        return self.kind.value

    def __repr__(self) -> str:
        return f"Phase({str(self)!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Phase):
            return NotImplemented
        return self.kind == other.kind and self.number == other.number

    def __hash__(self) -> int:
        return hash((self.kind, self.number))


def allowed_transitions(current: Phase, total_rounds: int) -> List[Phase]:
    """Legal successors of a phase. Restarting the current round is always allowed while in it."""
    n = current.number

    if current.kind == PhaseKind.SIGNUP:
        return [Phase(PhaseKind.GAME)]
    if current.kind == PhaseKind.GAME:
        return [Phase.question(1)] if total_rounds >= 1 else []
    if current.kind == PhaseKind.QUESTION:
        return [Phase(PhaseKind.VOTE, n), Phase.question(n)]
    if current.kind == PhaseKind.VOTE:
        return [Phase(PhaseKind.RESULT, n), Phase.question(n)]
    if current.kind == PhaseKind.RESULT:
        if n < total_rounds:
            return [Phase.question(n + 1), Phase.question(n)]
        return [Phase(PhaseKind.FINISHED), Phase.question(n)]
    return []


def next_admin_step(current: Phase, total_rounds: int) -> Optional[Phase]:
    """The forward step the admin would normally take next, or None at the end."""
    forward = [p for p in allowed_transitions(current, total_rounds)
               if not (p.kind == PhaseKind.QUESTION and p.number == current.number)]
    return forward[0] if forward else None
