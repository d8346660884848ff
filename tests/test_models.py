import pytest

from imposters.models import Phase, PhaseKind, allowed_transitions, next_admin_step


@pytest.mark.parametrize("mode, kind, number", [
    ("signup", PhaseKind.SIGNUP, 0),
    ("game", PhaseKind.GAME, 0),
    ("question-3", PhaseKind.QUESTION, 3),
    ("question-3-vote", PhaseKind.VOTE, 3),
    ("question-12-result", PhaseKind.RESULT, 12),
    ("finished", PhaseKind.FINISHED, 0),
])
def test_parse_and_render(mode, kind, number):
    phase = Phase.parse(mode)
    assert phase.kind == kind
    assert phase.number == number
    assert str(phase) == mode


def test_parse_uses_substring_convention():
    assert Phase.parse("question-2-vote-extra").kind == PhaseKind.VOTE
    assert Phase.parse("question-2-result-final").kind == PhaseKind.RESULT


@pytest.mark.parametrize("mode", ["", "lobby", "question-", "question-x-vote", "Signup"])
def test_parse_rejects_unknown_modes(mode):
    with pytest.raises(ValueError):
        Phase.parse(mode)


def test_round_phase_needs_a_number():
    with pytest.raises(ValueError):
        Phase(PhaseKind.VOTE, 0)


def test_phases_compare_by_value():
    assert Phase.parse("question-1") == Phase.question(1)
    assert Phase.question(1) != Phase.question(2)
    assert len({Phase.question(1), Phase.parse("question-1")}) == 1


def test_transition_table():
    assert allowed_transitions(Phase.parse("signup"), 2) == [Phase.parse("game")]
    assert allowed_transitions(Phase.parse("game"), 2) == [Phase.question(1)]
    assert Phase.parse("question-1-vote") in allowed_transitions(Phase.question(1), 2)
    assert Phase.parse("question-1-result") in allowed_transitions(Phase.parse("question-1-vote"), 2)
    assert Phase.question(2) in allowed_transitions(Phase.parse("question-1-result"), 2)
    assert Phase.parse("finished") not in allowed_transitions(Phase.parse("question-1-result"), 2)
    assert Phase.parse("finished") in allowed_transitions(Phase.parse("question-2-result"), 2)
    assert allowed_transitions(Phase.parse("finished"), 2) == []


def test_replaying_the_current_round_is_allowed_within_it():
    for mode in ("question-2", "question-2-vote", "question-2-result"):
        assert Phase.question(2) in allowed_transitions(Phase.parse(mode), 3)


def test_skipping_phases_is_not_allowed():
    assert Phase.parse("question-1-result") not in allowed_transitions(Phase.question(1), 2)
    assert Phase.question(3) not in allowed_transitions(Phase.parse("question-1-result"), 3)
    assert Phase.question(1) not in allowed_transitions(Phase.parse("signup"), 3)


def test_next_admin_step():
    assert str(next_admin_step(Phase.parse("signup"), 2)) == "game"
    assert str(next_admin_step(Phase.parse("game"), 2)) == "question-1"
    assert str(next_admin_step(Phase.question(1), 2)) == "question-1-vote"
    assert str(next_admin_step(Phase.parse("question-1-vote"), 2)) == "question-1-result"
    assert str(next_admin_step(Phase.parse("question-1-result"), 2)) == "question-2"
    assert str(next_admin_step(Phase.parse("question-2-result"), 2)) == "finished"
    assert next_admin_step(Phase.parse("finished"), 2) is None
