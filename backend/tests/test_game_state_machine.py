"""Game lifecycle state machine: legal transitions, terminal states, permissions."""
from datetime import datetime

import pytest

from schoolcup.exceptions import InvalidTransitionError
from schoolcup.models.game import GameStatus
from schoolcup.services.game_state_machine import (
    TRANSITIONS,
    TransitionContext,
    can_add_events,
    can_edit,
    can_transition,
    can_update_score,
    describe_state,
    describe_states,
    get_valid_transitions,
    is_terminal,
    require_transition,
    validate_transition,
)

ALL = list(GameStatus)
LEGAL = {
    (GameStatus.SCHEDULED, GameStatus.IN_PROGRESS),
    (GameStatus.SCHEDULED, GameStatus.CANCELLED),
    (GameStatus.IN_PROGRESS, GameStatus.PAUSED),
    (GameStatus.IN_PROGRESS, GameStatus.FINISHED),
    (GameStatus.IN_PROGRESS, GameStatus.CANCELLED),
    (GameStatus.PAUSED, GameStatus.IN_PROGRESS),
    (GameStatus.PAUSED, GameStatus.FINISHED),
    (GameStatus.PAUSED, GameStatus.CANCELLED),
}


@pytest.mark.parametrize("current", ALL)
@pytest.mark.parametrize("target", ALL)
def test_transition_table_is_exactly_the_legal_set(current, target):
    assert can_transition(current, target) == ((current, target) in LEGAL)


@pytest.mark.parametrize("status", ALL)
def test_self_transition_is_never_legal(status):
    assert not can_transition(status, status)
    assert not validate_transition(status, status).valid


def test_terminal_states_have_no_targets():
    assert is_terminal(GameStatus.FINISHED)
    assert is_terminal(GameStatus.CANCELLED)
    assert not is_terminal(GameStatus.PAUSED)
    assert get_valid_transitions(GameStatus.FINISHED) == []
    assert TRANSITIONS[GameStatus.CANCELLED] == frozenset()


def test_valid_transitions_accept_string_status():
    assert get_valid_transitions("SCHEDULED") == [GameStatus.IN_PROGRESS, GameStatus.CANCELLED]


def test_validate_transition_success_carries_record():
    at = datetime(2026, 3, 10, 9, 0)
    result = validate_transition(
        GameStatus.SCHEDULED, GameStatus.IN_PROGRESS, TransitionContext(actor_id=7, reason="kick-off"), timestamp=at
    )
    assert result.valid
    assert result.error is None
    transition = result.transition
    assert transition.from_status == GameStatus.SCHEDULED
    assert transition.to_status == GameStatus.IN_PROGRESS
    assert transition.timestamp == at
    assert transition.actor_id == 7
    assert transition.reason == "kick-off"


def test_validate_transition_failure_lists_valid_targets():
    result = validate_transition(GameStatus.FINISHED, GameStatus.IN_PROGRESS)
    assert not result.valid
    assert result.transition is None
    assert result.valid_targets == []
    assert "FINISHED" in result.error and "IN_PROGRESS" in result.error


def test_validate_transition_has_no_side_effects():
    # Pure: the same query twice gives the same answer
    first = validate_transition(GameStatus.PAUSED, GameStatus.FINISHED, timestamp=datetime(2026, 1, 1))
    second = validate_transition(GameStatus.PAUSED, GameStatus.FINISHED, timestamp=datetime(2026, 1, 1))
    assert first == second


def test_require_transition_raises_typed_error():
    with pytest.raises(InvalidTransitionError) as exc_info:
        require_transition(GameStatus.CANCELLED, GameStatus.SCHEDULED, game_id=12)
    error = exc_info.value
    assert error.current == GameStatus.CANCELLED
    assert error.target == GameStatus.SCHEDULED
    assert error.valid_targets == []
    assert error.game_id == 12
    assert "Game 12" in str(error)


def test_permissions():
    assert can_edit(GameStatus.SCHEDULED)
    assert not can_edit(GameStatus.IN_PROGRESS)

    assert not can_update_score(GameStatus.SCHEDULED)
    assert can_update_score(GameStatus.IN_PROGRESS)
    assert can_update_score(GameStatus.PAUSED)
    assert can_update_score(GameStatus.FINISHED)
    assert not can_update_score(GameStatus.CANCELLED)

    assert can_add_events(GameStatus.IN_PROGRESS)
    assert can_add_events(GameStatus.PAUSED)
    assert not can_add_events(GameStatus.FINISHED)


def test_describe_states_covers_every_status():
    states = describe_states()
    assert [s["status"] for s in states] == [s.value for s in GameStatus]
    scheduled = states[0]
    assert scheduled["valid_transitions"] == ["IN_PROGRESS", "CANCELLED"]
    assert scheduled["permissions"]["can_edit"] is True
    assert describe_state("PAUSED") == "Game paused (break or interruption)"
