"""
Game lifecycle state machine.

Pure transition-legality logic for a single game's status. Nothing here
touches the database: callers validate first, then apply the mutation
(see game_repository.update_game_status).

    SCHEDULED   -> IN_PROGRESS | CANCELLED
    IN_PROGRESS -> PAUSED | FINISHED | CANCELLED
    PAUSED      -> IN_PROGRESS | FINISHED | CANCELLED
    FINISHED, CANCELLED are terminal
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from schoolcup.exceptions import InvalidTransitionError
from schoolcup.models.game import GameStatus
from schoolcup.utils.clock import SystemClock

logger = logging.getLogger(__name__)

StatusLike = Union[GameStatus, str]

TRANSITIONS: Mapping[GameStatus, frozenset] = MappingProxyType(
    {
        GameStatus.SCHEDULED: frozenset({GameStatus.IN_PROGRESS, GameStatus.CANCELLED}),
        GameStatus.IN_PROGRESS: frozenset({GameStatus.PAUSED, GameStatus.FINISHED, GameStatus.CANCELLED}),
        GameStatus.PAUSED: frozenset({GameStatus.IN_PROGRESS, GameStatus.FINISHED, GameStatus.CANCELLED}),
        GameStatus.FINISHED: frozenset(),
        GameStatus.CANCELLED: frozenset(),
    }
)

STATE_DESCRIPTIONS: Mapping[GameStatus, str] = MappingProxyType(
    {
        GameStatus.SCHEDULED: "Game scheduled for the future",
        GameStatus.IN_PROGRESS: "Game in progress",
        GameStatus.PAUSED: "Game paused (break or interruption)",
        GameStatus.FINISHED: "Game finished",
        GameStatus.CANCELLED: "Game cancelled",
    }
)

# Stable ordering for listings and error messages
_STATUS_ORDER = list(GameStatus)

SCORE_EDITABLE = frozenset({GameStatus.IN_PROGRESS, GameStatus.PAUSED, GameStatus.FINISHED})
EVENTS_ALLOWED = frozenset({GameStatus.IN_PROGRESS, GameStatus.PAUSED})


@dataclass(frozen=True)
class TransitionContext:
    actor_id: Optional[int] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class GameStateTransition:
    from_status: GameStatus
    to_status: GameStatus
    timestamp: datetime
    actor_id: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class TransitionResult:
    valid: bool
    transition: Optional[GameStateTransition] = None
    error: Optional[str] = None
    valid_targets: List[GameStatus] = field(default_factory=list)


def _coerce(status: StatusLike) -> GameStatus:
    return status if isinstance(status, GameStatus) else GameStatus(status)


def get_valid_transitions(status: StatusLike) -> List[GameStatus]:
    """Targets reachable from status, in declaration order."""
    allowed = TRANSITIONS[_coerce(status)]
    return [s for s in _STATUS_ORDER if s in allowed]


def can_transition(from_status: StatusLike, to_status: StatusLike) -> bool:
    current = _coerce(from_status)
    target = _coerce(to_status)
    if current == target:
        return False
    return target in TRANSITIONS[current]


def validate_transition(
    from_status: StatusLike,
    to_status: StatusLike,
    context: Optional[TransitionContext] = None,
    timestamp: Optional[datetime] = None,
) -> TransitionResult:
    """
    Check a status change without applying it.

    Returns a successful TransitionResult carrying the transition record, or a
    failed one carrying the error text and the currently valid targets.
    """
    current = _coerce(from_status)
    target = _coerce(to_status)
    valid_targets = get_valid_transitions(current)

    if not can_transition(current, target):
        allowed = ", ".join(s.value for s in valid_targets) or "none"
        return TransitionResult(
            valid=False,
            error=f"Invalid transition from {current.value} to {target.value}. Valid transitions: {allowed}",
            valid_targets=valid_targets,
        )

    context = context or TransitionContext()
    transition = GameStateTransition(
        from_status=current,
        to_status=target,
        timestamp=timestamp or SystemClock().now(),
        actor_id=context.actor_id,
        reason=context.reason,
    )
    logger.debug(
        "Transition validated: %s (%s) -> %s (%s)",
        current.value,
        STATE_DESCRIPTIONS[current],
        target.value,
        STATE_DESCRIPTIONS[target],
    )
    return TransitionResult(valid=True, transition=transition, valid_targets=valid_targets)


def require_transition(
    from_status: StatusLike,
    to_status: StatusLike,
    context: Optional[TransitionContext] = None,
    timestamp: Optional[datetime] = None,
    game_id: Optional[int] = None,
) -> GameStateTransition:
    """validate_transition for mutating callers: raises InvalidTransitionError on failure."""
    result = validate_transition(from_status, to_status, context=context, timestamp=timestamp)
    if not result.valid:
        raise InvalidTransitionError(from_status, to_status, result.valid_targets, game_id=game_id)
    return result.transition


def is_terminal(status: StatusLike) -> bool:
    return not TRANSITIONS[_coerce(status)]


def can_edit(status: StatusLike) -> bool:
    """Teams, date and period may only change before kick-off."""
    return _coerce(status) == GameStatus.SCHEDULED


def can_update_score(status: StatusLike) -> bool:
    return _coerce(status) in SCORE_EDITABLE


def can_add_events(status: StatusLike) -> bool:
    return _coerce(status) in EVENTS_ALLOWED


def describe_state(status: StatusLike) -> str:
    return STATE_DESCRIPTIONS.get(_coerce(status), "Unknown state")


def describe_states() -> List[Dict[str, Any]]:
    """Summary of every state for the admin API"""
    return [
        {
            "status": status.value,
            "description": STATE_DESCRIPTIONS[status],
            "is_terminal": is_terminal(status),
            "valid_transitions": [s.value for s in get_valid_transitions(status)],
            "permissions": {
                "can_edit": can_edit(status),
                "can_update_score": can_update_score(status),
                "can_add_events": can_add_events(status),
            },
        }
        for status in _STATUS_ORDER
    ]
