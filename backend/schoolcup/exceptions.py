"""
Tournament engine error taxonomy.

Routes map these onto HTTP status codes; the scheduler sweep catches them per
game and keeps going.
"""
from typing import Iterable, Optional


class TournamentError(Exception):
    """Base class for engine errors"""


class InvalidTransitionError(TournamentError):
    def __init__(self, current, target, valid_targets: Iterable = (), game_id: Optional[int] = None):
        self.current = current
        self.target = target
        self.valid_targets = list(valid_targets)
        self.game_id = game_id
        allowed = ", ".join(_value(s) for s in self.valid_targets) or "none (terminal state)"
        prefix = f"Game {game_id}: " if game_id is not None else ""
        super().__init__(
            f"{prefix}invalid transition from {_value(current)} to {_value(target)}. Valid transitions: {allowed}"
        )


class InsufficientDataError(TournamentError):
    """Not enough teams, qualified rows or finished games to build a fixture set"""


class TieNotAllowedError(TournamentError):
    def __init__(self, game_id: Optional[int]):
        self.game_id = game_id
        super().__init__(f"Knockout game {game_id} ended level; a winner is required")


class StaleOrMissingGameError(TournamentError):
    def __init__(self, game_id: int):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


def _value(status) -> str:
    return getattr(status, "value", str(status))
