"""
Group standings calculator.

Builds a group's ranking table from its FINISHED group-stage games.

Scoring: win 3, draw 1, loss 0.

Tie-break cascade (applied in order):
1. points (desc)
2. head-to-head among the tied teams: points, goal difference, goals for,
   counted only in the games played between those teams
3. overall goal difference (desc)
4. overall goals for (desc)
5. overall goals against (asc)
6. team name, team id (deterministic fallback)

Head-to-head is computed once per set of teams level on points, over every
game among that whole set, so the sort key is transitive even when three or
more tied teams beat each other in a cycle.
"""
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from schoolcup.models.game import Game
from schoolcup.models.modality import Category, Modality
from schoolcup.models.team import Team
from schoolcup.services.game_repository import list_finished_group_games, list_group_teams

WIN_POINTS = 3
DRAW_POINTS = 1
LOSS_POINTS = 0


@dataclass
class StandingRow:
    team_id: int
    team_name: str
    group_label: Optional[str] = None
    points: int = 0
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    rank: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["goal_difference"] = self.goal_difference
        return data


@dataclass
class _MiniRecord:
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against


def _result_points(scored: int, conceded: int) -> int:
    if scored > conceded:
        return WIN_POINTS
    if scored == conceded:
        return DRAW_POINTS
    return LOSS_POINTS


def head_to_head(team_ids: Iterable[int], games: Sequence[Game]) -> Dict[int, _MiniRecord]:
    """Mini-table over the games played only among `team_ids`."""
    members = set(team_ids)
    table: Dict[int, _MiniRecord] = {tid: _MiniRecord() for tid in members}
    for game in games:
        if game.team_a_id not in members or game.team_b_id not in members:
            continue
        a = table[game.team_a_id]
        b = table[game.team_b_id]
        a.goals_for += game.team_a_score
        a.goals_against += game.team_b_score
        b.goals_for += game.team_b_score
        b.goals_against += game.team_a_score
        a.points += _result_points(game.team_a_score, game.team_b_score)
        b.points += _result_points(game.team_b_score, game.team_a_score)
    return table


def calculate_standings(teams: Sequence[Team], games: Sequence[Game]) -> List[StandingRow]:
    """
    Rank `teams` using `games` (FINISHED group-stage games between them).

    Games involving a team outside `teams` are ignored. Every team gets a row,
    including teams that have not played yet.
    """
    rows: Dict[int, StandingRow] = {
        team.id: StandingRow(team_id=team.id, team_name=team.name, group_label=team.group_label) for team in teams
    }
    counted: List[Game] = []

    for game in games:
        row_a = rows.get(game.team_a_id)
        row_b = rows.get(game.team_b_id)
        if row_a is None or row_b is None:
            continue
        counted.append(game)

        row_a.played += 1
        row_b.played += 1
        row_a.goals_for += game.team_a_score
        row_a.goals_against += game.team_b_score
        row_b.goals_for += game.team_b_score
        row_b.goals_against += game.team_a_score

        if game.team_a_score > game.team_b_score:
            row_a.wins += 1
            row_b.losses += 1
        elif game.team_b_score > game.team_a_score:
            row_b.wins += 1
            row_a.losses += 1
        else:
            row_a.draws += 1
            row_b.draws += 1
        row_a.points += _result_points(game.team_a_score, game.team_b_score)
        row_b.points += _result_points(game.team_b_score, game.team_a_score)

    # Head-to-head records per set of teams level on points
    by_points: Dict[int, List[int]] = defaultdict(list)
    for row in rows.values():
        by_points[row.points].append(row.team_id)
    h2h: Dict[int, _MiniRecord] = {}
    for tied_ids in by_points.values():
        if len(tied_ids) > 1:
            h2h.update(head_to_head(tied_ids, counted))
        else:
            h2h[tied_ids[0]] = _MiniRecord()

    def sort_key(row: StandingRow) -> Tuple:
        mini = h2h[row.team_id]
        return (
            -row.points,
            -mini.points,
            -mini.goal_difference,
            -mini.goals_for,
            -row.goal_difference,
            -row.goals_for,
            row.goals_against,
            row.team_name,
            row.team_id,
        )

    ordered = sorted(rows.values(), key=sort_key)
    for position, row in enumerate(ordered, start=1):
        row.rank = position
    return ordered


def get_group_table(session: Session, modality_id: int, category: Category, group_label: str) -> List[StandingRow]:
    teams = list_group_teams(session, modality_id, category, group_label)
    if not teams:
        return []
    games = list_finished_group_games(session, modality_id, category, group_label)
    return calculate_standings(teams, games)


def get_qualified(
    session: Session, modality_id: int, category: Category, group_label: str, n: int = 2
) -> List[StandingRow]:
    """Top `n` rows of the group table."""
    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")
    return get_group_table(session, modality_id, category, group_label)[:n]


def list_groups(session: Session, modality_id: int, category: Category) -> List[str]:
    """Distinct group labels of the active teams of a modality/category, sorted."""
    labels = session.exec(
        select(Team.group_label)
        .join(Modality, Team.modality_id == Modality.id)
        .where(
            Team.modality_id == modality_id,
            Modality.category == Category(category).value,
            Team.active == True,  # noqa: E712
            Team.group_label.is_not(None),
        )
        .distinct()
    ).all()
    return sorted(label for label in labels if label is not None)
