"""
Fixture Generator

Creates Game records for a modality/category:
1. Group stage: round robin inside every group
2. Semifinals: seeded from the group tables (grouped modality) or from the
   name-ordered team list (ungrouped modality), or given manually
3. Final: winners of the two finished semifinals

Invoked on demand, never by the scheduler. Errors are raised to the caller:
InsufficientDataError when teams/results are missing, TieNotAllowedError when
a semifinal ended level.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from sqlmodel import Session

from schoolcup.exceptions import InsufficientDataError, TieNotAllowedError
from schoolcup.models.game import Game, GameStage
from schoolcup.models.modality import Category
from schoolcup.models.team import Team
from schoolcup.services.game_repository import create_game, list_finished_games, list_group_teams
from schoolcup.services.standings import get_qualified, list_groups

logger = logging.getLogger(__name__)

FIXTURE_SPACING = timedelta(hours=1)
QUALIFIERS_PER_GROUP = 2
SEMIFINAL_GROUP_COUNT = 2
MIN_UNGROUPED_TEAMS = 4

T = TypeVar("T")


@dataclass
class GenerationSummary:
    """What generate_all produced"""

    group_games: List[Game] = field(default_factory=list)
    semifinals: List[Game] = field(default_factory=list)
    final: Optional[Game] = None
    group_stage_skipped: bool = False
    final_deferred_reason: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "group_games": [g.id for g in self.group_games],
            "semifinals": [g.id for g in self.semifinals],
            "final": self.final.id if self.final else None,
            "group_stage_skipped": self.group_stage_skipped,
            "final_deferred_reason": self.final_deferred_reason,
        }


def round_robin_pairs(items: Sequence[T]) -> List[Tuple[T, T]]:
    """Every unordered pair exactly once: (items[i], items[j]) for i < j."""
    pairs: List[Tuple[T, T]] = []
    for i in range(len(items)):
        for j in range(i + 1, len(items)):
            pairs.append((items[i], items[j]))
    return pairs


def has_groups(session: Session, modality_id: int, category: Category) -> bool:
    return bool(list_group_teams(session, modality_id, category, grouped_only=True))


def generate_group_stage(
    session: Session,
    modality_id: int,
    category: Category,
    start_time: datetime,
    location: Optional[str] = None,
) -> List[Game]:
    """
    Round robin per group. The k-th fixture of a group is scheduled at
    start_time + k hours (k restarts at 0 for every group). Groups are
    processed in label order, teams in id order.
    """
    created: List[Game] = []
    for label in list_groups(session, modality_id, category):
        teams = list_group_teams(session, modality_id, category, label)
        for k, (team_a, team_b) in enumerate(round_robin_pairs(teams)):
            created.append(
                create_game(
                    session,
                    team_a_id=team_a.id,
                    team_b_id=team_b.id,
                    modality_id=modality_id,
                    stage=GameStage.GROUP,
                    scheduled_at=start_time + k * FIXTURE_SPACING,
                    location=location,
                    description=f"Group stage - Group {label}",
                    commit=False,
                )
            )
    session.commit()
    for game in created:
        session.refresh(game)

    logger.info(
        "Generated %d group stage games for modality %d (%s)", len(created), modality_id, Category(category).value
    )
    return created


def _create_semifinals(
    session: Session,
    modality_id: int,
    pairings: Sequence[Tuple[int, int, str]],
    start_time: datetime,
    location: Optional[str],
) -> List[Game]:
    games = [
        create_game(
            session,
            team_a_id=team_a_id,
            team_b_id=team_b_id,
            modality_id=modality_id,
            stage=GameStage.SEMIFINAL,
            scheduled_at=start_time + index * FIXTURE_SPACING,
            location=location,
            description=description,
            commit=False,
        )
        for index, (team_a_id, team_b_id, description) in enumerate(pairings)
    ]
    session.commit()
    for game in games:
        session.refresh(game)
    return games


def generate_semifinals(
    session: Session,
    modality_id: int,
    category: Category,
    start_time: datetime,
    location: Optional[str] = None,
) -> List[Game]:
    """
    Seeded semifinals.

    Grouped modality (any team has a group label): exactly two groups,
    SF1 = A1 vs B2, SF2 = B1 vs A2.
    Ungrouped: at least 4 teams ordered by name, SF1 = t1 vs t4, SF2 = t2 vs t3.
    SF2 starts one hour after SF1.
    """
    if has_groups(session, modality_id, category):
        groups = list_groups(session, modality_id, category)
        if len(groups) != SEMIFINAL_GROUP_COUNT:
            raise InsufficientDataError(
                f"Expected exactly {SEMIFINAL_GROUP_COUNT} groups to seed semifinals, found {len(groups)}"
            )
        group_a, group_b = groups
        qualified_a = get_qualified(session, modality_id, category, group_a, QUALIFIERS_PER_GROUP)
        qualified_b = get_qualified(session, modality_id, category, group_b, QUALIFIERS_PER_GROUP)
        if len(qualified_a) < QUALIFIERS_PER_GROUP or len(qualified_b) < QUALIFIERS_PER_GROUP:
            raise InsufficientDataError(
                f"Not enough qualified teams: group {group_a} has {len(qualified_a)}, "
                f"group {group_b} has {len(qualified_b)}"
            )
        pairings = [
            (qualified_a[0].team_id, qualified_b[1].team_id, f"Semifinal 1: 1st {group_a} x 2nd {group_b}"),
            (qualified_b[0].team_id, qualified_a[1].team_id, f"Semifinal 2: 1st {group_b} x 2nd {group_a}"),
        ]
    else:
        teams = sorted(list_group_teams(session, modality_id, category), key=lambda t: (t.name, t.id))
        if len(teams) < MIN_UNGROUPED_TEAMS:
            raise InsufficientDataError(
                f"At least {MIN_UNGROUPED_TEAMS} teams are needed for semifinals, found {len(teams)}"
            )
        pairings = [
            (teams[0].id, teams[3].id, f"Semifinal 1: {teams[0].name} x {teams[3].name}"),
            (teams[1].id, teams[2].id, f"Semifinal 2: {teams[1].name} x {teams[2].name}"),
        ]

    games = _create_semifinals(session, modality_id, pairings, start_time, location)
    logger.info("Generated semifinals for modality %d (%s): %s", modality_id, Category(category).value, pairings)
    return games


def generate_semifinals_manual(
    session: Session,
    modality_id: int,
    category: Category,
    start_time: datetime,
    pairings: Sequence[Tuple[int, int]],
    location: Optional[str] = None,
) -> List[Game]:
    """Semifinals from two explicit (team_a_id, team_b_id) pairs, no seeding."""
    if len(pairings) != 2:
        raise ValueError(f"Exactly two semifinal pairings are required, got {len(pairings)}")
    team_ids = [team_id for pair in pairings for team_id in pair]
    if len(set(team_ids)) != len(team_ids):
        raise ValueError(f"Semifinal pairings repeat a team: {team_ids}")

    eligible: Dict[int, Team] = {t.id: t for t in list_group_teams(session, modality_id, category)}
    missing = [team_id for team_id in team_ids if team_id not in eligible]
    if missing:
        raise InsufficientDataError(
            f"Teams not found or not active in modality {modality_id} ({Category(category).value}): {missing}"
        )

    games = _create_semifinals(
        session,
        modality_id,
        [(a, b, f"Semifinal {index}") for index, (a, b) in enumerate(pairings, start=1)],
        start_time,
        location,
    )
    logger.info("Generated manual semifinals for modality %d: %s", modality_id, list(pairings))
    return games


def _semifinal_winners(semifinals: Sequence[Game]) -> List[int]:
    winners: List[int] = []
    for semifinal in semifinals:
        winner = semifinal.winner_team_id()
        if winner is None:
            raise TieNotAllowedError(semifinal.id)
        winners.append(winner)
    return winners


def generate_final(
    session: Session,
    modality_id: int,
    category: Category,
    start_time: datetime,
    location: Optional[str] = None,
) -> Game:
    """Final between the winners of exactly two FINISHED semifinals."""
    semifinals = list_finished_games(session, modality_id, category, GameStage.SEMIFINAL)
    if len(semifinals) != 2:
        raise InsufficientDataError(
            f"Exactly 2 finished semifinals are required to generate the final, found {len(semifinals)}"
        )
    winner_a, winner_b = _semifinal_winners(semifinals)

    final = create_game(
        session,
        team_a_id=winner_a,
        team_b_id=winner_b,
        modality_id=modality_id,
        stage=GameStage.FINAL,
        scheduled_at=start_time,
        location=location,
        description="Final",
    )
    logger.info("Generated final for modality %d: %d x %d", modality_id, winner_a, winner_b)
    return final


def generate_all(
    session: Session,
    modality_id: int,
    category: Category,
    group_start: datetime,
    semifinal_start: datetime,
    final_start: Optional[datetime] = None,
    location: Optional[str] = None,
) -> GenerationSummary:
    """
    Group stage (only when the modality has grouped teams), then semifinals,
    then the final when final_start is given and both semifinals are already
    finished. A final that cannot be built yet is reported, not raised.
    """
    summary = GenerationSummary()

    if has_groups(session, modality_id, category):
        summary.group_games = generate_group_stage(session, modality_id, category, group_start, location)
    else:
        summary.group_stage_skipped = True

    summary.semifinals = generate_semifinals(session, modality_id, category, semifinal_start, location)

    if final_start is None:
        summary.final_deferred_reason = "No final start time given"
    else:
        try:
            summary.final = generate_final(session, modality_id, category, final_start, location)
        except InsufficientDataError as exc:
            summary.final_deferred_reason = str(exc)

    logger.info("Generated all games for modality %d (%s): %s", modality_id, Category(category).value, summary.to_dict())
    return summary
