"""Fixture generation: round robin, knockout seeding, manual semifinals, final."""
from datetime import datetime, timedelta
from itertools import combinations

import pytest
from sqlmodel import Session, select

from schoolcup.exceptions import InsufficientDataError, TieNotAllowedError
from schoolcup.models.game import Game, GameStage, GameStatus, Period
from schoolcup.models.modality import Category, Modality
from schoolcup.models.team import Team
from schoolcup.services.fixture_generator import (
    generate_all,
    generate_final,
    generate_group_stage,
    generate_semifinals,
    generate_semifinals_manual,
    round_robin_pairs,
)

GROUP_START = datetime(2026, 3, 10, 9, 0)
SEMI_START = datetime(2026, 3, 12, 14, 0)
FINAL_START = datetime(2026, 3, 13, 19, 0)


def _make_modality(session: Session, name: str = "Futsal", category: Category = Category.MALE) -> Modality:
    modality = Modality(name=name, category=category)
    session.add(modality)
    session.commit()
    session.refresh(modality)
    return modality


def _make_teams(session: Session, modality: Modality, names, group=None, active=True):
    teams = [Team(modality_id=modality.id, name=name, group_label=group, active=active) for name in names]
    for team in teams:
        session.add(team)
    session.commit()
    for team in teams:
        session.refresh(team)
    return teams


def _finish(session: Session, game: Game, score_a: int, score_b: int) -> Game:
    game.team_a_score = score_a
    game.team_b_score = score_b
    game.status = GameStatus.FINISHED
    session.add(game)
    session.commit()
    session.refresh(game)
    return game


def _stage_games(session: Session, stage: GameStage):
    return session.exec(select(Game).where(Game.stage == stage.value).order_by(Game.id)).all()


@pytest.mark.parametrize("n", [0, 1, 2, 3, 4, 5, 8])
def test_round_robin_yields_every_pair_once(n):
    pairs = round_robin_pairs(list(range(n)))
    assert len(pairs) == n * (n - 1) // 2
    assert {frozenset(p) for p in pairs} == {frozenset(p) for p in combinations(range(n), 2)}


def test_group_stage_per_group_schedule(session: Session):
    modality = _make_modality(session)
    group_a = _make_teams(session, modality, ["A1", "A2", "A3", "A4"], group="A")
    group_b = _make_teams(session, modality, ["B1", "B2", "B3"], group="B")

    games = generate_group_stage(session, modality.id, Category.MALE, GROUP_START, location="Gym")

    assert len(games) == 6 + 3
    a_ids = {t.id for t in group_a}
    a_games = [g for g in games if g.team_a_id in a_ids]
    b_games = [g for g in games if g.team_a_id not in a_ids]
    assert {frozenset((g.team_a_id, g.team_b_id)) for g in a_games} == {
        frozenset((x.id, y.id)) for x, y in combinations(group_a, 2)
    }
    assert all(g.team_b_id in {t.id for t in group_b} for g in b_games)

    # k restarts per group
    assert [g.scheduled_at for g in a_games] == [GROUP_START + timedelta(hours=k) for k in range(6)]
    assert [g.scheduled_at for g in b_games] == [GROUP_START + timedelta(hours=k) for k in range(3)]

    first = a_games[0]
    assert first.id is not None
    assert first.stage == GameStage.GROUP
    assert first.status == GameStatus.SCHEDULED
    assert first.assigned_period == Period.MORNING
    assert first.location == "Gym"
    assert a_games[3].assigned_period == Period.MIDDAY


def test_group_stage_ignores_other_category_and_inactive_teams(session: Session):
    boys = _make_modality(session, category=Category.MALE)
    girls = _make_modality(session, category=Category.FEMALE)
    _make_teams(session, boys, ["A1", "A2"], group="A")
    _make_teams(session, boys, ["A3"], group="A", active=False)
    _make_teams(session, girls, ["G1", "G2", "G3"], group="A")

    games = generate_group_stage(session, boys.id, Category.MALE, GROUP_START)
    assert len(games) == 1


def test_seeded_semifinals_from_group_tables(session: Session):
    modality = _make_modality(session)
    a1, a2, a3 = _make_teams(session, modality, ["Red", "Blue", "Green"], group="A")
    b1, b2, b3 = _make_teams(session, modality, ["Gold", "Silver", "Bronze"], group="B")
    group_games = generate_group_stage(session, modality.id, Category.MALE, GROUP_START)
    games = {frozenset((g.team_a_id, g.team_b_id)): g for g in group_games}

    def play(x, y, sx, sy):
        game = games[frozenset((x.id, y.id))]
        if game.team_a_id == x.id:
            _finish(session, game, sx, sy)
        else:
            _finish(session, game, sy, sx)

    # Group A: Red 1st, Blue 2nd. Group B: Gold 1st, Silver 2nd
    play(a1, a2, 2, 0)
    play(a1, a3, 1, 0)
    play(a2, a3, 1, 0)
    play(b1, b2, 1, 0)
    play(b1, b3, 4, 0)
    play(b2, b3, 2, 1)

    sf1, sf2 = generate_semifinals(session, modality.id, Category.MALE, SEMI_START)

    assert (sf1.team_a_id, sf1.team_b_id) == (a1.id, b2.id)
    assert (sf2.team_a_id, sf2.team_b_id) == (b1.id, a2.id)
    assert sf1.scheduled_at == SEMI_START
    assert sf2.scheduled_at == SEMI_START + timedelta(hours=1)
    assert sf1.stage == GameStage.SEMIFINAL
    assert sf1.assigned_period == Period.AFTERNOON


def test_ungrouped_semifinals_order_by_name(session: Session):
    modality = _make_modality(session, "Chess", Category.MIXED)
    teams = {t.name: t for t in _make_teams(session, modality, ["Echo", "Alpha", "Delta", "Charlie", "Bravo"])}

    sf1, sf2 = generate_semifinals(session, modality.id, Category.MIXED, SEMI_START)

    assert (sf1.team_a_id, sf1.team_b_id) == (teams["Alpha"].id, teams["Delta"].id)
    assert (sf2.team_a_id, sf2.team_b_id) == (teams["Bravo"].id, teams["Charlie"].id)


def test_semifinals_need_enough_teams(session: Session):
    modality = _make_modality(session)
    _make_teams(session, modality, ["One", "Two", "Three"])
    with pytest.raises(InsufficientDataError):
        generate_semifinals(session, modality.id, Category.MALE, SEMI_START)
    assert _stage_games(session, GameStage.SEMIFINAL) == []


def test_semifinals_need_exactly_two_groups(session: Session):
    modality = _make_modality(session)
    for label in "ABC":
        _make_teams(session, modality, [f"{label}1", f"{label}2"], group=label)
    with pytest.raises(InsufficientDataError):
        generate_semifinals(session, modality.id, Category.MALE, SEMI_START)


def test_semifinals_need_two_qualified_per_group(session: Session):
    modality = _make_modality(session)
    _make_teams(session, modality, ["A1", "A2"], group="A")
    _make_teams(session, modality, ["B1"], group="B")
    with pytest.raises(InsufficientDataError):
        generate_semifinals(session, modality.id, Category.MALE, SEMI_START)


def test_manual_semifinals(session: Session):
    modality = _make_modality(session)
    t = _make_teams(session, modality, ["W", "X", "Y", "Z"], group="A")

    sf1, sf2 = generate_semifinals_manual(
        session, modality.id, Category.MALE, SEMI_START, [(t[0].id, t[2].id), (t[1].id, t[3].id)]
    )
    assert (sf1.team_a_id, sf1.team_b_id) == (t[0].id, t[2].id)
    assert (sf2.team_a_id, sf2.team_b_id) == (t[1].id, t[3].id)
    assert sf2.scheduled_at == SEMI_START + timedelta(hours=1)


def test_manual_semifinals_validation(session: Session):
    modality = _make_modality(session)
    t = _make_teams(session, modality, ["W", "X", "Y"])
    (inactive,) = _make_teams(session, modality, ["Gone"], active=False)

    with pytest.raises(ValueError):
        generate_semifinals_manual(session, modality.id, Category.MALE, SEMI_START, [(t[0].id, t[1].id)])
    with pytest.raises(ValueError):
        generate_semifinals_manual(
            session, modality.id, Category.MALE, SEMI_START, [(t[0].id, t[1].id), (t[1].id, t[2].id)]
        )
    with pytest.raises(InsufficientDataError):
        generate_semifinals_manual(
            session, modality.id, Category.MALE, SEMI_START, [(t[0].id, t[1].id), (t[2].id, inactive.id)]
        )
    with pytest.raises(InsufficientDataError):
        generate_semifinals_manual(
            session, modality.id, Category.FEMALE, SEMI_START, [(t[0].id, t[1].id), (t[2].id, 999)]
        )
    assert _stage_games(session, GameStage.SEMIFINAL) == []


def _semis(session: Session):
    modality = _make_modality(session)
    _make_teams(session, modality, ["Ants", "Bees", "Cats", "Dogs"])
    sf1, sf2 = generate_semifinals(session, modality.id, Category.MALE, SEMI_START)
    return modality, sf1, sf2


def test_final_between_semifinal_winners(session: Session):
    modality, sf1, sf2 = _semis(session)
    _finish(session, sf1, 0, 2)
    _finish(session, sf2, 3, 1)

    final = generate_final(session, modality.id, Category.MALE, FINAL_START)

    assert (final.team_a_id, final.team_b_id) == (sf1.team_b_id, sf2.team_a_id)
    assert final.stage == GameStage.FINAL
    assert final.scheduled_at == FINAL_START
    assert final.assigned_period == Period.EVENING


def test_final_refuses_a_level_semifinal(session: Session):
    modality, sf1, sf2 = _semis(session)
    _finish(session, sf1, 1, 0)
    _finish(session, sf2, 2, 2)

    with pytest.raises(TieNotAllowedError) as exc_info:
        generate_final(session, modality.id, Category.MALE, FINAL_START)

    assert exc_info.value.game_id == sf2.id
    assert _stage_games(session, GameStage.FINAL) == []


def test_final_needs_two_finished_semifinals(session: Session):
    modality, sf1, _ = _semis(session)
    _finish(session, sf1, 1, 0)
    with pytest.raises(InsufficientDataError):
        generate_final(session, modality.id, Category.MALE, FINAL_START)


def test_generate_all_grouped_defers_final(session: Session):
    modality = _make_modality(session)
    _make_teams(session, modality, ["A1", "A2", "A3"], group="A")
    _make_teams(session, modality, ["B1", "B2"], group="B")

    summary = generate_all(session, modality.id, Category.MALE, GROUP_START, SEMI_START, FINAL_START)

    assert len(summary.group_games) == 3 + 1
    assert len(summary.semifinals) == 2
    assert summary.final is None
    assert not summary.group_stage_skipped
    assert "finished semifinals" in summary.final_deferred_reason


def test_generate_all_ungrouped_skips_group_stage(session: Session):
    modality = _make_modality(session, "Table Tennis", Category.FEMALE)
    _make_teams(session, modality, ["P", "Q", "R", "S"])

    summary = generate_all(session, modality.id, Category.FEMALE, GROUP_START, SEMI_START)

    assert summary.group_stage_skipped
    assert summary.group_games == []
    assert len(summary.semifinals) == 2
    assert summary.final_deferred_reason == "No final start time given"
    assert summary.to_dict()["final"] is None
