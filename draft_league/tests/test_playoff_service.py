"""
Tests for playoff brackets: placeholders, fixture scheduling, winners
advancing, and the rating pass over playoff results.
"""
from __future__ import annotations

from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from draft_league.persistence.repositories import (
    CoachRepository,
    MatchRepository,
    PlayoffMatchRepository,
    RatingHistoryRepository,
)
from draft_league.services import season_service, standings
from draft_league.services.errors import LedgerError, NotFoundError
from draft_league.services.playoff_service import (
    PlayoffMatchParams,
    PlayoffService,
    PlayoffUpdateParams,
    positions_in_round,
)


@pytest.fixture
def playoffs():
    return PlayoffService()


@pytest.fixture
def four_teams(db_conn, league):
    """The two seeded entries plus two more coaches in the same division."""
    extra = []
    for coach_name, team_name in (("Brock", "Pewter Onix"), ("Gary", "Viridian Rivals")):
        coach = CoachRepository().create(db_conn, coach_name)
        extra.append(season_service.add_season_entry(db_conn, coach.id, league.division.id, team_name))
    return list(league.entries) + extra


def _quarterfinal(league, position, higher=None, lower=None):
    return PlayoffMatchParams(
        division_id=league.division.id,
        round=1,
        bracket_position=position,
        higher_seed_id=higher.id if higher else None,
        lower_seed_id=lower.id if lower else None,
    )


def _node(conn, league, round_number, position):
    return PlayoffMatchRepository().find_by_position(conn, league.division.id, round_number, position)


def _rating(conn, coach):
    return CoachRepository().get(conn, coach.id).rating


# ---------- Bracket structure ----------


def test_bracket_sizes():
    assert [positions_in_round(r) for r in (1, 2, 3)] == [4, 2, 1]


def test_seeded_quarterfinal_schedules_fixture_and_placeholders(db_conn, league, playoffs):
    pal, cer = league.entries
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))

    assert node.match_id is not None
    fixture = MatchRepository().get(db_conn, node.match_id)
    assert fixture.week == 101
    assert (fixture.entry1_id, fixture.entry2_id) == (pal.id, cer.id)
    assert fixture.winner_id is None

    bracket = playoffs.list_bracket(db_conn, league.division.id)
    assert [(n.round, n.bracket_position) for n in bracket] == [(1, 1), (2, 1), (2, 2), (3, 1)]
    assert all(n.match_id is None for n in bracket[1:])


def test_ensure_bracket_structure_only_adds_missing(db_conn, league, playoffs):
    playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1))
    again = playoffs.ensure_bracket_structure(db_conn, league.season.id, league.division.id)
    assert again == []
    assert len(playoffs.list_bracket(db_conn, league.division.id)) == 4


def test_unseeded_node_schedules_once_both_seeds_are_set(db_conn, league, playoffs):
    pal, cer = league.entries
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, higher=pal))
    assert node.match_id is None

    updated = playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(lower_seed_id=cer.id))
    assert updated.higher_seed_id == pal.id
    assert updated.lower_seed_id == cer.id
    assert MatchRepository().get(db_conn, updated.match_id).week == 101


def test_duplicate_position_rejected(db_conn, league, playoffs):
    playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1))
    with pytest.raises(LedgerError):
        playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1))
    semifinal = PlayoffMatchParams(division_id=league.division.id, round=2, bracket_position=1)
    with pytest.raises(LedgerError):
        playoffs.create_playoff_match(db_conn, semifinal)


@pytest.mark.parametrize("round_number, position", [(0, 1), (4, 1), (1, 5), (2, 3), (3, 2)])
def test_round_and_position_bounds(db_conn, league, playoffs, round_number, position):
    params = PlayoffMatchParams(division_id=league.division.id, round=round_number, bracket_position=position)
    with pytest.raises(LedgerError):
        playoffs.create_playoff_match(db_conn, params)
    assert PlayoffMatchRepository().list_by_division(db_conn, league.division.id) == []


def test_seed_validation(db_conn, league, playoffs):
    pal = league.entries[0]
    with pytest.raises(LedgerError):
        playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, pal))
    params = PlayoffMatchParams(division_id=league.division.id, higher_seed_id=pal.id, lower_seed_id=999)
    with pytest.raises(NotFoundError):
        playoffs.create_playoff_match(db_conn, params)
    with pytest.raises(NotFoundError):
        playoffs.create_playoff_match(db_conn, PlayoffMatchParams(division_id=999))


def test_seeds_fixed_once_scheduled(db_conn, league, playoffs, four_teams):
    pal, cer, pew, vir = four_teams
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))
    with pytest.raises(LedgerError):
        playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(lower_seed_id=vir.id))
    assert _node(db_conn, league, 1, 1).lower_seed_id == cer.id


# ---------- Results ----------


def test_winner_updates_fixture_ratings_and_next_round(db_conn, league, playoffs):
    pal, cer = league.entries
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))

    decided = playoffs.update_playoff_match(
        db_conn, node.id,
        PlayoffUpdateParams(winner_id=pal.id, higher_seed_wins=2, lower_seed_wins=1, played_at="2024-05-01T20:00:00"),
    )

    assert decided.winner_id == pal.id
    fixture = MatchRepository().get(db_conn, node.match_id)
    assert fixture.winner_id == pal.id
    assert (fixture.entry1_differential, fixture.entry2_differential) == (2, -2)
    assert fixture.played_at == "2024-05-01T20:00:00"
    assert _rating(db_conn, league.coaches[0]) == pytest.approx(2116)
    assert _rating(db_conn, league.coaches[1]) == pytest.approx(2084)
    assert RatingHistoryRepository().count(db_conn) == 2

    semifinal = _node(db_conn, league, 2, 1)
    assert semifinal.higher_seed_id == pal.id
    assert semifinal.lower_seed_id is None
    assert semifinal.match_id is None


def test_lower_seed_win_differentials(db_conn, league, playoffs):
    pal, cer = league.entries
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))
    playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(winner_id=cer.id, lower_seed_wins=2))
    fixture = MatchRepository().get(db_conn, node.match_id)
    assert fixture.winner_id == cer.id
    assert (fixture.entry1_differential, fixture.entry2_differential) == (-2, 2)


def test_quarterfinal_winners_meet_in_semifinal(db_conn, league, playoffs, four_teams):
    pal, cer, pew, vir = four_teams
    qf1 = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))
    qf2 = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 2, pew, vir))
    playoffs.update_playoff_match(db_conn, qf1.id, PlayoffUpdateParams(winner_id=pal.id, higher_seed_wins=2))
    playoffs.update_playoff_match(db_conn, qf2.id, PlayoffUpdateParams(winner_id=vir.id, lower_seed_wins=2))

    semifinal = _node(db_conn, league, 2, 1)
    assert (semifinal.higher_seed_id, semifinal.lower_seed_id) == (pal.id, vir.id)
    fixture = MatchRepository().get(db_conn, semifinal.match_id)
    assert fixture.week == 102
    assert (fixture.entry1_id, fixture.entry2_id) == (pal.id, vir.id)

    playoffs.update_playoff_match(db_conn, semifinal.id, PlayoffUpdateParams(winner_id=vir.id, lower_seed_wins=2))
    final = _node(db_conn, league, 3, 1)
    assert final.higher_seed_id == vir.id
    assert final.match_id is None


def test_final_winner_does_not_advance(db_conn, league, playoffs):
    pal, cer = league.entries
    playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1))
    final = _node(db_conn, league, 3, 1)
    decided = playoffs.update_playoff_match(
        db_conn, final.id, PlayoffUpdateParams(higher_seed_id=pal.id, lower_seed_id=cer.id, winner_id=cer.id)
    )
    assert decided.winner_id == cer.id
    assert MatchRepository().get(db_conn, decided.match_id).week == 103
    assert len(playoffs.list_bracket(db_conn, league.division.id)) == 4


def test_winner_must_be_a_seed(db_conn, league, playoffs, four_teams):
    pal, cer, pew, vir = four_teams
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))
    with pytest.raises(LedgerError):
        playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(winner_id=pew.id))
    assert MatchRepository().get(db_conn, node.match_id).winner_id is None


def test_winner_needs_both_seeds(db_conn, league, playoffs):
    pal = league.entries[0]
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, higher=pal))
    with pytest.raises(LedgerError):
        playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(winner_id=pal.id))
    assert _node(db_conn, league, 1, 1).winner_id is None


def test_winner_locked_once_next_round_scheduled(db_conn, league, playoffs, four_teams):
    pal, cer, pew, vir = four_teams
    qf1 = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))
    qf2 = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 2, pew, vir))
    playoffs.update_playoff_match(db_conn, qf1.id, PlayoffUpdateParams(winner_id=pal.id))
    playoffs.update_playoff_match(db_conn, qf2.id, PlayoffUpdateParams(winner_id=pew.id))

    with pytest.raises(LedgerError):
        playoffs.update_playoff_match(db_conn, qf1.id, PlayoffUpdateParams(winner_id=cer.id))
    assert _node(db_conn, league, 1, 1).winner_id == pal.id
    assert MatchRepository().get(db_conn, qf1.match_id).winner_id == pal.id


def test_winner_can_change_before_next_round_scheduled(db_conn, league, playoffs):
    pal, cer = league.entries
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))
    playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(winner_id=pal.id))
    playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(winner_id=cer.id))
    assert _node(db_conn, league, 2, 1).higher_seed_id == cer.id
    assert _rating(db_conn, league.coaches[1]) == pytest.approx(2116)


def test_playoff_results_stay_out_of_standings(db_conn, league, playoffs):
    pal, cer = league.entries
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))
    playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(winner_id=pal.id, higher_seed_wins=2))
    rows = standings.division_standings(db_conn, league.division.id)
    assert all(r.wins == 0 and r.losses == 0 for r in rows)


def test_update_unknown_playoff_match(db_conn, playoffs):
    with pytest.raises(NotFoundError):
        playoffs.update_playoff_match(db_conn, 404, PlayoffUpdateParams(winner_id=1))


# ---------- Delete ----------


def test_delete_removes_fixture_and_replays_ratings(db_conn, league, playoffs):
    pal, cer = league.entries
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1, pal, cer))
    playoffs.update_playoff_match(db_conn, node.id, PlayoffUpdateParams(winner_id=pal.id))
    assert RatingHistoryRepository().count(db_conn) == 2

    removed = playoffs.delete_playoff_match(db_conn, node.id)
    assert removed.id == node.id
    assert PlayoffMatchRepository().get(db_conn, node.id) is None
    assert MatchRepository().get(db_conn, node.match_id) is None
    assert RatingHistoryRepository().count(db_conn) == 0


def test_delete_unscheduled_node(db_conn, league, playoffs):
    node = playoffs.create_playoff_match(db_conn, _quarterfinal(league, 1))
    playoffs.delete_playoff_match(db_conn, node.id)
    assert len(playoffs.list_bracket(db_conn, league.division.id)) == 3
    assert MatchRepository().list_by_division(db_conn, league.division.id) == []


def test_delete_unknown_playoff_match(db_conn, playoffs):
    with pytest.raises(NotFoundError):
        playoffs.delete_playoff_match(db_conn, 404)


# ---------- Listing / repair ----------


def test_list_bracket_unknown_division(db_conn, playoffs):
    with pytest.raises(NotFoundError):
        playoffs.list_bracket(db_conn, 999)


def test_repair_schedules_missing_fixtures(db_conn, league, playoffs):
    pal, cer = league.entries
    # Seeded node written without a fixture or placeholders.
    PlayoffMatchRepository().create(
        db_conn, league.season.id, league.division.id, 1, 1, higher_seed_id=pal.id, lower_seed_id=cer.id
    )
    assert playoffs.repair_brackets(db_conn, league.season.id) == 1
    node = _node(db_conn, league, 1, 1)
    assert MatchRepository().get(db_conn, node.match_id).week == 101
    assert len(playoffs.list_bracket(db_conn, league.division.id)) == 4
    assert playoffs.repair_brackets(db_conn, league.season.id) == 0


def test_repair_skips_divisions_without_brackets(db_conn, league, playoffs):
    assert playoffs.repair_brackets(db_conn, league.season.id) == 0
    assert playoffs.list_bracket(db_conn, league.division.id) == []
