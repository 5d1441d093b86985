"""Persistence of generated schedules, results and standings."""

import gc

import pytest

import storage
from engine import MatchNotReady, MatchPatch, StandingLine
from models import db, Match, Standing, Team
from storage import (
    MatchStore,
    ResultAlreadyRecorded,
    ScheduleExists,
    change_match_status,
    record_result,
    schedule_tournament,
    seed_group_knockout,
    standings_table,
    tournament_lock,
)


def _team(tournament, name):
    return Team.query.filter_by(tournament_id=tournament.id, name=name).one()


def _first_playable(matches):
    return next(m for m in matches if m.team1_id and m.team2_id and m.status != 'completed')


class TestMatchStore:

    def test_matches_come_back_in_bracket_order(self, tournament):
        schedule_tournament(tournament, seed=4)
        matches = MatchStore().get_matches_by_tournament(tournament.id)

        assert [(m.round, m.match_number) for m in matches] == [
            (1, 1), (1, 2), (1, 3), (1, 4), (2, 1), (2, 2), (3, 1),
        ]

    def test_get_or_create_standing_is_lazy(self, tournament):
        store = MatchStore()
        alpha = _team(tournament, 'Alpha')
        assert store.find_standing(tournament.id, alpha.id) is None

        created = store.get_or_create_standing(tournament.id, alpha.id)
        again = store.get_or_create_standing(tournament.id, alpha.id)

        assert created.id == again.id
        assert (created.wins, created.losses, created.draws, created.points) == (0, 0, 0, 0)
        assert Standing.query.count() == 1

    def test_update_standing_writes_counters(self, tournament):
        store = MatchStore()
        alpha = _team(tournament, 'Alpha')
        standing = store.get_or_create_standing(tournament.id, alpha.id)

        store.update_standing(standing.id, StandingLine(tournament.id, alpha.id, wins=1, points=3, goals_for=2))
        db.session.commit()

        stored = db.session.get(Standing, standing.id)
        assert (stored.wins, stored.points, stored.goals_for, stored.goal_difference) == (1, 3, 2, 2)

    def test_update_match_only_touches_patched_fields(self, league):
        schedule_tournament(league)
        store = MatchStore()
        match = store.get_matches_by_tournament(league.id)[0]
        team1 = match.team1_id

        store.update_match(match.id, MatchPatch(status='in_progress'))
        db.session.commit()

        stored = db.session.get(Match, match.id)
        assert stored.status == 'in_progress'
        assert stored.team1_id == team1

    def test_winner_must_be_a_participant(self, league):
        schedule_tournament(league)
        match = MatchStore().get_matches_by_tournament(league.id)[0]
        outsider = _team(league, 'Charlie')
        assert outsider.id not in (match.team1_id, match.team2_id)

        with pytest.raises(ValueError):
            match.winner_id = outsider.id


class TestScheduleTournament:

    def test_knockout_schedule_is_persisted(self, tournament):
        matches = schedule_tournament(tournament, seed=1)

        assert len(matches) == 7
        assert all(m.id is not None for m in matches)
        byes = [m for m in matches if m.is_bye]
        assert len(byes) == 3
        assert tournament.status == 'active'

    def test_same_seed_gives_same_bracket(self, make_tournament):
        first = make_tournament('knockout', ['A', 'B', 'C', 'D', 'E', 'F'], name='One')
        second = make_tournament('knockout', ['A', 'B', 'C', 'D', 'E', 'F'], name='Two')

        def names(tournament):
            return [
                (m.team1.name if m.team1 else None, m.team2.name if m.team2 else None)
                for m in schedule_tournament(tournament, seed=99)
            ]

        assert names(first) == names(second)

    def test_schedule_cannot_be_generated_twice(self, league):
        schedule_tournament(league)
        with pytest.raises(ScheduleExists):
            schedule_tournament(league)
        assert Match.query.filter_by(tournament_id=league.id).count() == 3

    def test_teams_are_frozen_once_scheduled(self, league):
        schedule_tournament(league)
        with pytest.raises(ValueError):
            league.add_team('Latecomer')

    def test_round_robin_start_times(self, league):
        matches = schedule_tournament(league)
        gaps = [(b.start_time - a.start_time).total_seconds() / 3600 for a, b in zip(matches, matches[1:])]
        assert gaps == [2, 2]


class TestRecordResult:

    def test_result_updates_standings_and_bracket(self, tournament):
        matches = schedule_tournament(tournament, seed=3)
        opener = _first_playable(matches)
        home, away = opener.team1_id, opener.team2_id

        match, standing1, standing2 = record_result(opener.id, 3, 1)

        assert match.status == 'completed'
        assert match.winner_id == home
        assert (standing1.team_id, standing1.wins, standing1.points) == (home, 1, 3)
        assert (standing2.team_id, standing2.losses, standing2.points) == (away, 1, 0)

        successor = Match.query.filter_by(tournament_id=tournament.id, round=2, match_number=1).one()
        assert successor.team1_id == home

    def test_completed_match_is_refused(self, tournament):
        matches = schedule_tournament(tournament, seed=3)
        opener = _first_playable(matches)
        record_result(opener.id, 2, 0)

        with pytest.raises(ResultAlreadyRecorded):
            record_result(opener.id, 2, 0)
        db.session.rollback()

        winner = Standing.query.filter_by(tournament_id=tournament.id, team_id=opener.team1_id).one()
        assert winner.wins == 1

    def test_bye_is_refused(self, tournament):
        matches = schedule_tournament(tournament, seed=3)
        bye = next(m for m in matches if m.is_bye)
        with pytest.raises(ResultAlreadyRecorded):
            record_result(bye.id, 1, 0)

    def test_placeholder_is_not_ready(self, tournament):
        matches = schedule_tournament(tournament, seed=3)
        final = matches[-1]

        with pytest.raises(MatchNotReady):
            record_result(final.id, 1, 0)
        db.session.rollback()

        stored = db.session.get(Match, final.id)
        assert stored.team1_score is None
        assert stored.status == 'scheduled'
        assert Standing.query.count() == 0

    def test_unknown_match(self, flask_app):
        with pytest.raises(LookupError):
            record_result(12345, 1, 0)

    def test_league_completes_after_last_match(self, league):
        matches = schedule_tournament(league)
        for match in matches:
            record_result(match.id, 1, 1)

        assert league.status == 'completed'
        table = standings_table(league.id)
        assert [row['points'] for row in table] == [2, 2, 2]
        assert [row['rank'] for row in table] == [1, 2, 3]
        assert all(row['draws'] == 2 and row['played'] == 2 for row in table)

    def test_knockout_runs_to_a_champion(self, tournament):
        schedule_tournament(tournament, seed=8)
        store = MatchStore()

        while True:
            pending = [
                m for m in store.get_matches_by_tournament(tournament.id)
                if m.status != 'completed' and m.team1_id and m.team2_id
            ]
            if not pending:
                break
            record_result(pending[0].id, 2, 1)

        final = store.get_matches_by_tournament(tournament.id)[-1]
        assert final.round == 3
        assert final.winner_id is not None
        assert tournament.status == 'completed'


class TestStandingsTable:

    def test_table_is_ranked_with_names(self, league):
        matches = schedule_tournament(league)
        alpha, bravo, charlie = (_team(league, n).id for n in ('Alpha', 'Bravo', 'Charlie'))
        results = {(alpha, bravo): (2, 0), (alpha, charlie): (1, 1), (bravo, charlie): (3, 0)}
        for match in matches:
            record_result(match.id, *results[(match.team1_id, match.team2_id)])

        table = standings_table(league.id)

        assert [row['team_name'] for row in table] == ['Alpha', 'Bravo', 'Charlie']
        assert table[0]['points'] == 4
        assert table[0]['goal_difference'] == 2
        assert table[1]['points'] == 3
        assert table[2]['goal_difference'] == -3


class TestGroupKnockoutSeeding:

    def test_group_winners_reach_the_final(self, make_tournament):
        cup = make_tournament('group', ['A', 'B', 'C', 'D', 'E', 'F', 'G', 'H'], name='Cup')
        schedule_tournament(cup, seed=5)
        for match in [m for m in MatchStore().get_matches_by_tournament(cup.id) if m.round == 1]:
            record_result(match.id, 2, 0)

        semis = seed_group_knockout(cup)

        assert [(m.round, m.match_number) for m in semis] == [(2, 1), (2, 2)]
        assert all(m.team1_id and m.team2_id for m in semis)

        for semi in semis:
            record_result(semi.id, 1, 0)
        final = Match.query.filter_by(tournament_id=cup.id, round=3).one()
        assert (final.team1_id, final.team2_id) == (semis[0].team1_id, semis[1].team1_id)

    def test_seeding_needs_finished_groups(self, make_tournament):
        cup = make_tournament('group', ['A', 'B', 'C', 'D', 'E'], name='Cup')
        schedule_tournament(cup, seed=5)
        with pytest.raises(ValueError):
            seed_group_knockout(cup)

    def test_only_group_tournaments_are_seeded(self, league):
        schedule_tournament(league)
        with pytest.raises(ValueError):
            seed_group_knockout(league)


class TestConcurrentSubmissions:
    """A second request holding an old copy of the match must see the new row."""

    def test_result_from_stale_session_is_refused(self, flask_app, tournament):
        opener_id = _first_playable(schedule_tournament(tournament, seed=3)).id
        home = db.session.get(Match, opener_id).team1_id
        assert db.session.get(Match, opener_id).status == 'scheduled'

        with flask_app.app_context():
            record_result(opener_id, 2, 0)

        with pytest.raises(ResultAlreadyRecorded):
            record_result(opener_id, 2, 0)
        db.session.rollback()

        winner = Standing.query.filter_by(tournament_id=tournament.id, team_id=home).one()
        assert winner.wins == 1
        assert winner.points == 3

    def test_standings_are_reloaded_before_adding(self, flask_app, make_tournament):
        league = make_tournament('round-robin', ['Alpha', 'Bravo', 'Charlie', 'Delta'], name='Four')
        first, second, third = schedule_tournament(league)[:3]
        alpha = first.team1_id
        assert alpha == second.team1_id == third.team1_id

        record_result(first.id, 1, 0)
        assert MatchStore().find_standing(league.id, alpha).wins == 1

        with flask_app.app_context():
            record_result(second.id, 3, 0)

        _, standing, _ = record_result(third.id, 2, 2)

        assert standing.team_id == alpha
        assert (standing.wins, standing.draws, standing.points, standing.goals_for) == (2, 1, 7, 6)

    def test_status_change_cannot_reopen_a_completed_match(self, flask_app, league):
        match_id = schedule_tournament(league)[0].id
        assert db.session.get(Match, match_id).status == 'scheduled'

        with flask_app.app_context():
            record_result(match_id, 1, 0)

        with pytest.raises(ResultAlreadyRecorded):
            change_match_status(match_id, 'in_progress')
        db.session.rollback()

        stored = MatchStore().get_match_for_update(match_id)
        assert stored.status == 'completed'
        assert stored.winner_id == stored.team1_id

    def test_status_change(self, league):
        match_id = schedule_tournament(league)[0].id
        assert change_match_status(match_id, 'in_progress').status == 'in_progress'
        assert change_match_status(match_id, 'scheduled').status == 'scheduled'


class TestTournamentLock:

    def test_lock_is_shared_per_tournament(self):
        lock = tournament_lock(41)
        assert tournament_lock(41) is lock
        assert tournament_lock(42) is not lock

    def test_unused_locks_are_dropped(self):
        lock = tournament_lock(43)
        assert 43 in storage._tournament_locks
        del lock
        gc.collect()
        assert 43 not in storage._tournament_locks
