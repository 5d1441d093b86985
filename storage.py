"""Persistence for the scheduling engine on top of Flask-SQLAlchemy.

The engine only computes; this module reads what it needs, calls it, and
writes the outcome back in one transaction.
"""

import logging
import random
import threading
import weakref
from functools import partial

from engine import (
    MatchPatch,
    StandingLine,
    TournamentInfo,
    apply_result,
    generate_matches,
    rank_standings,
    seed_knockout_from_groups,
)
from engine.records import COMPLETED, GROUP
from models import db, Match, Standing, Team, Tournament

logger = logging.getLogger(__name__)

# Entries disappear once no caller holds the lock.
_tournament_locks = weakref.WeakValueDictionary()
_registry_lock = threading.Lock()


class ScheduleExists(ValueError):
    """Raised when matches are generated twice for the same tournament."""


class ResultAlreadyRecorded(ValueError):
    """Raised when a result is entered for a match that is already completed."""


def tournament_lock(tournament_id: int) -> threading.Lock:
    """Lock serialising result processing for one tournament."""
    with _registry_lock:
        lock = _tournament_locks.get(tournament_id)
        if lock is None:
            lock = _tournament_locks[tournament_id] = threading.Lock()
        return lock


class MatchStore:
    """Keyed CRUD over matches and standings for the engine's callers."""

    def __init__(self, session=None):
        self.session = session or db.session

    def create_matches(self, records) -> list[Match]:
        matches = [Match(**record.as_fields()) for record in records]
        self.session.add_all(matches)
        self.session.flush()
        return matches

    def get_matches_by_tournament(self, tournament_id: int, for_update: bool = False) -> list[Match]:
        query = Match.query.filter_by(tournament_id=tournament_id).order_by(Match.round, Match.match_number)
        if for_update:
            query = query.populate_existing().with_for_update()
        return query.all()

    def get_match_for_update(self, match_id: int):
        """Locked row, reloaded even if the session already holds the match."""
        return Match.query.filter_by(id=match_id).populate_existing().with_for_update().first()

    def get_tournament_for_update(self, tournament_id: int):
        return Tournament.query.filter_by(id=tournament_id).populate_existing().with_for_update().first()

    def find_standing(self, tournament_id: int, team_id: int, for_update: bool = False):
        query = Standing.query.filter_by(tournament_id=tournament_id, team_id=team_id)
        if for_update:
            query = query.populate_existing().with_for_update()
        return query.first()

    def get_or_create_standing(self, tournament_id: int, team_id: int) -> Standing:
        standing = self.find_standing(tournament_id, team_id, for_update=True)
        if standing is None:
            standing = Standing(tournament_id=tournament_id, team_id=team_id)
            self.session.add(standing)
            self.session.flush()
        return standing

    def update_standing(self, standing_id: int, line: StandingLine) -> Standing:
        standing = self.session.get(Standing, standing_id)
        for name, value in line.counters().items():
            setattr(standing, name, value)
        return standing

    def update_match(self, match_id: int, patch: MatchPatch) -> Match:
        match = self.session.get(Match, match_id)
        for name, value in patch.as_fields().items():
            setattr(match, name, value)
        return match

    def list_standings(self, tournament_id: int) -> list[Standing]:
        return Standing.query.filter_by(tournament_id=tournament_id).all()


def schedule_tournament(tournament: Tournament, seed=None, store: MatchStore = None) -> list[Match]:
    """Generate and persist every match for ``tournament``."""
    store = store or MatchStore()
    if tournament.has_schedule:
        raise ScheduleExists(f'Tournament {tournament.id} already has a schedule')

    team_ids = [team.id for team in Team.query.filter_by(tournament_id=tournament.id).order_by(Team.id)]
    info = TournamentInfo(
        id=tournament.id,
        sport_type=tournament.sport_type,
        start_date=tournament.start_date,
    )
    records = generate_matches(tournament.format, team_ids, info, rng=random.Random(seed))

    matches = store.create_matches(records)
    if tournament.status == 'upcoming':
        tournament.status = 'active'
    db.session.commit()
    logger.info('Stored %d matches for tournament %s', len(matches), tournament.id)
    return matches


def record_result(match_id: int, team1_score: int, team2_score: int, store: MatchStore = None):
    """Enter a score, update both standings and move the winner on.

    Returns ``(match, team1_standing, team2_standing)``. Runs under the
    tournament's lock and commits once; on error the caller rolls back.
    """
    store = store or MatchStore()
    match = db.session.get(Match, match_id)
    if match is None:
        raise LookupError(f'Match {match_id} not found')

    with tournament_lock(match.tournament_id):
        tournament = store.get_tournament_for_update(match.tournament_id)
        match = store.get_match_for_update(match_id)
        if match.status == COMPLETED:
            raise ResultAlreadyRecorded('Results have already been entered for this match')

        matches = store.get_matches_by_tournament(tournament.id, for_update=True)
        match.team1_score = team1_score
        match.team2_score = team2_score
        standings_lookup = partial(store.find_standing, for_update=True)
        outcome = apply_result(match, tournament.format, matches, standings_lookup)

        standing1 = store.get_or_create_standing(tournament.id, match.team1_id)
        standing2 = store.get_or_create_standing(tournament.id, match.team2_id)
        store.update_standing(standing1.id, outcome.team1_standing)
        store.update_standing(standing2.id, outcome.team2_standing)
        store.update_match(match.id, outcome.match_patch)
        if outcome.next_match_patch:
            store.update_match(outcome.next_match.id, outcome.next_match_patch)

        if all(m.status == COMPLETED for m in matches):
            tournament.status = 'completed'
        db.session.commit()

    logger.info(
        'Recorded %s-%s for match %s (tournament %s), winner %s',
        team1_score,
        team2_score,
        match.id,
        tournament.id,
        outcome.winner_id,
    )
    return match, standing1, standing2


def change_match_status(match_id: int, status: str, store: MatchStore = None) -> Match:
    """Move a match between scheduled and in progress; completed matches stay completed."""
    store = store or MatchStore()
    match = db.session.get(Match, match_id)
    if match is None:
        raise LookupError(f'Match {match_id} not found')

    with tournament_lock(match.tournament_id):
        match = store.get_match_for_update(match_id)
        if match.status == COMPLETED:
            raise ResultAlreadyRecorded('Completed matches cannot change status.')
        store.update_match(match.id, MatchPatch(status=status))
        db.session.commit()

    logger.info('Match %s is now %s', match.id, status)
    return match


def seed_group_knockout(tournament: Tournament, store: MatchStore = None) -> list[Match]:
    """Place the top two of every group into the knockout placeholders."""
    store = store or MatchStore()
    if tournament.format != GROUP:
        raise ValueError('Only group-stage tournaments have a knockout stage to seed')

    with tournament_lock(tournament.id):
        store.get_tournament_for_update(tournament.id)
        matches = store.get_matches_by_tournament(tournament.id, for_update=True)
        assignments = seed_knockout_from_groups(matches, partial(store.find_standing, for_update=True))
        updated = [store.update_match(item.match.id, item.patch) for item in assignments]
        db.session.commit()

    logger.info('Seeded knockout stage of tournament %s (%d matches updated)', tournament.id, len(updated))
    return updated


def standings_table(tournament_id: int, store: MatchStore = None) -> list[dict]:
    """Ranked standings with team names, computed on every read."""
    store = store or MatchStore()
    names = {team.id: team.name for team in Team.query.filter_by(tournament_id=tournament_id)}
    table = []
    for entry in rank_standings(store.list_standings(tournament_id)):
        line = entry.line
        table.append(
            {
                'rank': entry.rank,
                'team_id': line.team_id,
                'team_name': names.get(line.team_id, 'Unknown Team'),
                'played': line.played,
                **line.counters(),
                'goal_difference': line.goal_difference,
            }
        )
    return table
