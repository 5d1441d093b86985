"""Bracket generation for knockout, round-robin and group-stage tournaments."""

import logging
import math
import random

from engine.errors import InsufficientTeams
from engine.numbering import (
    find_match,
    first_round_slots,
    group_label,
    kickoff_at,
    knockout_rounds,
    knockout_stage_label,
    match_duration_hours,
    successor,
)
from engine.records import COMPLETED, GROUP, KNOCKOUT, ROUND_ROBIN, SCHEDULED, MatchRecord

logger = logging.getLogger(__name__)

IDEAL_GROUP_SIZE = 4
ADVANCING_PER_GROUP = 2
GROUP_MATCH_SPACING_HOURS = 1


def generate_matches(fmt: str, team_ids: list, tournament, rng=None) -> list[MatchRecord]:
    """Build the full schedule for a tournament.

    ``tournament`` needs ``id``, ``sport_type`` and ``start_date``. ``rng`` is
    anything with a ``shuffle`` method and is used once for knockout and group
    seeding. Unknown formats are scheduled as knockout brackets.
    """
    teams = list(team_ids)
    if len(teams) < 2:
        raise InsufficientTeams(len(teams))

    rng = rng or random.Random()

    if fmt == ROUND_ROBIN:
        matches = _round_robin_matches(teams, tournament)
    elif fmt == GROUP:
        matches = _group_matches(_seeded(teams, rng), tournament)
    else:
        if fmt != KNOCKOUT:
            logger.warning(
                'Unknown tournament format %r for tournament %s; scheduling as knockout',
                fmt,
                tournament.id,
            )
        matches = _knockout_matches(_seeded(teams, rng), tournament)

    logger.info(
        'Generated %d matches for tournament %s (%s, %d teams)',
        len(matches),
        tournament.id,
        fmt,
        len(teams),
    )
    return matches


def _seeded(teams: list, rng) -> list:
    shuffled = list(teams)
    rng.shuffle(shuffled)
    return shuffled


def opening_pairs(teams: list) -> list[tuple]:
    """Fill the opening slots of a bracket for ``teams`` in order.

    Every slot holds at least one team: the first slots get consecutive pairs
    and the remaining ones a single team each (a bye).
    """
    slots = first_round_slots(len(teams))
    played = len(teams) - slots
    pairs = []
    for idx in range(slots):
        if idx < played:
            pairs.append((teams[2 * idx], teams[2 * idx + 1]))
        else:
            pairs.append((teams[played + idx], None))
    return pairs


def _knockout_matches(teams: list, tournament) -> list[MatchRecord]:
    total_rounds = knockout_rounds(len(teams))
    location = f'{tournament.sport_type} Arena'

    matches = []
    for idx, (team1_id, team2_id) in enumerate(opening_pairs(teams)):
        matches.append(
            _pairing_or_bye(
                tournament.id,
                round_number=1,
                match_number=idx + 1,
                team1_id=team1_id,
                team2_id=team2_id,
                location=location,
            )
        )

    for round_number in range(2, total_rounds + 1):
        for idx in range(2 ** (total_rounds - round_number)):
            matches.append(
                MatchRecord(
                    tournament_id=tournament.id,
                    round=round_number,
                    match_number=idx + 1,
                    location=location,
                )
            )

    advance_byes(matches, round_number=1)
    return matches


def _pairing_or_bye(tournament_id, round_number, match_number, team1_id, team2_id, location=None) -> MatchRecord:
    """Pairing for an opening slot; a slot holding a single team is a completed bye."""
    lone = None
    if team1_id is not None and team2_id is None:
        lone = team1_id
    elif team2_id is not None and team1_id is None:
        lone = team2_id

    return MatchRecord(
        tournament_id=tournament_id,
        round=round_number,
        match_number=match_number,
        team1_id=team1_id,
        team2_id=team2_id,
        winner_id=lone,
        status=COMPLETED if lone is not None else SCHEDULED,
        location=location,
    )


def advance_byes(matches: list, round_number: int) -> list:
    """Move every bye winner in ``round_number`` into its successor slot.

    Returns the successor matches that were filled.
    """
    filled = []
    for match in matches:
        if match.round != round_number or not match.is_bye:
            continue
        next_round, next_number, slot = successor(match.round, match.match_number)
        next_match = find_match(matches, next_round, next_number)
        if next_match is None:
            continue
        setattr(next_match, slot, match.winner_id)
        filled.append(next_match)
    return filled


def _round_robin_matches(teams: list, tournament) -> list[MatchRecord]:
    hours = match_duration_hours(tournament.sport_type)
    matches = []
    for team1_id, team2_id in _all_pairs(teams):
        match_number = len(matches) + 1
        matches.append(
            MatchRecord(
                tournament_id=tournament.id,
                round=1,
                match_number=match_number,
                team1_id=team1_id,
                team2_id=team2_id,
                start_time=kickoff_at(tournament.start_date, match_number - 1, hours),
            )
        )
    return matches


def _all_pairs(teams: list):
    for i in range(len(teams)):
        for j in range(i + 1, len(teams)):
            yield teams[i], teams[j]


def split_into_groups(teams: list) -> list[list]:
    num_groups = math.ceil(len(teams) / IDEAL_GROUP_SIZE)
    groups = [[] for _ in range(num_groups)]
    for idx, team_id in enumerate(teams):
        groups[idx % num_groups].append(team_id)
    return groups


def _group_matches(teams: list, tournament) -> list[MatchRecord]:
    groups = split_into_groups(teams)
    matches = []
    match_number = 1

    for group_index, group_teams in enumerate(groups):
        for team1_id, team2_id in _all_pairs(group_teams):
            matches.append(
                MatchRecord(
                    tournament_id=tournament.id,
                    round=1,
                    match_number=match_number,
                    team1_id=team1_id,
                    team2_id=team2_id,
                    location=group_label(group_index),
                    start_time=kickoff_at(tournament.start_date, match_number - 1, GROUP_MATCH_SPACING_HOURS),
                )
            )
            match_number += 1

    # Group winners are seeded into these later (engine.seeding).
    stage_rounds = knockout_rounds(len(groups) * ADVANCING_PER_GROUP)
    final_round = stage_rounds + 1
    for round_number in range(2, final_round + 1):
        for idx in range(2 ** (stage_rounds - (round_number - 1))):
            matches.append(
                MatchRecord(
                    tournament_id=tournament.id,
                    round=round_number,
                    match_number=idx + 1,
                    location=knockout_stage_label(round_number, final_round),
                )
            )
    return matches
