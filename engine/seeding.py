"""Placing group-stage qualifiers into the knockout placeholders."""

import logging
from dataclasses import dataclass, replace

from engine.bracket import opening_pairs
from engine.errors import GroupStageIncomplete, KnockoutAlreadySeeded
from engine.numbering import find_match, successor
from engine.records import COMPLETED, MatchPatch
from engine.standings import StandingLine, rank_standings

logger = logging.getLogger(__name__)

GROUP_PREFIX = 'Group '
KNOCKOUT_START_ROUND = 2


@dataclass(frozen=True)
class SlotAssignment:
    match: object
    patch: MatchPatch


def group_tables(matches, standings_lookup) -> dict:
    """Rank each group's teams; keys are group labels such as ``'Group A'``."""
    members: dict[str, list] = {}
    pending = 0
    tournament_id = None
    for match in matches:
        if match.round != 1 or not (match.location or '').startswith(GROUP_PREFIX):
            continue
        tournament_id = match.tournament_id
        if match.status != COMPLETED:
            pending += 1
        teams = members.setdefault(match.location, [])
        for team_id in (match.team1_id, match.team2_id):
            if team_id is not None and team_id not in teams:
                teams.append(team_id)

    if pending:
        raise GroupStageIncomplete(f'{pending} group match(es) still to be played')

    return {
        label: rank_standings(
            StandingLine.from_row(standings_lookup(tournament_id, team_id), tournament_id, team_id)
            for team_id in teams
        )
        for label, teams in sorted(members.items())
    }


def advancing_order(tables: dict) -> list:
    """Winner of each group meets the runner-up of the next group."""
    labels = sorted(tables)
    winners = [tables[label][0].line.team_id for label in labels]
    runners_up = [tables[label][1].line.team_id for label in labels]
    order = []
    for idx, winner in enumerate(winners):
        order.append(winner)
        order.append(runners_up[(idx + 1) % len(labels)])
    return order


def seed_knockout_from_groups(matches, standings_lookup) -> list[SlotAssignment]:
    """Work out the slot updates that start the knockout stage.

    Qualifiers fill the first knockout round pairwise; a placeholder left with
    a single team is completed as a bye and its team is moved on to the
    following round. ``matches`` is not modified.
    """
    matches = list(matches)
    opening = sorted(
        (m for m in matches if m.round == KNOCKOUT_START_ROUND),
        key=lambda m: m.match_number,
    )
    if any(m.team1_id is not None or m.team2_id is not None for m in opening):
        raise KnockoutAlreadySeeded('Knockout stage has already been seeded')

    qualifiers = advancing_order(group_tables(matches, standings_lookup))
    patches: dict[tuple[int, int], MatchPatch] = {}
    targets = {}

    for match, (team1_id, team2_id) in zip(opening, opening_pairs(qualifiers)):
        key = (match.round, match.match_number)
        targets[key] = match
        if team2_id is not None:
            patches[key] = MatchPatch(team1_id=team1_id, team2_id=team2_id)
            continue

        patches[key] = MatchPatch(team1_id=team1_id, winner_id=team1_id, status=COMPLETED)
        next_round, next_number, slot = successor(match.round, match.match_number)
        next_match = find_match(matches, next_round, next_number)
        if next_match is not None:
            next_key = (next_round, next_number)
            targets[next_key] = next_match
            patches[next_key] = replace(patches.get(next_key, MatchPatch()), **{slot: team1_id})

    logger.info('Seeded %d qualifiers into the knockout stage', len(qualifiers))
    return [SlotAssignment(match=targets[key], patch=patch) for key, patch in sorted(patches.items())]
