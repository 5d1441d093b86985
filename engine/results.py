"""Applying a completed match result to standings and the bracket."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from engine.errors import MatchNotReady
from engine.numbering import find_match, successor
from engine.records import COMPLETED, GROUP, ROUND_ROBIN, MatchPatch
from engine.standings import DRAW, LOSS, WIN, StandingLine

logger = logging.getLogger(__name__)

GROUP_STAGE_ROUND = 1


@dataclass(frozen=True)
class ResultOutcome:
    """Everything a caller has to persist after one result."""

    team1_standing: StandingLine
    team2_standing: StandingLine
    winner_id: Optional[int]
    match_patch: MatchPatch
    next_match: Optional[object] = None
    next_match_patch: Optional[MatchPatch] = None

    @property
    def is_draw(self) -> bool:
        return self.winner_id is None


def _progresses(fmt: str, round_number: int) -> bool:
    """Whether the winner of a match in this format and round moves on."""
    if fmt == ROUND_ROBIN:
        return False
    if fmt == GROUP:
        return round_number > GROUP_STAGE_ROUND
    return True


def apply_result(
    match,
    fmt: str,
    all_matches,
    standings_lookup: Callable[[int, int], Optional[object]],
) -> ResultOutcome:
    """Compute standings and bracket changes for a completed match.

    ``match`` must have both teams and both scores. ``standings_lookup`` is
    called as ``standings_lookup(tournament_id, team_id)`` and returns the
    stored standing or ``None``. Nothing passed in is mutated.

    Applying the same result twice counts it twice; callers accept a result
    only once per match.
    """
    if match.team1_id is None or match.team2_id is None:
        raise MatchNotReady(
            f'Match R{match.round}M{match.match_number} does not have both teams assigned yet'
        )
    if match.team1_score is None or match.team2_score is None:
        raise MatchNotReady(f'Match R{match.round}M{match.match_number} is missing a score')

    team1_score = int(match.team1_score)
    team2_score = int(match.team2_score)

    if team1_score > team2_score:
        winner_id = match.team1_id
        team1_outcome, team2_outcome = WIN, LOSS
    elif team2_score > team1_score:
        winner_id = match.team2_id
        team1_outcome, team2_outcome = LOSS, WIN
    else:
        winner_id = None
        team1_outcome = team2_outcome = DRAW

    tournament_id = match.tournament_id
    team1_line = StandingLine.from_row(standings_lookup(tournament_id, match.team1_id), tournament_id, match.team1_id)
    team2_line = StandingLine.from_row(standings_lookup(tournament_id, match.team2_id), tournament_id, match.team2_id)

    next_match = None
    next_patch = None
    if winner_id is not None and _progresses(fmt, match.round):
        next_round, next_number, slot = successor(match.round, match.match_number)
        next_match = find_match(all_matches, next_round, next_number)
        if next_match is not None:
            next_patch = MatchPatch(**{slot: winner_id})

    logger.debug(
        'Result R%sM%s in tournament %s: %s-%s, winner %s',
        match.round,
        match.match_number,
        tournament_id,
        team1_score,
        team2_score,
        winner_id,
    )

    return ResultOutcome(
        team1_standing=team1_line.record(team1_outcome, team1_score, team2_score),
        team2_standing=team2_line.record(team2_outcome, team2_score, team1_score),
        winner_id=winner_id,
        match_patch=MatchPatch(winner_id=winner_id, status=COMPLETED),
        next_match=next_match,
        next_match_patch=next_patch,
    )
