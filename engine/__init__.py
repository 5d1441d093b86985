"""
Tournament scheduling and standings engine.
Pure functions: callers persist what they return.
"""

from .bracket import generate_matches
from .errors import EngineError, GroupStageIncomplete, InsufficientTeams, KnockoutAlreadySeeded, MatchNotReady
from .records import MatchPatch, MatchRecord, TournamentInfo
from .results import ResultOutcome, apply_result
from .seeding import SlotAssignment, seed_knockout_from_groups
from .standings import RankedStanding, StandingLine, rank_standings

__all__ = [
    'generate_matches',
    'apply_result',
    'seed_knockout_from_groups',
    'rank_standings',
    'MatchRecord',
    'MatchPatch',
    'TournamentInfo',
    'ResultOutcome',
    'SlotAssignment',
    'StandingLine',
    'RankedStanding',
    'EngineError',
    'InsufficientTeams',
    'MatchNotReady',
    'GroupStageIncomplete',
    'KnockoutAlreadySeeded',
]
