"""Errors raised by the scheduling and standings engine."""


class EngineError(ValueError):
    """Base class for engine rule violations."""


class InsufficientTeams(EngineError):
    def __init__(self, team_count: int):
        super().__init__(f'At least 2 teams are required to generate matches (got {team_count})')
        self.team_count = team_count


class MatchNotReady(EngineError):
    """Raised when a result is applied to a match without both teams and both scores."""


class GroupStageIncomplete(EngineError):
    """Raised when knockout seeding is requested before every group match is completed."""


class KnockoutAlreadySeeded(EngineError):
    """Raised when group qualifiers have already been placed in the knockout stage."""
