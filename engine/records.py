"""Typed records exchanged between the engine and its callers."""

from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Optional

SCHEDULED = 'scheduled'
IN_PROGRESS = 'in_progress'
COMPLETED = 'completed'
MATCH_STATUSES = (SCHEDULED, IN_PROGRESS, COMPLETED)

KNOCKOUT = 'knockout'
ROUND_ROBIN = 'round-robin'
GROUP = 'group'


@dataclass
class MatchRecord:
    """An unpersisted match produced by the bracket generator."""

    tournament_id: Optional[int]
    round: int
    match_number: int
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    winner_id: Optional[int] = None
    status: str = SCHEDULED
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        if self.status not in MATCH_STATUSES:
            raise ValueError(f'Unsupported match status {self.status!r}')
        if self.winner_id is not None and self.winner_id not in (self.team1_id, self.team2_id):
            raise ValueError('Winner must be one of the participating teams')

    @property
    def is_bye(self) -> bool:
        lone_team = (self.team1_id is None) != (self.team2_id is None)
        return lone_team and self.status == COMPLETED and self.winner_id is not None

    def apply(self, patch: 'MatchPatch') -> None:
        for name, value in patch.as_fields().items():
            setattr(self, name, value)

    def as_fields(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != 'id'}


@dataclass(frozen=True)
class MatchPatch:
    """Partial update for a match; only these four fields may change.

    Fields are applied in declaration order, slots before the winner.
    """

    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    winner_id: Optional[int] = None
    status: Optional[str] = None

    def __post_init__(self):
        if self.status is not None and self.status not in MATCH_STATUSES:
            raise ValueError(f'Unsupported match status {self.status!r}')

    def as_fields(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def __bool__(self) -> bool:
        return bool(self.as_fields())


@dataclass(frozen=True)
class TournamentInfo:
    """Metadata the generator needs; only used to annotate matches."""

    id: Optional[int]
    sport_type: str
    start_date: date
