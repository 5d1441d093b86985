"""Standing counters and the read-path ranking."""

from dataclasses import dataclass, replace

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1
POINTS_FOR_LOSS = 0

WIN = 'win'
LOSS = 'loss'
DRAW = 'draw'

COUNTER_FIELDS = ('wins', 'losses', 'draws', 'points', 'goals_for', 'goals_against')


@dataclass(frozen=True)
class StandingLine:
    """Cumulative record of one team within one tournament."""

    tournament_id: int
    team_id: int
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0

    def __post_init__(self):
        for name in COUNTER_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f'{name} cannot be negative')

    @classmethod
    def from_row(cls, row, tournament_id: int, team_id: int) -> 'StandingLine':
        """Copy counters from a stored standing; ``None`` gives a zeroed line."""
        if row is None:
            return cls(tournament_id=tournament_id, team_id=team_id)
        return cls(
            tournament_id=tournament_id,
            team_id=team_id,
            **{name: getattr(row, name) or 0 for name in COUNTER_FIELDS},
        )

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def played(self) -> int:
        return self.wins + self.losses + self.draws

    def rank_key(self) -> tuple[int, int, int]:
        return self.points, self.goal_difference, self.goals_for

    def counters(self) -> dict:
        return {name: getattr(self, name) for name in COUNTER_FIELDS}

    def record(self, outcome: str, scored: int, conceded: int) -> 'StandingLine':
        """Return a new line with one match result added."""
        if outcome == WIN:
            changes = {'wins': self.wins + 1, 'points': self.points + POINTS_FOR_WIN}
        elif outcome == LOSS:
            changes = {'losses': self.losses + 1, 'points': self.points + POINTS_FOR_LOSS}
        elif outcome == DRAW:
            changes = {'draws': self.draws + 1, 'points': self.points + POINTS_FOR_DRAW}
        else:
            raise ValueError(f'Unknown match outcome {outcome!r}')

        return replace(
            self,
            goals_for=self.goals_for + scored,
            goals_against=self.goals_against + conceded,
            **changes,
        )


@dataclass(frozen=True)
class RankedStanding:
    rank: int
    line: StandingLine


def rank_standings(rows) -> list[RankedStanding]:
    """Order standings by points, then goal difference, then goals scored.

    Accepts ``StandingLine`` objects or anything exposing the counter
    attributes plus ``tournament_id``/``team_id``. Equal keys keep their input
    order and still get consecutive ranks.
    """
    lines = [
        row if isinstance(row, StandingLine) else StandingLine.from_row(row, row.tournament_id, row.team_id)
        for row in rows
    ]
    lines.sort(key=lambda line: line.rank_key(), reverse=True)
    return [RankedStanding(rank=idx + 1, line=line) for idx, line in enumerate(lines)]
