from datetime import datetime
import pytz

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

from engine.records import KNOCKOUT, MATCH_STATUSES, SCHEDULED, COMPLETED
from engine.standings import COUNTER_FIELDS

db = SQLAlchemy()

IST = pytz.timezone('Asia/Kolkata')


def current_time():
    return datetime.now(IST)


class Tournament(db.Model):
    __tablename__ = 'tournament'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    format = db.Column(db.String(20), default=KNOCKOUT)  # knockout, round-robin, group
    sport_type = db.Column(db.String(50), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date)
    status = db.Column(db.String(20), default='upcoming')  # upcoming, active, completed
    created_at = db.Column(db.DateTime, default=current_time)

    teams = db.relationship('Team', backref='tournament', lazy=True, order_by='Team.id')
    matches = db.relationship('Match', backref='tournament', lazy=True)
    standings = db.relationship('Standing', backref='tournament', lazy=True)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Tournament {self.id} {self.name} format={self.format}>"

    @validates('end_date')
    def validate_end_date(self, key, value):
        if value and self.start_date and value < self.start_date:
            raise ValueError('End date must be on or after the start date')
        return value

    @property
    def has_schedule(self) -> bool:
        return Match.query.filter_by(tournament_id=self.id).first() is not None

    def add_team(self, name: str, auto_commit: bool = False) -> 'Team':
        """Register a team; the line-up is frozen once matches exist."""
        if self.has_schedule:
            raise ValueError('Teams cannot be added after the schedule has been generated')
        if not name or not name.strip():
            raise ValueError('Team name is required')

        team = Team(name=name.strip(), tournament_id=self.id)
        db.session.add(team)
        if auto_commit:
            db.session.commit()
        return team


class Team(db.Model):
    __tablename__ = 'team'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=current_time)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Team {self.id} {self.name}>"


class Match(db.Model):
    __tablename__ = 'match'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    round = db.Column(db.Integer, nullable=False)
    match_number = db.Column(db.Integer, nullable=False)
    team1_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    team2_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    team1_score = db.Column(db.Integer)
    team2_score = db.Column(db.Integer)
    winner_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    status = db.Column(db.String(20), default=SCHEDULED, nullable=False)  # scheduled, in_progress, completed
    location = db.Column(db.String(100))
    start_time = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=current_time)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    team1 = db.relationship('Team', foreign_keys=[team1_id])
    team2 = db.relationship('Team', foreign_keys=[team2_id])
    winner = db.relationship('Team', foreign_keys=[winner_id])

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'round', 'match_number', name='unique_match_slot'),
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Match {self.id} R{self.round}M{self.match_number} status={self.status}>"

    @validates('status')
    def validate_status(self, key, value):
        if value not in MATCH_STATUSES:
            raise ValueError(f'Unsupported match status {value!r}')
        return value

    @validates('winner_id')
    def validate_winner(self, key, value):
        if value is not None and value not in (self.team1_id, self.team2_id):
            raise ValueError('Winner must be one of the participating teams')
        return value

    @validates('team1_score', 'team2_score')
    def validate_score(self, key, value):
        if value is not None and value < 0:
            raise ValueError('Scores cannot be negative')
        return value

    @property
    def is_bye(self) -> bool:
        lone_team = (self.team1_id is None) != (self.team2_id is None)
        return lone_team and self.status == COMPLETED and self.winner_id is not None

    @property
    def versus_display(self):
        """Display match as Team A vs Team B"""
        return f"{self._display_name(1)} vs {self._display_name(2)}"

    @property
    def result_display(self) -> str:
        if self.status != COMPLETED:
            return "Match not completed"
        if self.is_bye:
            return f"{self.winner.name} advances (bye)"
        if self.winner_id:
            return f"Winner: {self.winner.name}"
        return "Match drawn"

    def _display_name(self, slot: int) -> str:
        team = self.team1 if slot == 1 else self.team2
        if team:
            return team.name
        if self.is_bye:
            return 'BYE'
        return 'TBD'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'round': self.round,
            'match_number': self.match_number,
            'team1_id': self.team1_id,
            'team2_id': self.team2_id,
            'team1_score': self.team1_score,
            'team2_score': self.team2_score,
            'winner_id': self.winner_id,
            'status': self.status,
            'location': self.location,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'versus': self.versus_display,
        }


class Standing(db.Model):
    """Cumulative per-team record within one tournament."""

    __tablename__ = 'standing'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    losses = db.Column(db.Integer, default=0, nullable=False)
    draws = db.Column(db.Integer, default=0, nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)
    goals_for = db.Column(db.Integer, default=0, nullable=False)
    goals_against = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    team = db.relationship('Team')

    __table_args__ = (db.UniqueConstraint('tournament_id', 'team_id', name='unique_tournament_standing'),)

    def __init__(self, **kwargs):
        for name in COUNTER_FIELDS:
            kwargs.setdefault(name, 0)
        super().__init__(**kwargs)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Standing team={self.team_id} pts={self.points}>"

    @validates(*COUNTER_FIELDS)
    def validate_counter(self, key, value):
        if value is None or value < 0:
            raise ValueError(f'{key} must be a non-negative integer')
        return value

    @property
    def goal_difference(self) -> int:
        return (self.goals_for or 0) - (self.goals_against or 0)
