import os

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

import pytest
from app import app
from models import db, Tournament, Team
from datetime import date, timedelta


class NoShuffle:
    """Stand-in random source that keeps the registration order."""

    def __init__(self):
        self.calls = 0

    def shuffle(self, items):
        self.calls += 1


@pytest.fixture
def flask_app():
    """Create test application with in-memory SQLite database"""
    app.config['TESTING'] = True
    app.config['SECRET_KEY'] = 'test-secret-key'

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(flask_app):
    """Test client"""
    return flask_app.test_client()


@pytest.fixture
def db_session(flask_app):
    """Database session for test fixtures"""
    return db.session


@pytest.fixture
def no_shuffle():
    return NoShuffle()


@pytest.fixture
def make_tournament(flask_app):
    """Factory creating a tournament with teams named in registration order"""

    def _make(fmt='knockout', team_names=(), sport_type='Football', name='Test Tournament'):
        tournament = Tournament(
            name=name,
            format=fmt,
            sport_type=sport_type,
            start_date=date.today() + timedelta(days=7),
            end_date=date.today() + timedelta(days=30),
        )
        db.session.add(tournament)
        db.session.commit()
        for team_name in team_names:
            tournament.add_team(team_name)
        db.session.commit()
        return tournament

    return _make


@pytest.fixture
def tournament(make_tournament):
    """Knockout tournament with five teams"""
    return make_tournament('knockout', ['Alpha', 'Bravo', 'Charlie', 'Delta', 'Echo'])


@pytest.fixture
def league(make_tournament):
    """Round-robin tournament with three teams"""
    return make_tournament('round-robin', ['Alpha', 'Bravo', 'Charlie'], name='League')

