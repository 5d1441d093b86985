"""
Database initialization script for Heroku deployment
Run with: heroku run python init_db.py
"""

from app import app, db


def initialize_database():
    """Create database tables"""
    with app.app_context():
        app.logger.info('Creating database tables...')
        db.create_all()
        app.logger.info('Database tables ready')


if __name__ == "__main__":
    initialize_database()
