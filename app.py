import logging
import os

from flask import Flask, jsonify

from models import db
from blueprints.api import api_bp

app = Flask(__name__)

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# Configuration
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'tourneytrack')
app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO').upper()

# Database configuration - supports both local SQLite and remote PostgreSQL
DATABASE_URL = os.environ.get('DATABASE_URL')

if DATABASE_URL:
    # Heroku PostgreSQL URL fix (postgres:// → postgresql://)
    if DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)
    app.config['SQLALCHEMY_DATABASE_URI'] = DATABASE_URL
else:
    # Fallback to SQLite for local development
    default_sqlite_dir = os.path.join(BASE_DIR, 'instance')
    os.makedirs(default_sqlite_dir, exist_ok=True)
    sqlite_path = os.environ.get('SQLITE_PATH', os.path.join(default_sqlite_dir, 'tournament.db'))
    app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{sqlite_path}'

app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
    'pool_pre_ping': True,
    'pool_recycle': 300,
}

logging.basicConfig(
    level=app.config['LOG_LEVEL'],
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)
app.logger.setLevel(app.config['LOG_LEVEL'])

db.init_app(app)

with app.app_context():
    db.create_all()
    app.logger.info('Database initialized successfully!')

# Register blueprints
app.register_blueprint(api_bp)


@app.errorhandler(404)
def not_found(error):
    return jsonify({'message': 'Not found'}), 404


if __name__ == "__main__":
    app.run(debug=True, port=5000)
