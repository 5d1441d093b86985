from flask import Blueprint, current_app, jsonify, request

from engine import EngineError, KnockoutAlreadySeeded
from engine.records import IN_PROGRESS, SCHEDULED
from models import db, Match, Tournament
from storage import (
    MatchStore,
    ResultAlreadyRecorded,
    ScheduleExists,
    change_match_status,
    record_result,
    schedule_tournament,
    seed_group_knockout,
    standings_table,
)

api_bp = Blueprint('api', __name__, url_prefix='/api')


def _error(message: str, status: int):
    return jsonify({'message': message}), status


def _parse_score(payload: dict, key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or value is None:
        raise ValueError(f'{key} is required')
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'{key} must be an integer') from None
    if score < 0:
        raise ValueError(f'{key} cannot be negative')
    return score


@api_bp.route('/tournaments/<int:tournament_id>/matches', methods=['POST'])
def generate_schedule(tournament_id):
    """Generate every match for a tournament from its registered teams."""
    tournament = db.get_or_404(Tournament, tournament_id)
    payload = request.get_json(silent=True) or {}

    try:
        matches = schedule_tournament(tournament, seed=payload.get('seed'))
    except ScheduleExists as e:
        db.session.rollback()
        return _error(str(e), 409)
    except EngineError as e:
        db.session.rollback()
        return _error(str(e), 400)
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Schedule generation failed for tournament %s', tournament_id)
        return _error('Error creating matches', 500)

    return jsonify([match.to_dict() for match in matches]), 201


@api_bp.route('/tournaments/<int:tournament_id>/matches', methods=['GET'])
def list_matches(tournament_id):
    db.get_or_404(Tournament, tournament_id)
    matches = MatchStore().get_matches_by_tournament(tournament_id)
    return jsonify([match.to_dict() for match in matches])


@api_bp.route('/matches/<int:match_id>/status', methods=['POST'])
def update_match_status(match_id):
    """Mark a scheduled match as in progress or revert it to scheduled."""
    match = db.get_or_404(Match, match_id)
    payload = request.get_json(silent=True) or {}
    new_status = payload.get('status', SCHEDULED)

    if new_status not in {SCHEDULED, IN_PROGRESS}:
        return _error('Unsupported status update.', 400)

    try:
        match = change_match_status(match.id, new_status)
    except ResultAlreadyRecorded as e:
        db.session.rollback()
        return _error(str(e), 400)

    return jsonify(match.to_dict())


@api_bp.route('/matches/<int:match_id>/result', methods=['PUT'])
def add_result(match_id):
    """Record the final score and update standings and the bracket."""
    match = db.get_or_404(Match, match_id)
    payload = request.get_json(silent=True) or {}

    try:
        team1_score = _parse_score(payload, 'team1_score')
        team2_score = _parse_score(payload, 'team2_score')
    except ValueError as e:
        return _error(str(e), 400)

    try:
        match, standing1, standing2 = record_result(match.id, team1_score, team2_score)
    except ResultAlreadyRecorded as e:
        db.session.rollback()
        return _error(str(e), 409)
    except EngineError as e:
        db.session.rollback()
        return _error(str(e), 400)
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Error updating results for match %s', match_id)
        return _error('Error updating match', 500)

    return jsonify(
        {
            'match': match.to_dict(),
            'result': match.result_display,
            'standings': [
                {'team_id': s.team_id, 'points': s.points, 'wins': s.wins, 'losses': s.losses, 'draws': s.draws}
                for s in (standing1, standing2)
            ],
        }
    )


@api_bp.route('/tournaments/<int:tournament_id>/standings', methods=['GET'])
def standings(tournament_id):
    db.get_or_404(Tournament, tournament_id)
    return jsonify(standings_table(tournament_id))


@api_bp.route('/tournaments/<int:tournament_id>/knockout-seeding', methods=['POST'])
def seed_knockout(tournament_id):
    """Move group qualifiers into the knockout stage once group play is over."""
    tournament = db.get_or_404(Tournament, tournament_id)

    try:
        matches = seed_group_knockout(tournament)
    except KnockoutAlreadySeeded as e:
        db.session.rollback()
        return _error(str(e), 409)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e), 400)

    return jsonify([match.to_dict() for match in matches])
