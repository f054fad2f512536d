from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import SQLAlchemyError
from dailyrank import db, dates
from dailyrank.models import PLAYER_ID_MAX_LENGTH
from dailyrank.services.ranking import RankValidationError, build_engine


rank = Blueprint('rank', __name__)


def _player_id():
    # Identity comes from a trusted upstream header; nothing is verified here
    value = request.headers.get(current_app.config.get('PLAYER_ID_HEADER', 'X-WX-OPENID'))
    value = value.strip() if value else ''
    if not value:
        return None
    if len(value) > PLAYER_ID_MAX_LENGTH:
        raise RankValidationError(f'player identity must be at most {PLAYER_ID_MAX_LENGTH} characters')
    return value


def _record_date(engine):
    value = request.args.get('date')
    if value is None:
        return engine.today()
    if not dates.is_valid_day(value):
        raise RankValidationError('date must be formatted as YYYY-MM-DD')
    return value


@rank.errorhandler(RankValidationError)
def handle_validation_error(exc):
    return jsonify({'error': str(exc)}), 400


@rank.errorhandler(SQLAlchemyError)
def handle_store_error(exc):
    db.session.rollback()
    current_app.logger.exception(f"[rank-store] {request.method} {request.path} failed")
    return jsonify({'error': 'Leaderboard storage is unavailable'}), 500


@rank.route('/submit', methods=['POST'])
def submit_score():
    player_id = _player_id()
    if not player_id:
        return jsonify({'error': 'Player identity is required'}), 401

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'JSON object body is required'}), 400

    engine = build_engine()
    result = engine.submit(
        player_id,
        data.get('player_name'),
        data.get('score'),
        data.get('role_id'),
    )
    return jsonify(result)


@rank.route('/list', methods=['GET'])
def list_rank():
    engine = build_engine()
    return jsonify(engine.list_entries(_record_date(engine), _player_id()))


@rank.route('/my', methods=['GET'])
def my_rank():
    player_id = _player_id()
    if not player_id:
        return jsonify({'error': 'Player identity is required'}), 401
    engine = build_engine()
    return jsonify(engine.my_rank(player_id, _record_date(engine)))


@rank.route('/stats', methods=['GET'])
def rank_stats():
    engine = build_engine()
    return jsonify(engine.stats(_record_date(engine)))
