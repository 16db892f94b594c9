from flask import Blueprint, current_app, jsonify, request

from timing_arena.services.games.errors import PersistenceFailure

leaderboard = Blueprint('leaderboard', __name__)

MAX_LIMIT = 100


@leaderboard.route('', methods=['GET'])
def get_leaderboard():
    """Global best-accuracy table, lowest first."""
    default = int(current_app.config.get('LEADERBOARD_SIZE', 10))
    try:
        limit = int(request.args.get('limit', default))
    except (TypeError, ValueError):
        return jsonify({'error': 'limit must be an integer'}), 400
    if not 1 <= limit <= MAX_LIMIT:
        return jsonify({'error': f'limit must be between 1 and {MAX_LIMIT}'}), 400

    store = current_app.extensions['timing_arena'].leaderboard
    try:
        rows = store.top_n(limit)
    except PersistenceFailure as exc:
        current_app.logger.error(f"[leaderboard-fail] read error={exc}")
        return jsonify({'error': 'Leaderboard unavailable'}), 503
    return jsonify(rows)
