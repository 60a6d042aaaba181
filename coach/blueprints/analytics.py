from flask import Blueprint, jsonify
from coach.app import get_store, limiter

from coach.medals import calculate_medals, calculate_progress_metrics
from coach.stats import calculate_workout_stats

analytics_bp = Blueprint('analytics', __name__, url_prefix='/v1/users')


@analytics_bp.route('/<uuid:user_id>/metrics', methods=['GET'])
@limiter.limit("60 per minute")
def get_progress_metrics(user_id):
    data = get_store().load(str(user_id))
    metrics = calculate_progress_metrics(data)
    return jsonify({
        'has_data': any(e.logs for e in data.exercises),
        'metrics': [metric.to_dict() for metric in metrics],
    }), 200


@analytics_bp.route('/<uuid:user_id>/medals', methods=['GET'])
@limiter.limit("60 per minute")
def get_medals(user_id):
    data = get_store().load(str(user_id))
    medals = calculate_medals(data)
    return jsonify({
        'earned_count': sum(1 for medal in medals if medal.earned),
        'medals': [medal.to_dict() for medal in medals],
    }), 200


@analytics_bp.route('/<uuid:user_id>/stats', methods=['GET'])
@limiter.limit("60 per minute")
def get_workout_stats(user_id):
    data = get_store().load(str(user_id))
    return jsonify(calculate_workout_stats(data).to_dict()), 200
