from flask import Blueprint, request, jsonify
from coach.app import get_store, logger, limiter
import psycopg2

from coach.models import AppData
from coach.recommendations import RECOMMENDATION_BADGES, should_schedule_deload
from coach.stats import previous_exercises
from coach.storage import (
    complete_onboarding,
    get_exercise_by_id,
    get_exercise_names,
    mark_welcome_seen,
)
from coach.workout_service import RepRangeRequired, accept_deload, log_set, validate_app_data

workouts_bp = Blueprint('workouts', __name__, url_prefix='/v1/users')


def _json_object():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


def _exercise_summary(exercise):
    latest = exercise.logs[-1] if exercise.logs else None
    summary = {
        'id': exercise.id,
        'name': exercise.name,
        'min_reps': exercise.min_reps,
        'goal_reps': exercise.goal_reps,
        'log_count': len(exercise.logs),
        'latest': latest.to_dict() if latest else None,
    }
    if latest:
        summary['latest']['label'] = RECOMMENDATION_BADGES[latest.recommendation]['label']
    return summary


@workouts_bp.route('/<uuid:user_id>/data', methods=['GET'])
def get_app_data(user_id):
    data = get_store().load(str(user_id))
    return jsonify(data.to_dict()), 200


@workouts_bp.route('/<uuid:user_id>/exercises', methods=['GET'])
def list_exercises(user_id):
    data = get_store().load(str(user_id))
    return jsonify({
        'exercises': [_exercise_summary(e) for e in data.exercises],
        'names': get_exercise_names(data),
    }), 200


@workouts_bp.route('/<uuid:user_id>/exercises/<exercise_id>', methods=['GET'])
def get_exercise_history(user_id, exercise_id):
    data = get_store().load(str(user_id))
    exercise = get_exercise_by_id(data, exercise_id)
    if exercise is None:
        return jsonify(error="Exercise not found."), 404

    history = []
    for log in reversed(exercise.logs):
        entry = log.to_dict()
        entry['label'] = RECOMMENDATION_BADGES[log.recommendation]['label']
        history.append(entry)
    payload = exercise.to_dict()
    payload['logs'] = history
    return jsonify(payload), 200


@workouts_bp.route('/<uuid:user_id>/logs', methods=['POST'])
@limiter.limit("120 per hour")
def create_log(user_id):
    """
    Logs one set. Body: exercise_name, weight, unit, reps and, for a new
    exercise, min_reps and goal_reps. Responds with the recommendation.
    """
    payload = _json_object()
    if not payload:
        return jsonify(error="Request body must be a JSON object."), 400
    missing = [key for key in ('exercise_name', 'weight', 'reps') if payload.get(key) in (None, '')]
    if missing:
        return jsonify(error=f"Missing required field(s): {', '.join(missing)}."), 400

    store = get_store()
    user_key = str(user_id)
    data = store.load(user_key)
    try:
        new_data, result = log_set(
            data,
            payload['exercise_name'],
            payload['weight'],
            payload.get('unit') or data.user_preferences.default_unit.value,
            payload['reps'],
            min_reps=payload.get('min_reps'),
            goal_reps=payload.get('goal_reps'),
        )
    except RepRangeRequired as e:
        logger.info(f"User {user_id} logged new exercise '{e.exercise_name}' without a rep range.")
        return jsonify(error=str(e), needs_rep_range=True, exercise_name=e.exercise_name), 409
    except ValueError as e:
        return jsonify(error=str(e)), 400

    try:
        store.save(user_key, new_data)
    except psycopg2.Error:
        return jsonify(error="Could not save the logged set."), 503

    exercise = next(e for e in new_data.exercises if e.name.lower() == payload['exercise_name'].strip().lower())
    return jsonify({
        'recommendation': result.to_dict(),
        'log': exercise.logs[-1].to_dict(),
        'exercise_id': exercise.id,
    }), 201


@workouts_bp.route('/<uuid:user_id>/deload', methods=['GET'])
def get_deload_status(user_id):
    data = get_store().load(str(user_id))
    return jsonify({
        'deload_due': should_schedule_deload(data.metadata),
        'first_log_date': data.metadata.first_log_date,
        'last_deload_date': data.metadata.last_deload_date,
    }), 200


@workouts_bp.route('/<uuid:user_id>/deload/accept', methods=['POST'])
def accept_scheduled_deload(user_id):
    store = get_store()
    user_key = str(user_id)
    data = accept_deload(store.load(user_key))
    store.save(user_key, data)
    logger.info(f"User {user_id} accepted a scheduled deload on {data.metadata.last_deload_date}.")
    return jsonify(data.metadata.to_dict()), 200


@workouts_bp.route('/<uuid:user_id>/preferences/welcome-seen', methods=['POST'])
def welcome_seen(user_id):
    store = get_store()
    user_key = str(user_id)
    data = mark_welcome_seen(store.load(user_key))
    store.save(user_key, data)
    return jsonify(data.user_preferences.to_dict()), 200


@workouts_bp.route('/<uuid:user_id>/onboarding/complete', methods=['POST'])
def onboarding_complete(user_id):
    payload = _json_object() or {}
    store = get_store()
    user_key = str(user_id)
    data = complete_onboarding(store.load(user_key), payload.get('user_name'))
    store.save(user_key, data)
    return jsonify(data.user_preferences.to_dict()), 200


@workouts_bp.route('/<uuid:user_id>/import', methods=['POST'])
@limiter.limit("10 per hour")
def import_guest_data(user_id):
    """Replaces the user's data with a guest export (camelCase or snake_case keys)."""
    payload = _json_object()
    if not payload:
        return jsonify(error="Request body must be a JSON object."), 400
    try:
        data = validate_app_data(AppData.from_dict(payload))
    except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as e:
        logger.info(f"Rejected app data import for user {user_id}: {e}")
        return jsonify(error=f"Invalid app data: {e}"), 400

    get_store().save(str(user_id), data)
    log_count = sum(len(e.logs) for e in data.exercises)
    logger.info(f"Imported {len(data.exercises)} exercises ({log_count} logs) for user {user_id}.")
    return jsonify(imported_exercises=len(data.exercises), imported_logs=log_count), 200


@workouts_bp.route('/<uuid:user_id>/previous-exercises', methods=['GET'])
def list_previous_exercises(user_id):
    data = get_store().load(str(user_id))
    return jsonify([entry.to_dict() for entry in previous_exercises(data)]), 200
