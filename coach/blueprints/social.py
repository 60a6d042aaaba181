from flask import Blueprint, request, jsonify
from coach.app import get_social_store, logger, limiter
import uuid

from coach.social import (
    FriendRequestExists,
    accept_request,
    activity_feed,
    ensure_profile,
    list_friends,
    pending_requests,
    post_activity,
    remove_friend,
    search_users,
    send_friend_request,
    update_profile,
)

social_bp = Blueprint('social', __name__, url_prefix='/v1')


def _json_object():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


@social_bp.route('/users/<uuid:user_id>/profile', methods=['GET'])
def get_profile(user_id):
    profile = ensure_profile(get_social_store(), user_id)
    return jsonify(profile.to_dict()), 200


@social_bp.route('/users/<uuid:user_id>/profile', methods=['PUT'])
def put_profile(user_id):
    payload = _json_object()
    if payload is None:
        return jsonify(error="Request body must be a JSON object."), 400
    try:
        profile = update_profile(get_social_store(), user_id, payload.get('username'))
    except ValueError as e:
        return jsonify(error=str(e)), 400
    return jsonify(profile.to_dict()), 200


@social_bp.route('/profiles/<slug>', methods=['GET'])
def get_public_profile(slug):
    profile = get_social_store().get_profile_by_slug(slug)
    if profile is None:
        return jsonify(error="Profile not found."), 404
    return jsonify(profile.to_dict()), 200


@social_bp.route('/users/<uuid:user_id>/search', methods=['GET'])
@limiter.limit("60 per hour")
def search(user_id):
    results = search_users(get_social_store(), user_id, request.args.get('q', ''))
    return jsonify([profile.to_dict() for profile in results]), 200


@social_bp.route('/users/<uuid:user_id>/friends', methods=['GET'])
def get_friends(user_id):
    store = get_social_store()
    return jsonify({
        'friends': list_friends(store, user_id),
        'pending_requests': pending_requests(store, user_id),
    }), 200


@social_bp.route('/users/<uuid:user_id>/friends/requests', methods=['POST'])
@limiter.limit("30 per hour")
def create_friend_request(user_id):
    payload = _json_object()
    if not payload or not payload.get('friend_user_id'):
        return jsonify(error="Missing required field: friend_user_id."), 400
    try:
        friend_user_id = uuid.UUID(str(payload['friend_user_id']))
    except ValueError:
        return jsonify(error="'friend_user_id' must be a UUID."), 400

    try:
        friendship = send_friend_request(get_social_store(), user_id, friend_user_id)
    except FriendRequestExists as e:
        return jsonify(error=str(e)), 409
    except LookupError as e:
        return jsonify(error=str(e)), 404
    except ValueError as e:
        return jsonify(error=str(e)), 400
    return jsonify(friendship.to_dict()), 201


@social_bp.route('/users/<uuid:user_id>/friends/requests/<uuid:friendship_id>/accept', methods=['POST'])
def accept_friend_request(user_id, friendship_id):
    try:
        friendship = accept_request(get_social_store(), user_id, friendship_id)
    except LookupError as e:
        return jsonify(error=str(e)), 404
    return jsonify(friendship.to_dict()), 200


@social_bp.route('/users/<uuid:user_id>/friends/<uuid:friendship_id>', methods=['DELETE'])
def delete_friend(user_id, friendship_id):
    try:
        remove_friend(get_social_store(), user_id, friendship_id)
    except LookupError as e:
        return jsonify(error=str(e)), 404
    return jsonify(message="Friend removed."), 200


@social_bp.route('/users/<uuid:user_id>/activities', methods=['POST'])
@limiter.limit("60 per hour")
def create_activity(user_id):
    """Shares a finished workout with friends. Body: workout_type, summary and optional duration in minutes."""
    payload = _json_object()
    if payload is None:
        return jsonify(error="Request body must be a JSON object."), 400
    try:
        activity = post_activity(
            get_social_store(),
            user_id,
            payload.get('workout_type'),
            payload.get('summary'),
            duration=payload.get('duration'),
        )
    except ValueError as e:
        return jsonify(error=str(e)), 400
    logger.info(f"User {user_id} shared activity {activity.id}.")
    return jsonify(activity.to_dict()), 201


@social_bp.route('/users/<uuid:user_id>/feed', methods=['GET'])
def get_feed(user_id):
    return jsonify(activity_feed(get_social_store(), user_id)), 200
