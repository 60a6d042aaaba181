from flask import Blueprint, request, jsonify
from coach.app import limiter

from coach.calculators import convert_weight, one_rep_max, overload_check, plate_breakdown, volume_summary
from coach.constants import BAR_WEIGHT_LBS

calculators_bp = Blueprint('calculators', __name__, url_prefix='/v1/calculators')


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


@calculators_bp.route('/one-rep-max', methods=['POST'])
@limiter.limit("60 per hour")
def one_rep_max_route():
    data = _json_body()
    if not data or 'weight' not in data or 'reps' not in data:
        return jsonify({"error": "Missing 'weight' or 'reps' in request body"}), 400
    try:
        weight = float(data['weight'])
        reps = int(data['reps'])
        return jsonify(one_rep_max(weight, reps)), 200
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400


@calculators_bp.route('/plates', methods=['POST'])
@limiter.limit("60 per hour")
def plates_route():
    data = _json_body()
    if not data or 'target_weight' not in data:
        return jsonify({"error": "Missing 'target_weight' in request body"}), 400
    try:
        target = float(data['target_weight'])
        bar_weight = float(data.get('bar_weight', BAR_WEIGHT_LBS))
    except (TypeError, ValueError):
        return jsonify({"error": "'target_weight' and 'bar_weight' must be numeric."}), 400

    result = plate_breakdown(target, bar_weight)
    if result is None:
        return jsonify({"error": f"'target_weight' must be at least the bar weight ({bar_weight:g})."}), 400
    return jsonify(result), 200


@calculators_bp.route('/volume', methods=['POST'])
@limiter.limit("60 per hour")
def volume_route():
    data = _json_body()
    sets = data.get('sets') if data else None
    if not isinstance(sets, list):
        return jsonify({"error": "'sets' must be a list of {weight, reps} entries."}), 400
    result = volume_summary([s for s in sets if isinstance(s, dict)])
    if result is None:
        return jsonify({"error": "No complete sets provided."}), 400
    return jsonify(result), 200


@calculators_bp.route('/progression', methods=['POST'])
@limiter.limit("60 per hour")
def progression_route():
    data = _json_body()
    required = ('weight', 'target_reps', 'reps_completed')
    if not data or any(key not in data for key in required):
        return jsonify({"error": "Missing 'weight', 'target_reps' or 'reps_completed' in request body"}), 400
    try:
        result = overload_check(float(data['weight']), int(data['target_reps']), int(data['reps_completed']))
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result), 200


@calculators_bp.route('/convert', methods=['POST'])
@limiter.limit("60 per hour")
def convert_route():
    data = _json_body()
    if not data or 'weight' not in data or 'from_unit' not in data or 'to_unit' not in data:
        return jsonify({"error": "Missing 'weight', 'from_unit' or 'to_unit' in request body"}), 400
    try:
        converted = convert_weight(float(data['weight']), data['from_unit'], data['to_unit'])
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"weight": converted, "unit": data['to_unit']}), 200
