import pytest

from coach.calculators import convert_weight, one_rep_max, overload_check, plate_breakdown, volume_summary

# --- One-rep max ---

def test_one_rep_max_epley():
    result = one_rep_max(100, 10)
    # 100 * (1 + 10/30) = 133.33
    assert result['one_rep_max'] == 133
    percentages = {row['percent']: row['weight'] for row in result['percentages']}
    assert list(percentages) == [100, 95, 90, 85, 80, 75, 70, 65, 60]
    assert percentages[100] == 133
    assert percentages[90] == 120  # 119.7
    assert percentages[60] == 80   # 79.8

def test_one_rep_max_single_rep():
    assert one_rep_max(200, 1)['one_rep_max'] == 207  # 206.67

@pytest.mark.parametrize("weight, reps", [(0, 5), (-10, 5), (100, 0)])
def test_one_rep_max_rejects_invalid_input(weight, reps):
    with pytest.raises(ValueError):
        one_rep_max(weight, reps)

# --- Plates ---

def test_plate_breakdown_exact_load():
    result = plate_breakdown(225)
    assert result['plates_per_side'] == [{'weight': 45, 'count': 2}]
    assert result['achievable_weight'] == 225
    assert result['bar_weight'] == 45

def test_plate_breakdown_mixed_plates():
    result = plate_breakdown(100)
    # 27.5 per side
    assert result['plates_per_side'] == [{'weight': 25, 'count': 1}, {'weight': 2.5, 'count': 1}]
    assert result['achievable_weight'] == 100

def test_plate_breakdown_reports_shortfall():
    result = plate_breakdown(47)
    assert result['plates_per_side'] == []
    assert result['achievable_weight'] == 45

def test_plate_breakdown_custom_bar():
    result = plate_breakdown(55, bar_weight=35)
    assert result['plates_per_side'] == [{'weight': 10, 'count': 1}]

def test_plate_breakdown_below_bar():
    assert plate_breakdown(40) is None

# --- Volume ---

def test_volume_summary_skips_incomplete_sets():
    result = volume_summary([
        {'weight': 100, 'reps': 10},
        {'weight': '', 'reps': 5},
        {'weight': 120, 'reps': 8},
        {'weight': 80},
    ])
    assert result == {'total_volume': 1960, 'total_sets': 2, 'total_reps': 18, 'avg_weight': 110}

def test_volume_summary_skips_non_numeric_entries():
    result = volume_summary([
        {'weight': 100, 'reps': 10},
        {'weight': 'heavy', 'reps': 5},
        {'weight': 90, 'reps': 'lots'},
        {'weight': 'NaN', 'reps': 5},
        {'weight': '120', 'reps': '8'},
    ])
    assert result == {'total_volume': 1960, 'total_sets': 2, 'total_reps': 18, 'avg_weight': 110}

def test_volume_summary_nothing_complete():
    assert volume_summary([{'weight': 0, 'reps': 10}]) is None
    assert volume_summary([]) is None

# --- Overload check ---

def test_overload_check_increase():
    result = overload_check(200, 8, 9)
    assert result['status'] == 'increase'
    assert result['new_weight'] == 215
    assert result['percent_change'] == 7.5

def test_overload_check_maintain_within_two_reps():
    result = overload_check(100, 8, 6)
    assert result['status'] == 'maintain'
    assert result['new_weight'] == 100

def test_overload_check_decrease():
    result = overload_check(100, 8, 5)
    assert result['status'] == 'decrease'
    assert result['new_weight'] == 95

def test_overload_check_decrease_never_negative():
    assert overload_check(3, 8, 1)['new_weight'] == 0

def test_overload_check_rejects_negative_reps():
    with pytest.raises(ValueError):
        overload_check(100, 8, -1)

# --- Conversion ---

def test_convert_lbs_to_kg():
    assert convert_weight(100, 'lbs', 'kg') == 45

def test_convert_kg_to_lbs_rounds_half_up():
    assert convert_weight(100, 'kg', 'lbs') == 221  # 220.5

def test_convert_same_unit_is_identity():
    assert convert_weight(62.5, 'kg', 'kg') == 62.5

def test_convert_unknown_unit():
    with pytest.raises(ValueError, match="Unknown unit 'stone'"):
        convert_weight(10, 'stone', 'kg')
