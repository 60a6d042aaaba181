import pytest
import uuid
from datetime import datetime, timedelta
from unittest.mock import patch

import psycopg2

from coach.app import app
from coach.models import AppData, AppMetadata

# --- Mock Data ---
MOCK_USER_ID = str(uuid.uuid4())
MOCK_OTHER_USER_ID = str(uuid.uuid4())

BENCH_SET = {'exercise_name': 'Bench Press', 'weight': 100, 'unit': 'lbs', 'reps': 7, 'min_reps': 6, 'goal_reps': 8}


def post_log(client, user_id=MOCK_USER_ID, **overrides):
    body = dict(BENCH_SET, **overrides)
    return client.post(f'/v1/users/{user_id}/logs', json=body)


def store():
    return app.config['APP_DATA_STORE']


# --- Logging sets ---

def test_log_first_set(client):
    response = post_log(client)
    assert response.status_code == 201
    payload = response.get_json()
    assert payload['recommendation']['type'] == 'insufficient_data'
    assert payload['recommendation']['headline'] == 'Great start!'
    assert 'suggested_weight' not in payload['recommendation']
    assert payload['log']['weight'] == 100
    assert payload['log']['recommendation'] == 'insufficient_data'

    data = store().load(MOCK_USER_ID)
    assert data.exercises[0].id == payload['exercise_id']
    assert data.metadata.first_log_date == payload['log']['timestamp']


def test_new_exercise_without_rep_range_asks_for_it(client):
    response = post_log(client, exercise_name='Deadlift', min_reps=None, goal_reps=None)
    assert response.status_code == 409
    payload = response.get_json()
    assert payload['needs_rep_range'] is True
    assert payload['exercise_name'] == 'Deadlift'
    assert store().load(MOCK_USER_ID).exercises == ()


def test_third_set_gets_recommendation(client):
    post_log(client, reps=7)
    post_log(client, reps=7, min_reps=None, goal_reps=None)
    response = post_log(client, exercise_name='bench press', reps=9, min_reps=None, goal_reps=None)
    assert response.status_code == 201
    recommendation = response.get_json()['recommendation']
    assert recommendation['type'] == 'progressive_overload'
    assert recommendation['suggested_weight'] == 105
    assert len(store().load(MOCK_USER_ID).exercises) == 1


def test_log_defaults_to_preferred_unit(client):
    response = post_log(client, unit=None)
    assert response.get_json()['log']['unit'] == 'lbs'


@pytest.mark.parametrize("overrides", [
    {'weight': -5},
    {'reps': 0},
    {'unit': 'stone'},
    {'min_reps': 8, 'goal_reps': 6},
])
def test_log_validation_errors(client, overrides):
    response = post_log(client, **overrides)
    assert response.status_code == 400
    assert 'error' in response.get_json()


def test_log_missing_fields(client):
    response = client.post(f'/v1/users/{MOCK_USER_ID}/logs', json={'exercise_name': 'Bench Press'})
    assert response.status_code == 400
    assert 'weight' in response.get_json()['error']


def test_log_requires_json_body(client):
    response = client.post(f'/v1/users/{MOCK_USER_ID}/logs', data='not json', content_type='text/plain')
    assert response.status_code == 400


def test_log_save_failure_returns_503(client):
    with patch.object(store(), 'save', side_effect=psycopg2.OperationalError("db down")):
        response = post_log(client)
    assert response.status_code == 503


def test_invalid_user_id_is_404(client):
    response = client.post('/v1/users/not-a-uuid/logs', json=BENCH_SET)
    assert response.status_code == 404


def test_users_are_isolated(client):
    post_log(client)
    response = client.get(f'/v1/users/{MOCK_OTHER_USER_ID}/exercises')
    assert response.get_json() == {'exercises': [], 'names': []}


# --- Reading data ---

def test_get_app_data_defaults(client):
    response = client.get(f'/v1/users/{MOCK_USER_ID}/data')
    assert response.status_code == 200
    payload = response.get_json()
    assert payload['exercises'] == []
    assert payload['user_preferences']['default_unit'] == 'lbs'
    assert payload['metadata'] == {'first_log_date': None, 'last_deload_date': None}


def test_list_exercises(client):
    post_log(client)
    response = client.get(f'/v1/users/{MOCK_USER_ID}/exercises')
    assert response.status_code == 200
    payload = response.get_json()
    assert payload['names'] == ['Bench Press']
    summary = payload['exercises'][0]
    assert summary['log_count'] == 1
    assert summary['latest']['label'] == 'Building baseline'


def test_exercise_history_newest_first(client):
    exercise_id = post_log(client, reps=6).get_json()['exercise_id']
    post_log(client, reps=7, min_reps=None, goal_reps=None)
    response = client.get(f'/v1/users/{MOCK_USER_ID}/exercises/{exercise_id}')
    assert response.status_code == 200
    logs = response.get_json()['logs']
    assert [entry['reps'] for entry in logs] == [7, 6]
    assert all(entry['label'] == 'Building baseline' for entry in logs)


def test_exercise_history_not_found(client):
    response = client.get(f'/v1/users/{MOCK_USER_ID}/exercises/{uuid.uuid4()}')
    assert response.status_code == 404


def test_previous_exercises(client):
    post_log(client)
    post_log(client, exercise_name='Squat', weight=60, unit='kg', reps=5, min_reps=5, goal_reps=8)
    response = client.get(f'/v1/users/{MOCK_USER_ID}/previous-exercises')
    assert response.status_code == 200
    names = {entry['name'] for entry in response.get_json()}
    assert names == {'Bench Press', 'Squat'}


# --- Deload ---

def test_deload_status_and_accept(client):
    first_log = (datetime.now().astimezone() - timedelta(weeks=5)).isoformat()
    store().save(MOCK_USER_ID, AppData(metadata=AppMetadata(first_log_date=first_log)))

    status = client.get(f'/v1/users/{MOCK_USER_ID}/deload').get_json()
    assert status['deload_due'] is True

    response = client.post(f'/v1/users/{MOCK_USER_ID}/deload/accept')
    assert response.status_code == 200
    assert response.get_json()['last_deload_date'] is not None

    status = client.get(f'/v1/users/{MOCK_USER_ID}/deload').get_json()
    assert status['deload_due'] is False


def test_deload_not_due_for_new_user(client):
    assert client.get(f'/v1/users/{MOCK_USER_ID}/deload').get_json()['deload_due'] is False


# --- Preferences and import ---

def test_welcome_and_onboarding(client):
    response = client.post(f'/v1/users/{MOCK_USER_ID}/preferences/welcome-seen')
    assert response.get_json()['has_seen_welcome'] is True

    response = client.post(f'/v1/users/{MOCK_USER_ID}/onboarding/complete', json={'user_name': 'Alex'})
    payload = response.get_json()
    assert payload['has_completed_onboarding'] is True
    assert payload['user_name'] == 'Alex'


def test_import_guest_export(client):
    export = {
        'exercises': [{
            'id': 'ex-1', 'name': 'Squat', 'minReps': 5, 'goalReps': 8,
            'logs': [
                {'id': 'l1', 'weight': 60, 'unit': 'kg', 'reps': 6, 'timestamp': '2024-05-13T10:00:00.000Z'},
                {'id': 'l2', 'weight': 60, 'unit': 'kg', 'reps': 7, 'timestamp': '2024-05-14T10:00:00.000Z'},
            ],
        }],
        'userPreferences': {'defaultUnit': 'kg', 'hasSeenWelcome': True, 'hasCompletedOnboarding': True},
        'metadata': {'firstLogDate': '2024-05-13T10:00:00.000Z'},
    }
    response = client.post(f'/v1/users/{MOCK_USER_ID}/import', json=export)
    assert response.status_code == 200
    assert response.get_json() == {'imported_exercises': 1, 'imported_logs': 2}

    data = store().load(MOCK_USER_ID)
    assert data.user_preferences.default_unit.value == 'kg'
    assert data.exercises[0].logs[1].reps == 7


def test_import_rejects_malformed_export(client):
    response = client.post(f'/v1/users/{MOCK_USER_ID}/import', json={'exercises': [{'name': 'no id'}]})
    assert response.status_code == 400


def guest_export(exercise_overrides=None, log_overrides=None, metadata=None):
    log = {'id': 'l1', 'weight': 60, 'unit': 'kg', 'reps': 6, 'timestamp': '2024-05-13T10:00:00.000Z'}
    log.update(log_overrides or {})
    exercise = {'id': 'ex-1', 'name': 'Squat', 'minReps': 5, 'goalReps': 8, 'logs': [log]}
    exercise.update(exercise_overrides or {})
    return {
        'exercises': [exercise],
        'userPreferences': {'defaultUnit': 'kg'},
        'metadata': metadata if metadata is not None else {'firstLogDate': '2024-05-13T10:00:00.000Z'},
    }


@pytest.mark.parametrize("body", [
    guest_export(log_overrides={'timestamp': 'yesterday'}),
    guest_export(exercise_overrides={'minReps': 8, 'goalReps': 6}),
    guest_export(exercise_overrides={'minReps': 0, 'goalReps': 6}),
    guest_export(exercise_overrides={'name': '  '}),
    guest_export(log_overrides={'weight': -50}),
    guest_export(log_overrides={'weight': 'NaN'}),
    guest_export(log_overrides={'reps': 0}),
    guest_export(log_overrides={'unit': 'stone'}),
    guest_export(metadata={'firstLogDate': 'last month'}),
    guest_export(metadata={'lastDeloadDate': 'soon'}),
    guest_export(metadata=[1]),
])
def test_import_rejects_invalid_data(client, body):
    response = client.post(f'/v1/users/{MOCK_USER_ID}/import', json=body)
    assert response.status_code == 400
    assert response.get_json()['error'].startswith("Invalid app data")
    assert store().load(MOCK_USER_ID) == AppData()


def test_import_rejects_duplicate_exercise_names(client):
    body = guest_export()
    body['exercises'].append(dict(body['exercises'][0], id='ex-2', name='squat'))
    response = client.post(f'/v1/users/{MOCK_USER_ID}/import', json=body)
    assert response.status_code == 400


def test_rejected_import_keeps_existing_data_readable(client):
    post_log(client)
    body = guest_export(log_overrides={'timestamp': 'yesterday'})
    assert client.post(f'/v1/users/{MOCK_USER_ID}/import', json=body).status_code == 400

    for path in ('metrics', 'medals', 'stats', 'deload'):
        assert client.get(f'/v1/users/{MOCK_USER_ID}/{path}').status_code == 200
    assert len(store().load(MOCK_USER_ID).exercises[0].logs) == 1


@pytest.mark.parametrize("path", ['import', 'logs', 'onboarding/complete'])
def test_json_body_must_be_an_object(client, path):
    response = client.post(f'/v1/users/{MOCK_USER_ID}/{path}', json=[1])
    expected = 200 if path == 'onboarding/complete' else 400
    assert response.status_code == expected


def test_log_rejects_non_string_exercise_name(client):
    response = post_log(client, exercise_name=5)
    assert response.status_code == 400
    assert 'exercise_name' in response.get_json()['error']


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'
