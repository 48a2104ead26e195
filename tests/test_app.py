"""
Test Flask API - end-to-end conversation over HTTP

Run with: pytest tests/test_app.py -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from app import create_app
from symptom_triage.core.catalog import TriageCatalog
from symptom_triage.core.dialogue_manager import DialogueManager
from symptom_triage.persistence import ConversationPersistence


@pytest.fixture
def client(tmp_path):
    app = create_app(
        DialogueManager.from_catalog(TriageCatalog.load()),
        ConversationPersistence(str(tmp_path)),
    )
    app.config['TESTING'] = True
    return app.test_client()


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json() == {'status': 'ok'}


def test_categories(client):
    data = client.get('/api/triage/categories').get_json()

    assert data['success'] is True
    assert [c['id'] for c in data['categories']][:2] == ['fever_infections', 'respiratory']
    assert "(3) Digestive issues" in data['menu']


def test_start_with_menu(client):
    data = client.post('/api/triage/start', json={'message': 'hello'}).get_json()

    assert data['success'] is True
    assert data['complete'] is False
    assert "What kind of symptoms are you experiencing?" in data['reply']
    assert data['state']['awaiting_category'] is True


def test_full_conversation_with_state(client):
    data = client.post('/api/triage/start', json={'message': 'fever'}).get_json()
    for reply in ('1', '2', '1'):
        response = client.post('/api/triage/reply', json={'message': reply, 'state': data['state']})
        assert response.status_code == 200
        data = response.get_json()

    assert data['complete'] is True
    assert data['assessment']['triage']['possible_conditions'][0]['condition_id'] == 'malaria'
    assert "Urgency Level: EMERGENCY" in data['reply']


def test_reply_by_conversation_id(client):
    start = client.post('/api/triage/start', json={'message': '2'}).get_json()

    response = client.post('/api/triage/reply', json={
        'message': '1', 'conversation_id': start['conversation_id'],
    })

    assert response.status_code == 200
    data = response.get_json()
    assert data['turn_metadata']['turn_count'] == 2
    assert data['turn_metadata']['answered_count'] == 1


def test_reply_integer_message(client):
    start = client.post('/api/triage/start', json={'message': '2'}).get_json()

    response = client.post('/api/triage/reply', json={'message': 1, 'state': start['state']})

    assert response.status_code == 200


def test_double_submit_conflict(client):
    start = client.post('/api/triage/start', json={'message': '2'}).get_json()
    client.post('/api/triage/reply', json={'message': '1', 'state': start['state']})

    response = client.post('/api/triage/reply', json={'message': '1', 'state': start['state']})

    assert response.status_code == 409
    assert response.get_json()['success'] is False


def test_reply_missing_message(client):
    start = client.post('/api/triage/start', json={'message': '2'}).get_json()

    response = client.post('/api/triage/reply', json={'state': start['state']})

    assert response.status_code == 400


def test_reply_without_state_or_id(client):
    response = client.post('/api/triage/reply', json={'message': '1'})

    assert response.status_code == 400


def test_reply_unknown_conversation(client):
    response = client.post('/api/triage/reply', json={'message': '1', 'conversation_id': 'nobody'})

    assert response.status_code == 404


def test_reply_after_completion_conflict(client):
    start = client.post('/api/triage/start', json={'message': '2'}).get_json()
    ended = client.post('/api/triage/reply', json={'message': 'exit', 'state': start['state']}).get_json()

    response = client.post('/api/triage/reply', json={'message': '1', 'state': ended['state']})

    assert response.status_code == 409


def test_finalize(client):
    start = client.post('/api/triage/start', json={'message': 'fever'}).get_json()
    client.post('/api/triage/reply', json={'message': '1', 'state': start['state']})

    response = client.post('/api/triage/finalize', json={'conversation_id': start['conversation_id']})

    assert response.status_code == 200
    data = response.get_json()
    assert data['answered_count'] == 1
    assert "General Medical Evaluation" in data['assessment_text']


def test_finalize_without_answers(client):
    start = client.post('/api/triage/start', json={'message': 'fever'}).get_json()

    response = client.post('/api/triage/finalize', json={'state': start['state']})

    assert response.status_code == 409


def test_score_markers(client):
    response = client.post('/api/triage/score', json={
        'markers': {'fever': ['present'], 'headache': ['present']},
    })

    assert response.status_code == 200
    triage = response.get_json()['assessment']['triage']
    assert triage['urgency_level'] == 'urgent'
    assert triage['possible_conditions'][0]['confidence'] == 60


def test_score_invalid_markers(client):
    response = client.post('/api/triage/score', json={'markers': {'fever': ['maybe']}})

    assert response.status_code == 400


def test_non_object_body(client):
    response = client.post('/api/triage/start', json=["1"])

    assert response.status_code == 400


@pytest.mark.parametrize("markers", [{'fever': 5}, {'fever': [{}]}, ['fever']])
def test_score_wrongly_typed_markers(client, markers):
    response = client.post('/api/triage/score', json={'markers': markers})

    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_score_includes_treatment_for_top_condition(client):
    response = client.post('/api/triage/score', json={
        'markers': {
            'fever': ['present'], 'chills': ['present'],
            'dehydration': ['present'],
        },
    })

    treatment = response.get_json()['assessment']['triage']['treatment']
    assert treatment['condition_id'] == 'malaria'
    assert treatment['plans']['uncomplicated']['first_line'] == 'Artemether-Lumefantrine (AL)'
    assert treatment['precautions'] == ['Maintain hydration with ORS']


@pytest.mark.parametrize("pending", [
    'fever_pattern',
    ['fever_pattern'],
    {'key': ['fever_pattern'], 'source': 'category'},
])
def test_reply_with_malformed_pending_question(client, pending):
    start = client.post('/api/triage/start', json={'message': 'fever'}).get_json()
    state = dict(start['state'], pending_question=pending)

    response = client.post('/api/triage/reply', json={'message': '1', 'state': state})

    assert response.status_code == 400


def test_reply_with_malformed_markers(client):
    start = client.post('/api/triage/start', json={'message': 'fever'}).get_json()
    state = dict(start['state'], markers={'fever': 5})

    response = client.post('/api/triage/reply', json={'message': '1', 'state': state})

    assert response.status_code == 400
