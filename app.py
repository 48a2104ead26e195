"""
Flask Web Application for the Symptom Triage Engine

JSON API over the DialogueManager command interface. The conversation
snapshot travels with each response; every turn is also persisted so a
client may send only its conversation_id.
"""

from flask import Flask, request, jsonify
import logging

from symptom_triage import config
from symptom_triage.commands import FinalizeTriage, StartTriage, TriageSnapshot, UserReply
from symptom_triage.core.catalog import get_default_catalog
from symptom_triage.core.conversation_state import ConversationState
from symptom_triage.core.dialogue_manager import DialogueManager
from symptom_triage.persistence import ConversationPersistence
from symptom_triage.results import IllegalCommand
from symptom_triage.utils.prompt_formatter import format_category_menu

logger = logging.getLogger(__name__)


def _error(message, status):
    return jsonify({'success': False, 'error': message}), status


def _json_body():
    """Request body as a dict; raises ValueError for anything else."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def create_app(dialogue_manager=None, persistence=None):
    """
    Build the Flask app.

    Args:
        dialogue_manager: DialogueManager (default: wired around the default catalog)
        persistence: ConversationPersistence (default: config.get_output_dir())
    """
    app = Flask(__name__)

    dm = dialogue_manager or DialogueManager.from_catalog(get_default_catalog())
    store = persistence or ConversationPersistence(str(config.get_output_dir()))

    def turn_response(result):
        snapshot = result.state
        store.save_turn(snapshot.conversation_id, snapshot)
        return jsonify({
            'success': True,
            'conversation_id': snapshot.conversation_id,
            'reply': result.system_output,
            'state': snapshot.to_json(),
            'complete': result.assessment_complete,
            'assessment': result.assessment,
            'turn_metadata': result.turn_metadata,
        })

    def resolve_snapshot(data):
        """Snapshot from the body, or the latest persisted turn."""
        if data.get('state') is not None:
            return TriageSnapshot.from_json(data['state'])

        conversation_id = data.get('conversation_id')
        if not conversation_id:
            raise ValueError("Provide 'state' or 'conversation_id'")

        snapshot = store.load_latest_turn(str(conversation_id))
        if snapshot is None:
            raise LookupError(f"Conversation not found: {conversation_id}")
        return snapshot

    @app.route('/api/triage/start', methods=['POST'])
    def start_triage():
        """Start new conversation"""
        try:
            data = _json_body()
            result = dm.handle(StartTriage(message=str(data.get('message', ''))))
            return turn_response(result)

        except ValueError as e:
            return _error(str(e), 400)
        except Exception as e:
            logger.error(f"Error starting conversation: {e}")
            return _error(str(e), 500)

    @app.route('/api/triage/reply', methods=['POST'])
    def submit_reply():
        """Submit patient reply and get next prompt"""
        try:
            data = _json_body()
            message = data.get('message')
            if not isinstance(message, (str, int)) or isinstance(message, bool):
                return _error("Missing 'message'", 400)

            snapshot = resolve_snapshot(data)
            result = dm.handle(UserReply(user_input=str(message), state=snapshot))

            if isinstance(result, IllegalCommand):
                return _error(result.reason, 409)

            return turn_response(result)

        except LookupError as e:
            return _error(str(e), 404)
        except FileExistsError as e:
            return _error(str(e), 409)
        except ValueError as e:
            return _error(str(e), 400)
        except Exception as e:
            logger.error(f"Error processing reply: {e}")
            import traceback
            traceback.print_exc()
            return _error(str(e), 500)

    @app.route('/api/triage/finalize', methods=['POST'])
    def finalize_triage():
        """Final assessment for a conversation (complete or in progress)"""
        try:
            data = _json_body()
            snapshot = resolve_snapshot(data)
            result = dm.handle(FinalizeTriage(state=snapshot))

            if isinstance(result, IllegalCommand):
                return _error(result.reason, 409)

            return jsonify({
                'success': True,
                'conversation_id': result.conversation_id,
                'assessment_text': result.assessment_text,
                'assessment': result.assessment,
                'answered_count': result.answered_count,
            })

        except LookupError as e:
            return _error(str(e), 404)
        except ValueError as e:
            return _error(str(e), 400)
        except Exception as e:
            logger.error(f"Error finalizing conversation: {e}")
            import traceback
            traceback.print_exc()
            return _error(str(e), 500)

    @app.route('/api/triage/score', methods=['POST'])
    def score_markers():
        """Score a marker map directly (no conversation)"""
        try:
            data = _json_body()
            state = ConversationState.from_json({
                'category': data.get('category'),
                'markers': data.get('markers', {}),
            })
            result = dm.scoring_engine.score(state)
            payload = dm.structured_assessment(
                result, str(data.get('conversation_id') or 'adhoc'), state
            )
            return jsonify({'success': True, 'assessment': payload})

        except ValueError as e:
            return _error(str(e), 400)
        except Exception as e:
            logger.error(f"Error scoring markers: {e}")
            return _error(str(e), 500)

    @app.route('/api/triage/categories', methods=['GET'])
    def list_categories():
        categories = dm.catalog.categories.values()
        return jsonify({
            'success': True,
            'categories': [
                {'id': c.id, 'label': c.label, 'aliases': list(c.aliases)}
                for c in categories
            ],
            'menu': format_category_menu(categories),
        })

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'})

    return app


if __name__ == '__main__':
    config.configure_logging()

    # Catalog loads once at startup
    app = create_app()
    logger.info("Starting Flask app...")
    app.run(debug=False, host='0.0.0.0', port=5000)
