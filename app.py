"""
Flask Web Application for Brand Values Discovery

JSON API over SessionService. The browser client (voice, avatar, cards)
talks to these routes only.
"""

from flask import Flask, Response, request, jsonify
import logging

from brand_discovery.commands import (
    AmendValue,
    FinalizeSession,
    RecordRapidFire,
    StartSession,
    SubmitMessage,
)
from brand_discovery.core.session_service import SessionService
from brand_discovery.persistence import SessionNotFoundError, SessionStore
from brand_discovery.results import CODE_SESSION_NOT_FOUND, IllegalCommand
from brand_discovery.utils.exercise_config import ExerciseConfig
from brand_discovery.utils.model_client_stub import StubModelClient
from brand_discovery.utils.system_prompt import build_system_prompt

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config.update(
    MODEL_NAME="mistralai/Mistral-7B-Instruct-v0.2",
    LOAD_IN_4BIT=True,
    USE_STUB_MODEL=False,
    STORE_DIR="outputs/sessions",
    BASE_URL="http://localhost:5000",
    MAX_TOKENS=1024,
    TEMPERATURE=0.7,
)
# FLASK_MODEL_NAME, FLASK_STORE_DIR, FLASK_USE_STUB_MODEL=true, ...
app.config.from_prefixed_env()

# Built once at startup (model load is expensive)
service = None


def init_service(session_service):
    """Install a pre-built SessionService (tests, embedding)."""
    global service
    service = session_service


def initialize_service():
    """Build model client, store and SessionService from app.config (called once)"""
    global service

    if service is not None:
        return service

    exercise_config = ExerciseConfig()

    if app.config['USE_STUB_MODEL']:
        logger.info("Using stub model client")
        model_client = StubModelClient()
    else:
        # torch/transformers are only imported when a real model is requested
        from brand_discovery.utils.hf_client import HuggingFaceClient

        logger.info("Initializing HuggingFace model (this takes ~30 seconds)...")
        model_client = HuggingFaceClient(
            model_name=app.config['MODEL_NAME'],
            load_in_4bit=app.config['LOAD_IN_4BIT']
        )
        logger.info("Model loaded successfully")

    service = SessionService(
        store=SessionStore(app.config['STORE_DIR']),
        model_client=model_client,
        system_prompt=build_system_prompt(exercise_config.value_words),
        exercise_config=exercise_config,
        base_url=app.config['BASE_URL'],
        max_tokens=app.config['MAX_TOKENS'],
        temperature=app.config['TEMPERATURE']
    )
    return service


def error_response(message, status, code=None):
    body = {'success': False, 'error': message}
    if code:
        body['code'] = code
    return jsonify(body), status


def illegal_response(result: IllegalCommand):
    status = 404 if result.code == CODE_SESSION_NOT_FOUND else 400
    return error_response(result.reason, status, result.code)


def serialize_agent_response(response):
    """AgentResponse as the snake_case API shape."""
    updates = response.state_updates
    actions = response.ui_actions
    return {
        'spoken_response': response.spoken_response,
        'internal_notes': response.internal_notes,
        'state_updates': {
            'phase': updates.phase.value,
            'new_insights': list(updates.new_insights),
            'identified_values': list(updates.identified_values),
            'values_to_explore': list(updates.values_to_explore),
        },
        'ui_actions': {
            'show_value_cards': (
                list(actions.show_value_cards) if actions.show_value_cards is not None else None
            ),
            'highlight_value': actions.highlight_value,
            'update_progress': actions.update_progress,
            'show_summary': actions.show_summary,
        },
    }


def turn_payload(result):
    return {
        'success': True,
        'session_id': result.session_id,
        'response': serialize_agent_response(result.response),
        'session': {
            'current_phase': result.current_phase.value,
            'complete': result.session_complete,
        },
    }


@app.route('/api/session/start', methods=['POST'])
def start_session():
    """Create session and return the opening greeting"""
    try:
        data = request.get_json(silent=True) or {}
        result = initialize_service().handle(StartSession(
            company_name=data.get('company_name'),
            user_name=data.get('user_name')
        ))

        if isinstance(result, IllegalCommand):
            return illegal_response(result)

        return jsonify(turn_payload(result))

    except Exception as e:
        logger.error(f"Error starting session: {e}")
        return error_response('Internal server error', 500)


@app.route('/api/session/message', methods=['POST'])
def submit_message():
    """Process a founder message and return the persona's reply"""
    try:
        data = request.get_json(silent=True) or {}
        session_id = data.get('session_id')
        user_message = data.get('user_message')

        if not session_id or not user_message:
            return error_response('Missing session_id or user_message', 400)

        result = initialize_service().handle(SubmitMessage(
            session_id=session_id,
            user_message=user_message
        ))

        if isinstance(result, IllegalCommand):
            return illegal_response(result)

        return jsonify(turn_payload(result))

    except Exception as e:
        logger.error(f"Error in session message: {e}")
        return error_response('Internal server error', 500)


@app.route('/api/session/rapid-fire', methods=['POST'])
def record_rapid_fire():
    """Record a yes/no/maybe answer on a value card"""
    try:
        data = request.get_json(silent=True) or {}
        session_id = data.get('session_id')
        word = data.get('word')
        answer = data.get('response')

        if not session_id or not word or not answer:
            return error_response('Missing session_id, word or response', 400)

        result = initialize_service().handle(RecordRapidFire(
            session_id=session_id,
            word=word,
            response=answer
        ))

        if isinstance(result, IllegalCommand):
            return illegal_response(result)

        return jsonify({
            'success': True,
            'word': result.word,
            'response': result.response,
            'rapid_fire_index': result.rapid_fire_index
        })

    except Exception as e:
        logger.error(f"Error recording rapid-fire answer: {e}")
        return error_response('Internal server error', 500)


@app.route('/api/session/value', methods=['POST'])
def amend_value():
    """Set a value's definition, in-practice or anti-pattern text, and/or append a quote"""
    try:
        data = request.get_json(silent=True) or {}
        session_id = data.get('session_id')
        value_name = data.get('value_name')

        if not session_id or not value_name:
            return error_response('Missing session_id or value_name', 400)

        result = initialize_service().handle(AmendValue(
            session_id=session_id,
            value_name=value_name,
            definition=data.get('definition'),
            quote=data.get('quote'),
            in_practice=data.get('in_practice'),
            anti_pattern=data.get('anti_pattern')
        ))

        if isinstance(result, IllegalCommand):
            return illegal_response(result)

        return jsonify({'success': True, 'value': result.value})

    except Exception as e:
        logger.error(f"Error amending value: {e}")
        return error_response('Internal server error', 500)


@app.route('/api/session/complete', methods=['POST'])
def complete_session():
    """Finalize session and generate the deliverable"""
    try:
        data = request.get_json(silent=True) or {}
        session_id = data.get('session_id')

        if not session_id:
            return error_response('Missing session_id', 400)

        result = initialize_service().handle(FinalizeSession(session_id=session_id))

        if isinstance(result, IllegalCommand):
            return illegal_response(result)

        return jsonify({
            'success': True,
            'deliverable': {
                'share_slug': result.share_slug,
                'content': result.content
            },
            'share_url': result.share_url
        })

    except Exception as e:
        logger.error(f"Error completing session: {e}")
        return error_response('Internal server error', 500)


@app.route('/api/session/<session_id>/progress')
def session_progress(session_id):
    """Progress-tracker view of a session"""
    try:
        progress = initialize_service().get_progress(session_id)
        return jsonify(dict(progress, success=True))

    except SessionNotFoundError as e:
        return error_response(str(e), 404, CODE_SESSION_NOT_FOUND)
    except Exception as e:
        logger.error(f"Error reading progress: {e}")
        return error_response('Internal server error', 500)


@app.route('/api/deliverable/<share_slug>')
def get_deliverable(share_slug):
    """Public deliverable lookup by share slug"""
    try:
        deliverable = initialize_service().get_deliverable(share_slug)

        if deliverable is None:
            return error_response('Deliverable not found', 404)

        return jsonify({'success': True, 'deliverable': deliverable})

    except Exception as e:
        logger.error(f"Error loading deliverable: {e}")
        return error_response('Internal server error', 500)


@app.route('/api/deliverable/<share_slug>/download')
def download_deliverable(share_slug):
    """Download deliverable as Markdown"""
    try:
        markdown = initialize_service().get_deliverable_markdown(share_slug)

        if markdown is None:
            return error_response('Deliverable not found', 404)

        return Response(
            markdown,
            mimetype='text/markdown',
            headers={'Content-Disposition': f'attachment; filename=core-values-{share_slug}.md'}
        )

    except Exception as e:
        logger.error(f"Error downloading deliverable: {e}")
        return error_response('Internal server error', 500)


if __name__ == '__main__':
    # Load model before starting server
    initialize_service()

    print("\n" + "=" * 60)
    print("BRAND VALUES DISCOVERY - API SERVER")
    print("=" * 60)
    print("\nServer starting...")
    print(f"Share links will point at: {app.config['BASE_URL']}")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    app.run(debug=False, host='0.0.0.0', port=5000)
