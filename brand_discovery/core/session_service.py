"""
Session Service - Command handler for the discovery session lifecycle

Responsibilities:
- Create sessions and request the opening greeting
- Rehydrate state and transcript from storage for every request
- Run one orchestrator turn and persist its deltas
- Record rapid-fire answers and value amendments
- Finalize sessions into a shareable deliverable

Design principles:
- Ephemeral per request (no session state held between commands)
- Commands in, result objects out; lifecycle violations become
  IllegalCommand, never exceptions
- Deliverable slug assigned once per session and reused on re-finalize
- Collaborators injected (store, model client, system prompt, config)
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from brand_discovery.commands import (
    AmendValue,
    FinalizeSession,
    RecordRapidFire,
    StartSession,
    SubmitMessage,
)
from brand_discovery.contracts import ROLE_ASSISTANT, ROLE_USER, ConversationTurn
from brand_discovery.core.deliverable import build_deliverable_content, render_markdown
from brand_discovery.core.orchestrator import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ConversationOrchestrator,
    OrchestratorResult,
)
from brand_discovery.core.phase_machine import phase_progress
from brand_discovery.core.response_parser import ResponseParser
from brand_discovery.core.session_state import (
    INITIAL_STATE,
    SessionState,
    amend_identified_value,
    get_unexplored_values,
    record_rapid_fire_response,
)
from brand_discovery.persistence import SessionNotFoundError
from brand_discovery.results import (
    CODE_INVALID_INPUT,
    CODE_SESSION_NOT_FOUND,
    FinalReport,
    IllegalCommand,
    RapidFireRecorded,
    TurnResult,
    ValueAmended,
)
from brand_discovery.utils.exercise_config import ExerciseConfig
from brand_discovery.utils.helpers import (
    generate_session_id,
    generate_share_slug,
    parse_iso,
    utc_now_iso,
)
from brand_discovery.utils.session_phases import SessionPhase

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"

DEFAULT_BASE_URL = "http://localhost:5000"
MAX_SLUG_ATTEMPTS = 10

# response_data flag on stored apology replies
FALLBACK_MARKER = "fallback"


class SessionService:
    """
    Handles session commands against a SessionStore.

    Functional core design:
    - Every command reloads what it needs from the store
    - One orchestrator per model round-trip, discarded afterwards
    """

    def __init__(
        self,
        store,
        model_client,
        system_prompt: str,
        exercise_config: Optional[ExerciseConfig] = None,
        base_url: str = DEFAULT_BASE_URL,
        parser: Optional[ResponseParser] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE
    ):
        """
        Initialize Session Service

        Args:
            store: SessionStore (or compatible) instance
            model_client: Object with callable generate() and is_loaded()
            system_prompt: Persona instructions
            exercise_config: ExerciseConfig (default: packaged config)
            base_url: Public base URL for share links
            parser: ResponseParser instance (stateless, safe to cache)
            max_tokens: Generation budget per model call
            temperature: Sampling temperature per model call

        Raises:
            TypeError: If store is missing required methods
        """
        self._validate_store(store)

        self.store = store
        self.model = model_client
        self.system_prompt = system_prompt
        self.config = exercise_config or ExerciseConfig()
        self.base_url = base_url.rstrip('/')
        self.parser = parser or ResponseParser()
        self.max_tokens = max_tokens
        self.temperature = temperature

        logger.info(f"Session service initialized (base_url={self.base_url})")

    def _validate_store(self, store):
        required = (
            'create_session', 'load_session', 'update_session', 'session_exists',
            'load_messages', 'append_message', 'append_rapid_fire',
            'load_values', 'save_values', 'load_deliverable', 'save_deliverable',
            'slug_exists', 'find_deliverable_by_slug',
        )
        for name in required:
            if not callable(getattr(store, name, None)):
                raise TypeError(f"store must have callable {name}() method")

    # ========================
    # Command dispatch
    # ========================

    def handle(self, command):
        """
        Execute a command.

        Args:
            command: StartSession | SubmitMessage | RecordRapidFire |
                AmendValue | FinalizeSession

        Returns:
            TurnResult | RapidFireRecorded | ValueAmended | FinalReport | IllegalCommand

        Raises:
            TypeError: If command is not a known command type
        """
        if isinstance(command, StartSession):
            return self._start(command)
        if isinstance(command, SubmitMessage):
            return self._submit(command)
        if isinstance(command, RecordRapidFire):
            return self._record_rapid_fire(command)
        if isinstance(command, AmendValue):
            return self._amend_value(command)
        if isinstance(command, FinalizeSession):
            return self._finalize(command)

        raise TypeError(f"Unknown command type: {type(command).__name__}")

    # ========================
    # Command handlers
    # ========================

    def _start(self, command: StartSession) -> TurnResult:
        session_id = generate_session_id()
        while self.store.session_exists(session_id):
            session_id = generate_session_id()

        record = self.store.create_session(session_id, {
            'company_name': command.company_name,
            'user_name': command.user_name,
            'status': STATUS_ACTIVE,
            'current_phase': INITIAL_STATE.phase.value,
            'started_at': utc_now_iso(),
            'completed_at': None,
            'duration_seconds': None,
            'state': INITIAL_STATE.to_dict(),
        })

        orchestrator = self._build_orchestrator(record, INITIAL_STATE, [])
        result = orchestrator.start_session()

        self._store_assistant_message(session_id, result)
        self._store_state(session_id, result.new_state)

        return self._turn_result(session_id, result)

    def _submit(self, command: SubmitMessage):
        command_type = type(command).__name__

        if not isinstance(command.user_message, str) or not command.user_message.strip():
            return IllegalCommand(
                reason="user_message must be a non-empty string",
                command_type=command_type,
                code=CODE_INVALID_INPUT
            )

        loaded = self._load_active(command.session_id, command_type)
        if isinstance(loaded, IllegalCommand):
            return loaded
        record, state = loaded

        if state.phase == SessionPhase.COMPLETE:
            return IllegalCommand(
                reason="Session is complete; finalize it to generate the deliverable",
                command_type=command_type
            )

        history = [
            ConversationTurn(
                role=m['role'],
                content=m['content'],
                sequence_number=m['sequence_number']
            )
            for m in self.store.load_messages(command.session_id)
            if not (m.get('response_data') or {}).get(FALLBACK_MARKER)
        ]

        orchestrator = self._build_orchestrator(record, state, history)
        result = orchestrator.process_message(command.user_message)

        if result.error:
            logger.error(f"Orchestrator error for {command.session_id}: {result.error}")

        self.store.append_message(
            command.session_id, ROLE_USER, command.user_message, created_at=utc_now_iso()
        )
        self._store_assistant_message(command.session_id, result)
        self._store_state(command.session_id, result.new_state)

        return self._turn_result(command.session_id, result)

    def _record_rapid_fire(self, command: RecordRapidFire):
        command_type = type(command).__name__

        loaded = self._load_active(command.session_id, command_type)
        if isinstance(loaded, IllegalCommand):
            return loaded
        _, state = loaded

        try:
            new_state = record_rapid_fire_response(state, command.word, command.response)
        except ValueError as e:
            return IllegalCommand(reason=str(e), command_type=command_type, code=CODE_INVALID_INPUT)

        answer = new_state.rapid_fire_responses[-1]
        self.store.append_rapid_fire(command.session_id, answer.word, answer.response)
        self._store_state(command.session_id, new_state)

        logger.info(f"Rapid-fire answer for {command.session_id}: {answer.word} -> {answer.response}")

        return RapidFireRecorded(
            session_id=command.session_id,
            word=answer.word,
            response=answer.response,
            rapid_fire_index=new_state.rapid_fire_index
        )

    def _amend_value(self, command: AmendValue):
        command_type = type(command).__name__

        loaded = self._load_active(command.session_id, command_type)
        if isinstance(loaded, IllegalCommand):
            return loaded
        _, state = loaded

        try:
            new_state = amend_identified_value(
                state,
                command.value_name,
                definition=command.definition,
                quote=command.quote,
                in_practice=command.in_practice,
                anti_pattern=command.anti_pattern
            )
        except ValueError as e:
            return IllegalCommand(reason=str(e), command_type=command_type, code=CODE_INVALID_INPUT)

        self._store_state(command.session_id, new_state)
        stored = next(
            v for v in self.store.load_values(command.session_id)
            if v['value_name'] == command.value_name
        )

        return ValueAmended(session_id=command.session_id, value=stored)

    def _finalize(self, command: FinalizeSession):
        command_type = type(command).__name__

        try:
            record = self.store.load_session(command.session_id)
        except SessionNotFoundError as e:
            return IllegalCommand(reason=str(e), command_type=command_type, code=CODE_SESSION_NOT_FOUND)

        state = SessionState.from_dict(record['state'])
        now = utc_now_iso()

        values = self.store.load_values(command.session_id)
        content = build_deliverable_content(record, values, state.insights, generated_at=now)

        existing = self.store.load_deliverable(command.session_id)
        if existing is not None:
            share_slug = existing['share_slug']
            created_at = existing.get('created_at', now)
            logger.info(f"Updating deliverable in place for {command.session_id}: {share_slug}")
        else:
            share_slug = self._new_share_slug()
            created_at = now

        self.store.save_deliverable(command.session_id, {
            'share_slug': share_slug,
            'content': content,
            'created_at': created_at,
            'updated_at': now,
        })

        duration = parse_iso(now) - parse_iso(record['started_at'])
        self.store.update_session(
            command.session_id,
            status=STATUS_COMPLETED,
            current_phase=SessionPhase.COMPLETE.value,
            completed_at=now,
            duration_seconds=int(duration.total_seconds()),
            state=replace(state, phase=SessionPhase.COMPLETE).to_dict()
        )

        self.store.save_values(
            command.session_id,
            [dict(v, is_final=True) for v in values]
        )

        return FinalReport(
            session_id=command.session_id,
            share_slug=share_slug,
            share_url=self.share_url(share_slug),
            content=content
        )

    # ========================
    # Queries
    # ========================

    def get_progress(self, session_id: str) -> Dict[str, Any]:
        """
        Progress-tracker projection of a session.

        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        record = self.store.load_session(session_id)
        state = SessionState.from_dict(record['state'])

        return {
            'session_id': session_id,
            'status': record['status'],
            'current_phase': state.phase.value,
            'phases': phase_progress(state, self.config.phase_labels()),
            'rapid_fire_count': len(state.rapid_fire_responses),
            'identified_values': state.value_names(),
            'unexplored_values': get_unexplored_values(state),
        }

    def get_deliverable(self, share_slug: str) -> Optional[Dict[str, Any]]:
        return self.store.find_deliverable_by_slug(share_slug)

    def get_deliverable_markdown(self, share_slug: str) -> Optional[str]:
        deliverable = self.get_deliverable(share_slug)
        if deliverable is None:
            return None
        return render_markdown(deliverable['content'])

    def share_url(self, share_slug: str) -> str:
        return f"{self.base_url}/deliverable/{share_slug}"

    # ========================
    # Internals
    # ========================

    def _build_orchestrator(self, record, state, history) -> ConversationOrchestrator:
        return ConversationOrchestrator(
            session_id=record['id'],
            model_client=self.model,
            system_prompt=self.system_prompt,
            parser=self.parser,
            initial_state=state,
            conversation_history=history,
            company_name=record.get('company_name'),
            user_name=record.get('user_name'),
            max_tokens=self.max_tokens,
            temperature=self.temperature
        )

    def _load_active(self, session_id: str, command_type: str):
        """Load an active session, or the IllegalCommand explaining why not."""
        try:
            record = self.store.load_session(session_id)
        except SessionNotFoundError as e:
            return IllegalCommand(reason=str(e), command_type=command_type, code=CODE_SESSION_NOT_FOUND)

        if record.get('status') != STATUS_ACTIVE:
            return IllegalCommand(reason="Session is not active", command_type=command_type)

        return record, SessionState.from_dict(record['state'])

    def _store_assistant_message(self, session_id: str, result: OrchestratorResult):
        """Store the reply; fallback apologies are marked so they never reach the model."""
        response_data = result.response.to_dict()
        if result.error:
            response_data[FALLBACK_MARKER] = True

        self.store.append_message(
            session_id,
            ROLE_ASSISTANT,
            result.response.spoken_response,
            response_data=response_data,
            created_at=utc_now_iso()
        )

    def _store_state(self, session_id: str, state: SessionState):
        """Persist the state snapshot and sync the identified-values records."""
        values = self.store.load_values(session_id)
        by_name = {v['value_name']: v for v in values}

        for value in state.identified_values:
            stored = by_name.get(value.name)
            if stored is None:
                stored = {
                    'value_name': value.name,
                    'display_order': len(values) + 1,
                    'is_final': False,
                }
                values.append(stored)
                by_name[value.name] = stored
            stored['personalized_definition'] = value.definition
            stored['user_quotes'] = list(value.quotes)
            stored['in_practice'] = value.in_practice
            stored['anti_pattern'] = value.anti_pattern

        self.store.save_values(session_id, values)
        self.store.update_session(
            session_id,
            current_phase=state.phase.value,
            state=state.to_dict()
        )

    def _new_share_slug(self) -> str:
        for _ in range(MAX_SLUG_ATTEMPTS):
            slug = generate_share_slug()
            if not self.store.slug_exists(slug):
                return slug
        raise RuntimeError(f"Could not allocate a unique share slug in {MAX_SLUG_ATTEMPTS} attempts")

    def _turn_result(self, session_id: str, result: OrchestratorResult) -> TurnResult:
        return TurnResult(
            session_id=session_id,
            response=result.response,
            current_phase=result.new_state.phase,
            error=result.error,
            debug=result.debug,
            session_complete=result.new_state.phase == SessionPhase.COMPLETE
        )
