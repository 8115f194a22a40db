"""
Conversation Orchestrator - One interview session's model round-trips

Responsibilities:
- Build the context block for each turn
- Call the injected model client with the persona system prompt
- Parse the raw output into an AgentResponse
- Fold the response into session state via the reducer
- Absorb every failure into a fixed fallback response

Design principles:
- Never raises to the caller: model, parse and schema failures all
  become the fallback response plus a populated error string
- State only changes on success (fallback leaves phase and values untouched)
- User turn is recorded before the model call, so it survives failures
- Collaborators injected (model client, parser, system prompt)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from brand_discovery.contracts import (
    ROLE_ASSISTANT,
    ROLE_USER,
    AgentResponse,
    ConversationTurn,
    IdentifiedValue,
    StateUpdates,
    UIActions,
)
from brand_discovery.core.prompt_builder import build_context_message
from brand_discovery.core.response_parser import ResponseParser
from brand_discovery.core.session_state import (
    INITIAL_STATE,
    SessionState,
    apply_state_updates,
    record_rapid_fire_response,
)
from brand_discovery.utils.session_phases import SessionPhase

logger = logging.getLogger(__name__)

FALLBACK_SPOKEN_RESPONSE = (
    "I apologize, but I'm having a bit of trouble right now. "
    "Could you repeat what you just said?"
)
FALLBACK_INTERNAL_NOTES = "Error occurred, requesting user to repeat"

DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.7


@dataclass(frozen=True)
class OrchestratorResult:
    """
    Outcome of one orchestrator operation.

    Attributes:
        response: Validated model response, or the fallback response
        new_state: Session state after the turn (unchanged on failure)
        error: Failure description, None on success
        debug: Parse metadata and raw output for the debug panel
    """
    response: AgentResponse
    new_state: SessionState
    error: Optional[str] = None
    debug: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None


def create_fallback_response(phase: SessionPhase) -> AgentResponse:
    """Fixed apology response that keeps the session in its current phase."""
    return AgentResponse(
        spoken_response=FALLBACK_SPOKEN_RESPONSE,
        internal_notes=FALLBACK_INTERNAL_NOTES,
        state_updates=StateUpdates(phase=phase),
        ui_actions=UIActions(),
    )


class ConversationOrchestrator:
    """
    Drives a single session's conversation with the model.

    Holds the session's state and transcript between calls; the service
    layer rebuilds one per request from storage.
    """

    def __init__(
        self,
        session_id: str,
        model_client,
        system_prompt: str,
        parser: Optional[ResponseParser] = None,
        initial_state: Optional[SessionState] = None,
        conversation_history: Optional[List[ConversationTurn]] = None,
        company_name: Optional[str] = None,
        user_name: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE
    ):
        """
        Initialize orchestrator for one session.

        Args:
            session_id: Session identifier
            model_client: Object with callable generate() and is_loaded()
            system_prompt: Persona instructions sent with every call
            parser: ResponseParser instance (default: new ResponseParser)
            initial_state: Rehydrated state (default: INITIAL_STATE)
            conversation_history: Rehydrated transcript, oldest first
            company_name: Founder's company, if known
            user_name: Founder's name, if known
            max_tokens: Generation budget per call
            temperature: Sampling temperature per call

        Raises:
            TypeError: If model_client or parser lacks the required methods
            ValueError: If session_id or system_prompt is empty
        """
        self._validate_modules(model_client, parser)

        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        if not isinstance(system_prompt, str) or not system_prompt.strip():
            raise ValueError("system_prompt must be a non-empty string")

        self.session_id = session_id
        self.model = model_client
        self.system_prompt = system_prompt
        self.parser = parser if parser is not None else ResponseParser()
        self.state = initial_state if initial_state is not None else INITIAL_STATE
        self.history: List[ConversationTurn] = list(conversation_history or [])
        self.company_name = company_name
        self.user_name = user_name
        self.max_tokens = max_tokens
        self.temperature = temperature

        logger.info(
            f"Orchestrator ready for session {session_id} "
            f"(phase={self.state.phase.value}, history={len(self.history)} turns)"
        )

    def _validate_modules(self, model_client, parser):
        """Validate collaborator interfaces"""
        if not (hasattr(model_client, 'generate') and
                callable(getattr(model_client, 'generate', None))):
            raise TypeError("model_client must have callable generate() method")

        if not (hasattr(model_client, 'is_loaded') and
                callable(getattr(model_client, 'is_loaded', None))):
            raise TypeError("model_client must have callable is_loaded() method")

        if parser is not None and not (hasattr(parser, 'parse') and
                                       callable(getattr(parser, 'parse', None))):
            raise TypeError("parser must have callable parse() method")

    # ========================
    # Operations
    # ========================

    def start_session(self) -> OrchestratorResult:
        """
        Request the persona's opening greeting.

        Returns:
            OrchestratorResult (fallback response on any failure)
        """
        try:
            prompt = build_context_message(
                self.state,
                self.history,
                company_name=self.company_name,
                user_name=self.user_name,
                user_message=None
            )
        except Exception as e:
            return self._failure("start_session", e, {})

        return self._run_turn(prompt, operation="start_session")

    def process_message(self, user_message: str) -> OrchestratorResult:
        """
        Process one user message.

        The user turn is appended to the transcript before the context is
        built, so the transcript section already contains it.

        Args:
            user_message: What the founder said

        Returns:
            OrchestratorResult (fallback response on any failure)
        """
        self._append_turn(ROLE_USER, user_message)

        try:
            prompt = build_context_message(
                self.state,
                self.history,
                company_name=self.company_name,
                user_name=self.user_name,
                user_message=user_message
            )
        except Exception as e:
            return self._failure("process_message", e, {})

        return self._run_turn(prompt, operation="process_message")

    def record_rapid_fire_response(self, word: str, response: str) -> SessionState:
        """
        Record a rapid-fire answer captured by the UI (no model call).

        Raises:
            ValueError: If word is empty or response is not yes/no/maybe
        """
        self.state = record_rapid_fire_response(self.state, word, response)
        logger.info(f"Rapid-fire answer recorded: {word} -> {response}")
        return self.state

    # ========================
    # Accessors
    # ========================

    def get_state(self) -> SessionState:
        return self.state

    def get_conversation_history(self) -> List[ConversationTurn]:
        return list(self.history)

    def get_current_phase(self) -> SessionPhase:
        return self.state.phase

    def get_identified_values(self) -> List[IdentifiedValue]:
        return list(self.state.identified_values)

    # ========================
    # Internals
    # ========================

    def _append_turn(self, role: str, content: str):
        self.history.append(
            ConversationTurn(role=role, content=content, sequence_number=len(self.history) + 1)
        )

    def _run_turn(self, prompt: str, operation: str) -> OrchestratorResult:
        debug: Dict[str, Any] = {'operation': operation, 'prompt_chars': len(prompt)}

        try:
            raw_output = self.model.generate(
                prompt,
                system_prompt=self.system_prompt,
                max_tokens=self.max_tokens,
                temperature=self.temperature
            )
        except Exception as e:
            return self._failure(operation, e, debug)

        try:
            parse_result = self.parser.parse(raw_output)
        except Exception as e:
            return self._failure(operation, e, debug)

        debug['parse_metadata'] = parse_result.parse_metadata
        debug['parse_outcome'] = parse_result.outcome

        if not parse_result.ok:
            message = parse_result.parse_metadata.get('error_message') or parse_result.outcome
            logger.error(f"[{self.session_id}] {operation} failed: {message}")
            return OrchestratorResult(
                response=create_fallback_response(self.state.phase),
                new_state=self.state,
                error=message,
                debug=debug
            )

        response = parse_result.response
        self._append_turn(ROLE_ASSISTANT, response.spoken_response)

        previous_phase = self.state.phase
        self.state = apply_state_updates(self.state, response)
        debug['requested_phase'] = response.state_updates.phase.value
        debug['phase_before'] = previous_phase.value
        debug['phase_after'] = self.state.phase.value

        return OrchestratorResult(response=response, new_state=self.state, debug=debug)

    def _failure(self, operation: str, error: Exception, debug: Dict[str, Any]) -> OrchestratorResult:
        message = f"{type(error).__name__}: {error}"
        logger.error(f"[{self.session_id}] {operation} failed: {message}")
        debug['exception_type'] = type(error).__name__
        return OrchestratorResult(
            response=create_fallback_response(self.state.phase),
            new_state=self.state,
            error=message,
            debug=debug
        )


def create_orchestrator(session_id: str, model_client, system_prompt: str, **options) -> ConversationOrchestrator:
    """
    Factory mirroring the constructor with keyword-only options.

    Options:
        parser, initial_state, conversation_history, company_name,
        user_name, max_tokens, temperature
    """
    return ConversationOrchestrator(session_id, model_client, system_prompt, **options)
