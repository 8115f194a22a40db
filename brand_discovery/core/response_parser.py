"""
Response Parser - Extract a validated AgentResponse from raw model text

Responsibilities:
- Locate the JSON object in free-form model output (layered fallback)
- Normalize common model slips (phase case, missing optional lists)
- Validate the structure strictly against the AgentResponse contract
- Return contract-compliant structure (outcome, response, parse_metadata)

Design principles:
- Model output is untrusted external input, never cast directly
- Ordered extraction chain, first success wins
- Failures are always reported, never coerced into guessed defaults
- Normalization is recorded for auditability
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from brand_discovery.contracts import AgentResponse, StateUpdates, UIActions
from brand_discovery.utils.session_phases import VALID_PHASES, SessionPhase

logger = logging.getLogger(__name__)

# Valid outcome values
OUTCOME_SUCCESS = "success"
OUTCOME_PARSE_ERROR = "parse_error"
OUTCOME_SCHEMA_ERROR = "schema_error"

# Extraction strategy names (recorded in parse_metadata)
STRATEGY_DIRECT = "direct"
STRATEGY_CODE_FENCE = "code_fence"
STRATEGY_BRACE_SPAN = "brace_span"

STATE_UPDATE_LISTS = ('newInsights', 'identifiedValues', 'valuesToExplore')

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class AgentResponseError(Exception):
    """Base class for model output that cannot become an AgentResponse"""

    def __init__(self, message: str, raw_response: str):
        super().__init__(message)
        self.raw_response = raw_response


class ParseError(AgentResponseError):
    """No extraction strategy yielded parseable JSON"""
    pass


class SchemaError(AgentResponseError):
    """JSON parsed but does not match the AgentResponse contract"""
    pass


@dataclass(frozen=True)
class ParseResult:
    """
    Tagged parse outcome.

    Attributes:
        outcome: success | parse_error | schema_error
        response: AgentResponse on success, None otherwise
        parse_metadata: strategy, timestamp, raw output, errors, normalization
    """
    outcome: str
    response: Optional[AgentResponse]
    parse_metadata: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.outcome == OUTCOME_SUCCESS


# ========================
# Extraction strategies
# ========================

def _extract_direct(text: str) -> Any:
    return json.loads(text.strip())


def _extract_code_fence(text: str) -> Any:
    match = CODE_FENCE_PATTERN.search(text)
    if not match:
        return None
    return json.loads(match.group(1).strip())


def _extract_brace_span(text: str) -> Any:
    start = text.find('{')
    end = text.rfind('}')
    if start < 0 or end <= start:
        return None
    return json.loads(text[start:end + 1])


EXTRACTORS: List[Tuple[str, Callable[[str], Any]]] = [
    (STRATEGY_DIRECT, _extract_direct),
    (STRATEGY_CODE_FENCE, _extract_code_fence),
    (STRATEGY_BRACE_SPAN, _extract_brace_span),
]


def extract_json(raw_response: str) -> Tuple[Any, str]:
    """
    Run the extraction chain over raw model text.

    Args:
        raw_response: Raw model output

    Returns:
        tuple: (parsed JSON value, strategy name)

    Raises:
        ParseError: If every strategy fails or yields nothing
    """
    last_error: Optional[Exception] = None

    for strategy, extractor in EXTRACTORS:
        try:
            parsed = extractor(raw_response)
        except (json.JSONDecodeError, RecursionError) as e:
            last_error = e
            logger.debug(f"Extraction strategy '{strategy}' failed: {e}")
            continue

        if parsed is not None:
            return parsed, strategy

    detail = str(last_error) if last_error else "no JSON found"
    raise ParseError(
        f"Failed to parse agent response as JSON: {detail}",
        raw_response
    )


# ========================
# Normalization & validation
# ========================

def normalize_response(obj: Any, normalization_applied: Optional[List[Dict[str, Any]]] = None) -> Any:
    """
    Normalize common model slips in place.

    - stateUpdates.phase upper-cased
    - missing/null stateUpdates lists default to []
    - missing/null uiActions defaults to {}

    Non-dict input is returned unchanged (validation rejects it).
    """
    if normalization_applied is None:
        normalization_applied = []

    if not isinstance(obj, dict):
        return obj

    updates = obj.get('stateUpdates')
    if isinstance(updates, dict):
        phase = updates.get('phase')
        if isinstance(phase, str) and phase != phase.upper():
            updates['phase'] = phase.upper()
            normalization_applied.append({
                'field': 'stateUpdates.phase',
                'original_value': phase,
                'normalized_value': updates['phase'],
                'normalization_type': 'uppercase'
            })

        for key in STATE_UPDATE_LISTS:
            if updates.get(key) is None:
                updates[key] = []
                normalization_applied.append({
                    'field': f'stateUpdates.{key}',
                    'original_value': None,
                    'normalized_value': [],
                    'normalization_type': 'default_empty_list'
                })

    if obj.get('uiActions') is None:
        obj['uiActions'] = {}
        normalization_applied.append({
            'field': 'uiActions',
            'original_value': None,
            'normalized_value': {},
            'normalization_type': 'default_empty_object'
        })

    return obj


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _schema_violations(obj: Any) -> List[str]:
    """Collect every contract violation (empty list means valid)."""
    if not isinstance(obj, dict):
        return [f"response must be a JSON object, got {type(obj).__name__}"]

    violations = []

    for key in ('spokenResponse', 'internalNotes'):
        if not isinstance(obj.get(key), str):
            violations.append(f"{key} must be a string")

    updates = obj.get('stateUpdates')
    if not isinstance(updates, dict):
        violations.append("stateUpdates must be an object")
    else:
        phase = updates.get('phase')
        if not isinstance(phase, str):
            violations.append("stateUpdates.phase must be a string")
        elif phase not in VALID_PHASES:
            violations.append(f"stateUpdates.phase '{phase}' is not a known phase")

        for key in STATE_UPDATE_LISTS:
            if not _is_string_list(updates.get(key)):
                violations.append(f"stateUpdates.{key} must be a list of strings")

    actions = obj.get('uiActions')
    if not isinstance(actions, dict):
        violations.append("uiActions must be an object")
    else:
        cards = actions.get('showValueCards')
        if cards is not None and not _is_string_list(cards):
            violations.append("uiActions.showValueCards must be null or a list of strings")

        for key in ('highlightValue', 'updateProgress'):
            value = actions.get(key)
            if value is not None and not isinstance(value, str):
                violations.append(f"uiActions.{key} must be null or a string")

        if 'showSummary' in actions and not isinstance(actions['showSummary'], bool):
            violations.append("uiActions.showSummary must be a boolean")

    return violations


def _build_response(obj: Dict[str, Any]) -> AgentResponse:
    """Convert a validated dict into the immutable contract."""
    updates = obj['stateUpdates']
    actions = obj['uiActions']
    cards = actions.get('showValueCards')

    return AgentResponse(
        spoken_response=obj['spokenResponse'],
        internal_notes=obj['internalNotes'],
        state_updates=StateUpdates(
            phase=SessionPhase(updates['phase']),
            new_insights=tuple(updates['newInsights']),
            identified_values=tuple(updates['identifiedValues']),
            values_to_explore=tuple(updates['valuesToExplore']),
        ),
        ui_actions=UIActions(
            show_value_cards=tuple(cards) if cards is not None else None,
            highlight_value=actions.get('highlightValue'),
            update_progress=actions.get('updateProgress'),
            show_summary=actions.get('showSummary'),
        ),
    )


def parse_agent_response(raw_response: str, parse_metadata: Optional[Dict[str, Any]] = None) -> AgentResponse:
    """
    Extract, normalize and validate an AgentResponse.

    Args:
        raw_response: Raw model output
        parse_metadata: Optional dict, mutated with 'strategy' and
            'normalization_applied' when provided

    Returns:
        AgentResponse

    Raises:
        ParseError: No parseable JSON found
        SchemaError: JSON does not match the contract

    Examples:
        >>> parse_agent_response('Sure! ```json\\n{...}\\n``` thanks')
        AgentResponse(spoken_response=..., ...)
    """
    if not isinstance(raw_response, str):
        raise ParseError(
            f"raw_response must be string, got {type(raw_response).__name__}",
            str(raw_response)
        )

    normalization_applied: List[Dict[str, Any]] = []

    parsed, strategy = extract_json(raw_response)
    normalized = normalize_response(parsed, normalization_applied)

    if parse_metadata is not None:
        parse_metadata['strategy'] = strategy
        parse_metadata['normalization_applied'] = normalization_applied

    violations = _schema_violations(normalized)
    if violations:
        raise SchemaError(
            "Agent response does not match expected structure: " + "; ".join(violations),
            raw_response
        )

    return _build_response(normalized)


class ResponseParser:
    """Turn raw model text into a tagged ParseResult"""

    def parse(self, raw_response: str) -> ParseResult:
        """
        Parse raw model output without raising.

        Args:
            raw_response: Raw model output

        Returns:
            ParseResult: {
                'outcome': success | parse_error | schema_error,
                'response': AgentResponse or None,
                'parse_metadata': dict
            }
        """
        parse_metadata: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'strategy': None,
            'raw_llm_output': raw_response,
            'error_type': None,
            'error_message': None,
            'normalization_applied': []
        }

        try:
            response = parse_agent_response(raw_response, parse_metadata)
        except ParseError as e:
            logger.warning(f"Unparseable agent response: {e}")
            parse_metadata['error_type'] = 'ParseError'
            parse_metadata['error_message'] = str(e)
            return ParseResult(OUTCOME_PARSE_ERROR, None, parse_metadata)
        except SchemaError as e:
            logger.warning(f"Agent response failed validation: {e}")
            parse_metadata['error_type'] = 'SchemaError'
            parse_metadata['error_message'] = str(e)
            return ParseResult(OUTCOME_SCHEMA_ERROR, None, parse_metadata)

        logger.debug(
            f"Parsed agent response via '{parse_metadata['strategy']}' "
            f"(phase={response.state_updates.phase.value})"
        )
        return ParseResult(OUTCOME_SUCCESS, response, parse_metadata)
