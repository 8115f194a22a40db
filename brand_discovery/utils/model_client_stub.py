"""
Model Client - Stub Implementation

Purpose:
    Offline stand-in for HuggingFaceClient. Returns canned persona replies
    as JSON so the full pipeline (context building, parsing, reducer,
    persistence, API) runs without a GPU or model download.

Current Logic:
    - Reads "Current Phase: X" from the context block
    - Session-start marker produces the OPENING greeting
    - Every other turn requests the next phase in interview order and
      plays that phase's scripted line
    - REFINEMENT always requests COMPLETE

Design:
    - Same interface as HuggingFaceClient (generate, is_loaded)
    - Deterministic: same context block, same reply
    - Records every call for inspection (calls list)
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from brand_discovery.core.phase_machine import get_next_phase
from brand_discovery.core.prompt_builder import SESSION_START_MARKER
from brand_discovery.utils.session_phases import SessionPhase, coerce_phase

logger = logging.getLogger(__name__)

PHASE_LINE_PATTERN = re.compile(r"Current Phase:\s*([A-Z_]+)")

SCRIPT: Dict[SessionPhase, Dict[str, Any]] = {
    SessionPhase.OPENING: {
        'spokenResponse': (
            "Thanks for being here. What brought you here today? What's the moment "
            "that made you think 'I need to figure out my brand'?"
        ),
        'internalNotes': "Opening question asked",
    },
    SessionPhase.RAPID_FIRE_INTRO: {
        'spokenResponse': (
            "I'm going to show you some words. For each one, tell me 'yes' if it "
            "resonates, 'no' if it doesn't, or 'maybe' if you're unsure. Ready?"
        ),
        'internalNotes': "Explained rapid-fire exercise",
    },
    SessionPhase.RAPID_FIRE: {
        'spokenResponse': "How about: Innovation... Trust... Excellence?",
        'internalNotes': "Presented first value words",
        'uiActions': {'showValueCards': ['Innovation', 'Trust', 'Excellence']},
    },
    SessionPhase.RAPID_FIRE_DEBRIEF: {
        'spokenResponse': (
            "You said yes quickly to Trust, but hesitated on Innovation. "
            "Let's dig deeper into a few of these."
        ),
        'internalNotes': "Quick yes on Trust, hesitation on Innovation",
        'newInsights': ["Founder responds instinctively to Trust"],
        'identifiedValues': ['Trust'],
    },
    SessionPhase.DEEP_DIVE: {
        'spokenResponse': (
            "Every company says they value trust. What makes YOUR version different?"
        ),
        'internalNotes': "Probing Trust",
        'identifiedValues': ['Trust', 'Craft'],
        'valuesToExplore': ['Trust'],
        'uiActions': {'highlightValue': 'Trust'},
    },
    SessionPhase.SCENARIO: {
        'spokenResponse': (
            "Imagine a huge customer asks you to cut a corner on quality to hit "
            "their launch date. What do you do?"
        ),
        'internalNotes': "Scenario presented",
        'valuesToExplore': ['Craft'],
    },
    SessionPhase.SYNTHESIS: {
        'spokenResponse': (
            "Let me tell you what I'm hearing. Your brand is built on Trust and Craft. "
            "Does that feel right?"
        ),
        'internalNotes': "Synthesis delivered",
        'uiActions': {'showSummary': True},
    },
    SessionPhase.REFINEMENT: {
        'spokenResponse': "Is there anything you would add or change?",
        'internalNotes': "Inviting feedback on synthesis",
    },
    SessionPhase.COMPLETE: {
        'spokenResponse': (
            "These are your values. Not generic words, your version of them. "
            "I'm going to put together a summary for you."
        ),
        'internalNotes': "Founder confirmed synthesis",
    },
}


class StubModelClient:
    """
    Scripted model client for offline development and tests.

    Attributes:
        calls: One dict per generate() call with the prompt and options
        should_fail: If True, generate() raises RuntimeError
    """

    def __init__(self, should_fail: bool = False):
        self.calls: List[Dict[str, Any]] = []
        self.should_fail = should_fail
        logger.info("StubModelClient initialized")

    def is_loaded(self) -> bool:
        return True

    def _current_phase(self, prompt: str) -> SessionPhase:
        match = PHASE_LINE_PATTERN.search(prompt)
        phase = coerce_phase(match.group(1)) if match else None
        return phase or SessionPhase.OPENING

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.7
    ) -> str:
        """
        Return the scripted reply for the phase named in the context block.

        Raises:
            RuntimeError: If should_fail is set
        """
        self.calls.append({
            'prompt': prompt,
            'system_prompt': system_prompt,
            'max_tokens': max_tokens,
            'temperature': temperature,
        })

        if self.should_fail:
            raise RuntimeError("Stub model failure")

        current = self._current_phase(prompt)

        if SESSION_START_MARKER in prompt:
            script_phase, requested = SessionPhase.OPENING, SessionPhase.OPENING
        else:
            if current == SessionPhase.REFINEMENT:
                script_phase = SessionPhase.COMPLETE
            else:
                script_phase = get_next_phase(current) or current
            requested = script_phase

        line = SCRIPT[script_phase]
        reply = {
            'spokenResponse': line['spokenResponse'],
            'internalNotes': line['internalNotes'],
            'stateUpdates': {
                'phase': requested.value,
                'newInsights': line.get('newInsights', []),
                'identifiedValues': line.get('identifiedValues', []),
                'valuesToExplore': line.get('valuesToExplore', []),
            },
            'uiActions': line.get('uiActions', {}),
        }

        logger.debug(f"Stub reply for {current.value}: requesting {requested.value}")
        return json.dumps(reply)
