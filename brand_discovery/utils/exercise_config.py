"""
Exercise Config - Values Discovery metadata loaded from JSON

Contents of values_discovery.json:
- exercise: id, name, description, estimated_minutes
- phases: one entry per SessionPhase (labels, descriptions, exchange bounds)
- ui: card and progress bar configuration
- value_words: word bank for the rapid-fire exercise

Fails fast on load: a missing file, an unknown phase id, or a phase list that
does not cover every SessionPhase raises immediately.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from brand_discovery.utils.session_phases import PHASE_ORDER, VALID_PHASES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "data" / "values_discovery.json"

REQUIRED_KEYS = ("exercise", "phases", "ui", "value_words")


class ExerciseConfig:
    """Read-only view over the exercise definition"""

    def __init__(self, config_path: Optional[str] = None):
        """
        Load exercise definition.

        Args:
            config_path: Path to JSON definition (default: packaged values_discovery.json)

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If required keys are missing or phases don't match SessionPhase
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

        if not self.config_path.exists():
            raise FileNotFoundError(f"Exercise config not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self.raw = json.load(f)

        self._validate()

        self.exercise: Dict[str, Any] = self.raw["exercise"]
        self.phases: Dict[str, Dict[str, Any]] = {p["id"]: p for p in self.raw["phases"]}
        self.ui: Dict[str, Any] = self.raw["ui"]
        self.value_words: List[str] = list(self.raw["value_words"])

        logger.info(
            f"Exercise config loaded: {self.exercise.get('id')} "
            f"({len(self.phases)} phases, {len(self.value_words)} value words)"
        )

    def _validate(self):
        missing = [key for key in REQUIRED_KEYS if key not in self.raw]
        if missing:
            raise ValueError(f"Exercise config missing required keys: {missing}")

        phase_ids = [p.get("id") for p in self.raw["phases"]]
        unknown = [pid for pid in phase_ids if pid not in VALID_PHASES]
        if unknown:
            raise ValueError(f"Exercise config has unknown phases: {unknown}")

        absent = [p.value for p in PHASE_ORDER if p.value not in phase_ids]
        if absent:
            raise ValueError(f"Exercise config missing phases: {absent}")

        if not self.raw["value_words"]:
            raise ValueError("Exercise config value_words must not be empty")

    def phase_labels(self) -> Dict[str, str]:
        """Progress-tracker label per phase tag."""
        return {pid: phase.get("label", phase["name"]) for pid, phase in self.phases.items()}

    def get_phase(self, phase) -> Dict[str, Any]:
        """
        Phase definition by tag or SessionPhase.

        Raises:
            KeyError: If phase is unknown
        """
        key = getattr(phase, "value", phase)
        return self.phases[key]

    def response_options(self) -> List[str]:
        return list(self.ui.get("card_config", {}).get("response_options", []))
