"""
Session persistence.

JSON-file record store for sessions, transcripts, rapid-fire answers,
identified values and deliverables.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"
MESSAGES_FILE = "messages.json"
RAPID_FIRE_FILE = "rapid_fire.json"
VALUES_FILE = "values.json"
DELIVERABLE_FILE = "deliverable.json"
SLUG_INDEX_FILE = "share_slugs.json"


class StoreError(Exception):
    """Storage operation could not be completed"""
    pass


class SessionNotFoundError(StoreError):
    """No session with the requested id"""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionStore:
    """
    Manages per-session JSON records.

    Layout:
        outputs/sessions/
            share_slugs.json            slug -> session_id
            SESSION-abc123/
                session.json            session record (incl. state snapshot)
                messages.json           transcript, ordered by sequence_number
                rapid_fire.json         rapid-fire answers
                values.json             identified values with display_order
                deliverable.json        deliverable (one per session)

    Design:
    - One directory per session
    - Sequence numbers assigned by the store (strictly increasing)
    - A session has at most one deliverable; its slug never changes
    """

    def __init__(self, base_dir: str = "outputs/sessions"):
        """
        Initialize persistence layer.

        Args:
            base_dir: Base directory for all sessions
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"SessionStore initialized: {self.base_dir}")

    # ========================
    # File helpers
    # ========================

    def _session_dir(self, session_id: str) -> Path:
        return self.base_dir / f"SESSION-{session_id}"

    def _read(self, path: Path, default):
        if not path.exists():
            return default
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt record {path}: {e}") from e

    def _write(self, path: Path, data) -> None:
        """Write via a sibling temp file so readers never see a partial record."""
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

    def _require(self, session_id: str) -> Path:
        session_dir = self._session_dir(session_id)
        if not (session_dir / SESSION_FILE).exists():
            raise SessionNotFoundError(session_id)
        return session_dir

    # ========================
    # Sessions
    # ========================

    def session_exists(self, session_id: str) -> bool:
        return (self._session_dir(session_id) / SESSION_FILE).exists()

    def create_session(self, session_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a new session record.

        Args:
            session_id: Session identifier
            record: Session fields (id is added)

        Returns:
            dict: Stored record

        Raises:
            StoreError: If the session already exists
        """
        if self.session_exists(session_id):
            raise StoreError(f"Session already exists: {session_id}")

        session_dir = self._session_dir(session_id)
        session_dir.mkdir(exist_ok=True)

        stored = dict(record, id=session_id)
        self._write(session_dir / SESSION_FILE, stored)
        logger.info(f"Created session {session_id}")
        return stored

    def load_session(self, session_id: str) -> Dict[str, Any]:
        """
        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        session_dir = self._require(session_id)
        return self._read(session_dir / SESSION_FILE, {})

    def update_session(self, session_id: str, **fields) -> Dict[str, Any]:
        """
        Merge fields into the session record.

        Returns:
            dict: Updated record

        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        record = self.load_session(session_id)
        record.update(fields)
        self._write(self._session_dir(session_id) / SESSION_FILE, record)
        logger.debug(f"Updated session {session_id}: {sorted(fields)}")
        return record

    # ========================
    # Transcript
    # ========================

    def load_messages(self, session_id: str) -> List[Dict[str, Any]]:
        """Transcript ordered by sequence_number."""
        session_dir = self._require(session_id)
        messages = self._read(session_dir / MESSAGES_FILE, [])
        return sorted(messages, key=lambda m: m['sequence_number'])

    def append_message(
        self,
        session_id: str,
        role: str,
        content: str,
        response_data: Optional[Dict[str, Any]] = None,
        created_at: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Append one transcript entry with the next sequence number.

        Returns:
            dict: Stored message
        """
        session_dir = self._require(session_id)
        messages = self._read(session_dir / MESSAGES_FILE, [])

        next_sequence = max((m['sequence_number'] for m in messages), default=0) + 1
        message = {
            'role': role,
            'content': content,
            'response_data': response_data,
            'sequence_number': next_sequence,
            'created_at': created_at,
        }
        messages.append(message)
        self._write(session_dir / MESSAGES_FILE, messages)
        return message

    # ========================
    # Rapid-fire answers
    # ========================

    def load_rapid_fire(self, session_id: str) -> List[Dict[str, Any]]:
        session_dir = self._require(session_id)
        answers = self._read(session_dir / RAPID_FIRE_FILE, [])
        return sorted(answers, key=lambda a: a['sequence_number'])

    def append_rapid_fire(self, session_id: str, word: str, response: str) -> Dict[str, Any]:
        session_dir = self._require(session_id)
        answers = self._read(session_dir / RAPID_FIRE_FILE, [])
        answer = {
            'value_word': word,
            'response': response,
            'sequence_number': len(answers) + 1,
        }
        answers.append(answer)
        self._write(session_dir / RAPID_FIRE_FILE, answers)
        return answer

    # ========================
    # Identified values
    # ========================

    def load_values(self, session_id: str) -> List[Dict[str, Any]]:
        """Identified values ordered by display_order."""
        session_dir = self._require(session_id)
        values = self._read(session_dir / VALUES_FILE, [])
        return sorted(values, key=lambda v: v.get('display_order') or 0)

    def save_values(self, session_id: str, values: List[Dict[str, Any]]) -> None:
        session_dir = self._require(session_id)
        self._write(session_dir / VALUES_FILE, values)

    # ========================
    # Deliverables
    # ========================

    def _load_slug_index(self) -> Dict[str, str]:
        return self._read(self.base_dir / SLUG_INDEX_FILE, {})

    def slug_exists(self, share_slug: str) -> bool:
        return share_slug in self._load_slug_index()

    def load_deliverable(self, session_id: str) -> Optional[Dict[str, Any]]:
        session_dir = self._require(session_id)
        return self._read(session_dir / DELIVERABLE_FILE, None)

    def save_deliverable(self, session_id: str, deliverable: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or replace the session's deliverable.

        Args:
            session_id: Session identifier
            deliverable: Must contain share_slug and content

        Returns:
            dict: Stored deliverable

        Raises:
            StoreError: If the slug belongs to another session, or the
                session's existing deliverable has a different slug
        """
        session_dir = self._require(session_id)
        share_slug = deliverable['share_slug']

        index = self._load_slug_index()
        owner = index.get(share_slug)
        if owner is not None and owner != session_id:
            raise StoreError(f"Share slug already in use: {share_slug}")

        existing = self._read(session_dir / DELIVERABLE_FILE, None)
        if existing is not None and existing['share_slug'] != share_slug:
            raise StoreError(
                f"Session {session_id} already has share slug {existing['share_slug']}"
            )

        stored = dict(deliverable, session_id=session_id)
        self._write(session_dir / DELIVERABLE_FILE, stored)

        if owner is None:
            index[share_slug] = session_id
            self._write(self.base_dir / SLUG_INDEX_FILE, index)

        logger.info(f"Saved deliverable for {session_id}: {share_slug}")
        return stored

    def find_deliverable_by_slug(self, share_slug: str) -> Optional[Dict[str, Any]]:
        """
        Look up a deliverable by its public slug.

        Returns:
            dict if found, None otherwise
        """
        session_id = self._load_slug_index().get(share_slug)
        if session_id is None or not self.session_exists(session_id):
            return None
        return self.load_deliverable(session_id)
