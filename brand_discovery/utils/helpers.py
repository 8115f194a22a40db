"""
Utility helpers for the brand values discovery system

Simple utility functions for ID, slug and timestamp generation.
"""

import secrets
import string
import uuid
from datetime import datetime, timezone

SHARE_SLUG_ALPHABET = string.ascii_lowercase + string.digits
SHARE_SLUG_LENGTH = 8


def generate_session_id(short=True):
    """
    Generate unique session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID.

    Returns:
        str: Session ID

    Examples:
        >>> generate_session_id()
        'a3f7e2b9'

        >>> generate_session_id(short=False)
        'a3f7e2b9c1d2e3f4a5b6c7d8e9f0a1b2'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def generate_share_slug(length=SHARE_SLUG_LENGTH):
    """
    Generate a random public share slug

    Args:
        length (int): Number of characters (lowercase letters and digits)

    Returns:
        str: Share slug

    Examples:
        >>> generate_share_slug()
        'k3x9m2pq'
    """
    return ''.join(secrets.choice(SHARE_SLUG_ALPHABET) for _ in range(length))


def utc_now_iso():
    """Current UTC time as ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_iso(timestamp):
    """Parse an ISO-8601 string produced by utc_now_iso()."""
    return datetime.fromisoformat(timestamp)
