"""
Tests for ID, slug and timestamp helpers
"""

from datetime import timezone

from brand_discovery.utils.helpers import (
    SHARE_SLUG_ALPHABET,
    generate_session_id,
    generate_share_slug,
    parse_iso,
    utc_now_iso,
)


def test_session_id_lengths():
    assert len(generate_session_id()) == 8
    assert len(generate_session_id(short=False)) == 32


def test_share_slug_alphabet():
    slug = generate_share_slug()

    assert len(slug) == 8
    assert all(c in SHARE_SLUG_ALPHABET for c in slug)
    assert len(generate_share_slug(12)) == 12


def test_share_slugs_differ():
    slugs = {generate_share_slug() for _ in range(50)}
    assert len(slugs) == 50


def test_iso_roundtrip():
    parsed = parse_iso(utc_now_iso())
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() == timezone.utc.utcoffset(None)
