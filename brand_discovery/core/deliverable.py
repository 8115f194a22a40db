"""
Deliverable Generator - Shareable "Core Values" document for a finished session

Responsibilities:
- Assemble deliverable content from the session record and identified values
- Render that content as Markdown (for the download endpoint)
- Human-readable value lists ("A, B, and C")

Design principles:
- Deterministic assembly (no LLM, no clocks except the injected timestamp)
- Content is a plain JSON-safe dict so it can be stored as-is
- Insights section capped at MAX_KEY_INSIGHTS entries
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from brand_discovery.utils.helpers import parse_iso, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_NAME = "Your Brand"
DELIVERABLE_TITLE = "Core Values"
DELIVERABLE_SUBTITLE = "The principles that guide your brand"
MAX_KEY_INSIGHTS = 5


def format_value_list(names: Sequence[str]) -> str:
    """
    Join value names for prose.

    Examples:
        >>> format_value_list(['Trust'])
        'Trust'
        >>> format_value_list(['Trust', 'Craft'])
        'Trust and Craft'
        >>> format_value_list(['Trust', 'Craft', 'Joy'])
        'Trust, Craft, and Joy'
    """
    names = list(names)
    if not names:
        return "No values identified yet."
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return f"{', '.join(names[:-1])}, and {names[-1]}"


def _format_session_date(started_at: str) -> str:
    started = parse_iso(started_at)
    return f"{started.strftime('%B')} {started.day}, {started.year}"


def build_deliverable_content(
    session: Dict[str, Any],
    values: List[Dict[str, Any]],
    insights: Sequence[str] = (),
    generated_at: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build deliverable content for a session.

    Args:
        session: Session record (company_name, started_at)
        values: Identified value records, any order (sorted by display_order)
        insights: Insights recorded during the session
        generated_at: ISO timestamp (default: now)

    Returns:
        dict: {
            'company_name', 'generated_at', 'values', 'insights', 'session_summary'
        }

    Raises:
        KeyError: If session has no started_at
    """
    ordered = sorted(values, key=lambda v: v.get('display_order') or 0)

    final_values = []
    for record in ordered:
        final_values.append({
            'value_name': record['value_name'],
            'personalized_definition': record.get('personalized_definition'),
            'in_practice': record.get('in_practice'),
            'anti_pattern': record.get('anti_pattern'),
            'user_quotes': list(record.get('user_quotes') or []),
            'is_final': True,
            'display_order': record.get('display_order'),
        })

    content = {
        'company_name': session.get('company_name') or DEFAULT_COMPANY_NAME,
        'generated_at': generated_at or utc_now_iso(),
        'values': final_values,
        'insights': list(insights),
        'session_summary': (
            "Brand values discovered through an interactive session on "
            f"{_format_session_date(session['started_at'])}."
        ),
    }

    logger.info(f"Built deliverable content with {len(final_values)} values")
    return content


def render_markdown(content: Dict[str, Any]) -> str:
    """
    Render deliverable content as a Markdown document.

    Args:
        content: Output of build_deliverable_content()

    Returns:
        str: Markdown text
    """
    lines = [
        f"# {content['company_name']}",
        "",
        f"## {DELIVERABLE_TITLE}",
        "",
        f"*{DELIVERABLE_SUBTITLE}*",
        "",
    ]

    values = content.get('values') or []
    if values:
        for index, value in enumerate(values, 1):
            lines.append(f"### {index}. {value['value_name']}")
            lines.append("")

            if value.get('personalized_definition'):
                lines.append(value['personalized_definition'])
                lines.append("")

            if value.get('in_practice'):
                lines.append(f"**In practice:** {value['in_practice']}")
                lines.append("")

            if value.get('anti_pattern'):
                lines.append(f"**What we don't do:** {value['anti_pattern']}")
                lines.append("")

            quotes = value.get('user_quotes') or []
            if quotes:
                lines.append("**In your words:**")
                for quote in quotes:
                    lines.append(f'> "{quote}"')
                    lines.append("")
            lines.append("")
    else:
        lines.append("*Values will be identified during your session.*")
        lines.append("")

    insights = content.get('insights') or []
    if insights:
        lines.append("---")
        lines.append("")
        lines.append("### Key Insights")
        lines.append("")
        for insight in insights[:MAX_KEY_INSIGHTS]:
            lines.append(f"- {insight}")
        lines.append("")

    if content.get('session_summary'):
        lines.append("---")
        lines.append("")
        lines.append(content['session_summary'])
        lines.append("")

    return "\n".join(lines)
