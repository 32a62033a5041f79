"""
Ticket helpers.

Ticket lookups happen outside this package; only key extraction and the
conversion of a looked-up issue into a TicketContext live here.
"""

import re
from typing import Any

from querygpt.models.query import TicketContext

_KEY = r"[A-Z][A-Z0-9]+-\d+"
_KEY_ONLY_PATTERN = re.compile(rf"^{_KEY}$")
_BROWSE_PATTERN = re.compile(rf"/browse/({_KEY})", re.IGNORECASE)
_ANY_KEY_PATTERN = re.compile(rf"({_KEY})", re.IGNORECASE)


def extract_ticket_key(key_or_url: str) -> str | None:
    """
    Extract an issue key from a bare key or a browse URL.

    >>> extract_ticket_key("cav-1868")
    'CAV-1868'
    >>> extract_ticket_key("https://example.atlassian.net/browse/CAV-1868")
    'CAV-1868'
    """
    trimmed = (key_or_url or "").strip()
    if _KEY_ONLY_PATTERN.match(trimmed.upper()):
        return trimmed.upper()
    match = _BROWSE_PATTERN.search(trimmed) or _ANY_KEY_PATTERN.search(trimmed)
    if match:
        return match.group(1).upper()
    return None


def ticket_context_from_issue(issue: dict[str, Any]) -> TicketContext:
    """Build a TicketContext from an issue payload (key, summary, description, status, project)."""
    return TicketContext(
        key=str(issue["key"]).upper(),
        summary=issue.get("summary") or "",
        description=issue.get("description") or "",
        status=issue.get("status") or None,
        project=issue.get("project") or None,
    )
