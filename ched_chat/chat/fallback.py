"""Offline keyword answers used when no remote model can reply."""

import re

from ched_chat.config import settings
from ched_chat.records.store import RecordStore
from ched_chat.schemas import Institution, Turn

MATCH_PREFIX = "Here are some institutions I found in the CHED list:"
MATCH_SUFFIX = "Ask me more about any of these, or try another city, region, or name."

GREETING_ANSWER = (
    "Hello! I'm the CHED institutions assistant, currently running in local mode. "
    "Ask me about a city, a region, or an institution name."
)

LOCAL_MODE_ANSWER = (
    "I'm running in local mode right now, so I can only look up institutions by "
    "city, region, or name. Try asking about a specific city or region, for "
    "example \"universities in Quezon City\"."
)

LOADING_ANSWER = (
    "The institution list is still loading, so I can't look anything up yet. "
    "Please try again in a moment."
)

_GREETING_PATTERN = re.compile(
    r"\b(hello|hi|hey|greetings|good (morning|afternoon|evening))\b"
)


def latest_user_text(turns: list[Turn]) -> str:
    for turn in reversed(turns):
        if turn.role.strip().lower() == "user":
            return turn.first_text()
    return turns[-1].first_text() if turns else ""


def _format_match(record: Institution) -> str:
    return f"- {record.name} ({record.city or 'N/A'}) - {record.type or 'N/A'}"


def _format_matches(matches: list[Institution], limit: int) -> str:
    lines = [_format_match(record) for record in matches[:limit]]
    return f"{MATCH_PREFIX}\n" + "\n".join(lines) + f"\n\n{MATCH_SUFFIX}"


def respond(turns: list[Turn], store: RecordStore, limit: int | None = None) -> str:
    """Answer from the record store alone. Same input and store give the same text."""
    text = latest_user_text(turns).lower()
    limit = settings.FALLBACK_MAX_MATCHES if limit is None else limit

    if not store.is_ready():
        return GREETING_ANSWER if _GREETING_PATTERN.search(text) else LOADING_ANSWER

    matches = store.match(text) if text.strip() else []
    if matches:
        return _format_matches(matches, max(1, limit))
    if _GREETING_PATTERN.search(text):
        return GREETING_ANSWER
    return LOCAL_MODE_ANSWER
