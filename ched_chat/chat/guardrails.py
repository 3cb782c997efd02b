"""Topic guardrail composition and an optional prompt-security screen."""

import json
import re
from functools import lru_cache

from ched_chat.config import resolve_path, settings

SCOPE_RESTRICTION = (
    "Only answer questions about the higher education institutions in the CHED "
    "dataset, such as their names, types, locations, regions, websites and "
    "contact details. If a question is outside this scope, politely refuse and "
    "say that you can only help with these institutions."
)

SCREEN_REFUSAL = (
    "I can't help with that request. I can only answer questions about the "
    "higher education institutions in the CHED dataset."
)


def compose(caller_context: str | None) -> str:
    """Build the system instruction for one request.

    The scope restriction is always appended last so caller text cannot
    replace or follow it.
    """
    context = (caller_context or "").strip()
    if not context:
        return SCOPE_RESTRICTION
    return f"{context}\n\n{SCOPE_RESTRICTION}"


_BASE_PATTERNS: dict[str, list[str]] = {
    "prompt_injection": [
        r"\bignore (all )?(previous|prior|above) (instructions|prompts)\b",
        r"\boverride (the )?(system|developer) (prompt|instructions)\b",
        r"\breveal (the )?(system|developer) (prompt|message)\b",
        r"\bprint (the )?(hidden|internal) (prompt|instructions)\b",
    ],
    "jailbreak": [
        r"\bjailbreak\b",
        r"\bdo anything now\b",
        r"\b(bypass|disable) (safety|guardrails|restrictions)\b",
        r"\bpretend to be unrestricted\b",
    ],
    "information_exfiltration": [
        r"\b(show|reveal|dump|leak|extract)\b.{0,40}\b(api[- ]?key|token|secret)\b",
        r"\bprint\b.{0,40}\b(environment variables|env vars|dotenv|\.env)\b",
    ],
}


def _compile_regex_list(values: list[str], context: str) -> list[re.Pattern[str]]:
    compiled: list[re.Pattern[str]] = []
    for idx, pattern in enumerate(values):
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as exc:
            raise RuntimeError(f"Invalid regex in {context}[{idx}]: {exc}") from exc
    return compiled


def _load_extra_rules() -> dict:
    if not settings.SCREEN_RULES_FILE:
        return {}

    path = resolve_path(settings.SCREEN_RULES_FILE)
    try:
        text = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise RuntimeError(f"Failed to read SCREEN_RULES_FILE at '{path}': {exc}") from exc

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"Invalid JSON in SCREEN_RULES_FILE '{path}': {exc}") from exc

    if not isinstance(payload, dict):
        raise RuntimeError("SCREEN_RULES_FILE must be a JSON object")
    return payload


def _merge_extra_rules(raw_patterns: dict[str, list[str]], payload: dict) -> None:
    disable_cats = payload.get("disable_baseline_categories", [])
    extra_patterns = payload.get("patterns", {})
    if not isinstance(disable_cats, list):
        raise RuntimeError("disable_baseline_categories must be a list")
    if not isinstance(extra_patterns, dict):
        raise RuntimeError("patterns must be a JSON object")

    for cat in disable_cats:
        if isinstance(cat, str):
            raw_patterns.pop(cat, None)

    for category, pattern_list in extra_patterns.items():
        if not isinstance(category, str) or not isinstance(pattern_list, list):
            raise RuntimeError("Each patterns entry must map string -> list")
        raw_patterns.setdefault(category, []).extend(
            [pattern for pattern in pattern_list if isinstance(pattern, str)]
        )


@lru_cache(maxsize=1)
def _compiled_rule_set() -> dict[str, list[re.Pattern[str]]]:
    raw_patterns: dict[str, list[str]] = {k: list(v) for k, v in _BASE_PATTERNS.items()}
    _merge_extra_rules(raw_patterns, _load_extra_rules())
    return {
        category: _compile_regex_list(values, f"patterns.{category}")
        for category, values in raw_patterns.items()
    }


def validate_screen_config() -> None:
    """Fail fast on invalid screen rules."""
    _compiled_rule_set()


def analyze_message_risk(message: str) -> dict:
    """Return the screen verdict for the newest user message."""
    text = message.strip()
    categories = sorted(
        category
        for category, patterns in _compiled_rule_set().items()
        if any(pattern.search(text) for pattern in patterns)
    )
    return {
        "blocked": bool(categories),
        "categories": categories,
        "reason": "potential_prompt_attack" if categories else "",
    }
