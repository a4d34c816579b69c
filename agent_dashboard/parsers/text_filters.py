"""Ordered text heuristics used by the activity extractor.

Each cleaning step is a ``(name, applies, transform)`` triple of pure
functions over one string. Steps run in order; a step only transforms when
its precondition holds, so the chain can be read (and tested) one step at a
time.
"""
from __future__ import annotations

import re
from typing import Callable, Optional

_METADATA_PREAMBLES = (
    "Conversation info (untrusted metadata)",
    "Sender (untrusted metadata)",
    "Conversation metadata",
)
_SUBAGENT_HEADERS = ("[Subagent Context]",)
_NOISE_PREFIXES = ("System:", "[System", "{", "[Subagent", "[subagent")

_FENCE = "```"
_LEADING_MENTIONS = re.compile(r"^(?:\s*(?:<@[!&]?\d+>|@[\w.-]+))+\s*")
_LEADING_TIMESTAMP = re.compile(
    r"^\[(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun) \d{4}-\d{2}-\d{2} \d{2}:\d{2}(?::\d{2})?(?: [^\]]+)?\]\s*"
)

_SYSTEM_ROLE_PATTERNS = (
    re.compile(r"You are \*\*([^*\n]+?)\*\*"),
    re.compile(r"You are ([A-Z][^,\n]{0,60}?),"),
    re.compile(r"Your role is:?\s*\**([^.\n*]+)"),
)
_USER_ROLE_PATTERNS = (
    re.compile(r"You are \*\*([^*\n]+?)\*\*"),
)

MIN_TEXT_LENGTH = 2


# ── Cleaning steps ──────────────────────────────────────────────────

def has_metadata_preamble(text: str) -> bool:
    return text.lstrip().startswith(_METADATA_PREAMBLES)


def strip_metadata_preamble(text: str) -> str:
    """Keep only what follows the last fenced block, minus leading mentions."""
    idx = text.rfind(_FENCE)
    remainder = text[idx + len(_FENCE):] if idx >= 0 else text
    return _LEADING_MENTIONS.sub("", remainder.strip())


def has_subagent_header(text: str) -> bool:
    return text.lstrip().startswith(_SUBAGENT_HEADERS)


def strip_subagent_header(text: str) -> str:
    _, _, rest = text.lstrip().partition("\n")
    return rest.strip()


def has_leading_timestamp(text: str) -> bool:
    return bool(_LEADING_TIMESTAMP.match(text.lstrip()))


def strip_leading_timestamp(text: str) -> str:
    return _LEADING_TIMESTAMP.sub("", text.lstrip(), count=1)


CLEANING_STEPS: list[tuple[str, Callable[[str], bool], Callable[[str], str]]] = [
    ("metadata_preamble", has_metadata_preamble, strip_metadata_preamble),
    ("subagent_header", has_subagent_header, strip_subagent_header),
    ("leading_timestamp", has_leading_timestamp, strip_leading_timestamp),
]


def clean_user_text(text: str) -> str:
    cleaned = text or ""
    for _name, applies, transform in CLEANING_STEPS:
        if applies(cleaned):
            cleaned = transform(cleaned)
    return cleaned.strip()


def is_noise(text: str) -> bool:
    """True for system/internal chatter that should never surface as a task."""
    return text.lstrip().startswith(_NOISE_PREFIXES)


def is_meaningful_user_text(text: str) -> bool:
    return len(text) > MIN_TEXT_LENGTH and not is_noise(text)


# ── Role extraction ─────────────────────────────────────────────────

def _first_match(text: str, patterns) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text or "")
        if match:
            value = match.group(1).strip().strip("*").strip()
            if value:
                return value
    return None


def role_from_system_text(text: str) -> Optional[str]:
    return _first_match(text, _SYSTEM_ROLE_PATTERNS)


def role_from_user_text(text: str) -> Optional[str]:
    return _first_match(text, _USER_ROLE_PATTERNS)


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]
