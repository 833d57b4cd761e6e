"""
Hardcoded secret detection for source lines.

Used by the security rules to flag credentials committed in code, and by
the report renderers so findings never echo the secret back.
This is heuristic-based and intentionally conservative.
"""

from __future__ import annotations

import re


_STRONG_PATTERNS: list[re.Pattern[str]] = [
    # OpenAI
    re.compile(r"\bsk-[A-Za-z0-9]{20,}\b"),
    # Anthropic
    re.compile(r"\bsk-ant-[A-Za-z0-9_-]{10,}\b"),
    # GitHub tokens
    re.compile(r"\bghp_[A-Za-z0-9]{20,}\b"),
    re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"),
    # AWS access key ids
    re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
    # Slack
    re.compile(r"\bxox[baprs]-[0-9A-Za-z-]{10,}\b"),
    # PEM blocks
    re.compile(r"-----BEGIN [A-Z ]+PRIVATE KEY-----"),
]

# `password = "hunter2hunter2"`, `"api_key": 'abc...'`, `TOKEN: str = "..."`
_LITERAL_ASSIGNMENT = re.compile(
    r"(?i)(?P<prefix>[\"']?\b\w*(?:api[_-]?key|secret|token|passw(?:or)?d|passwd|private[_-]?key|credentials?)\w*\b[\"']?"
    r"\s*(?::\s*\w+\s*)?[:=]\s*[rbuf]?(?P<q>[\"']))(?P<value>[^\"'\s]{6,})(?P=q)"
)

_PLACEHOLDER = re.compile(
    r"(?i)^(?:x+|\*+|\.+|changeme|change[_-]?me|placeholder|dummy|example|test|fake|none|null|"
    r"your[_-].*|<.*>|\{.*\}|\$\{?\w+\}?|%\(\w+\)s)$"
)

_BEARER = re.compile(r"(?i)\bbearer\s+(?P<tok>[A-Za-z0-9._=-]{12,})")


def _is_placeholder(value: str) -> bool:
    value = value.strip()
    if _PLACEHOLDER.match(value) or "://" in value:
        return True
    # Plain words ("bearer", "access_token") are names, not credentials
    has_digit = any(c.isdigit() for c in value)
    mixed_case = any(c.isupper() for c in value) and any(c.islower() for c in value)
    return not (has_digit or mixed_case)


def contains_secret(text: str) -> bool:
    if not text:
        return False

    for pat in _STRONG_PATTERNS:
        if pat.search(text):
            return True

    for m in _LITERAL_ASSIGNMENT.finditer(text):
        if not _is_placeholder(m.group("value")):
            return True

    if _BEARER.search(text):
        return True

    return False


def redact_secrets(text: str) -> str:
    if not text:
        return text

    def _redact_literal(m: re.Match[str]) -> str:
        if _is_placeholder(m.group("value")):
            return m.group(0)
        return f"{m.group('prefix')}[REDACTED]{m.group('q')}"

    text = _LITERAL_ASSIGNMENT.sub(_redact_literal, text)
    text = _BEARER.sub("Bearer [REDACTED]", text)

    for pat in _STRONG_PATTERNS:
        text = pat.sub("[REDACTED]", text)

    return text
