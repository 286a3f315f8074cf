from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

REDACTED = "<REDACTED>"

_SENSITIVE_KEY_NORMALIZED = {
    "authorization",
    "accesstoken",
    "token",
    "privatekey",
    "privatekeyid",
    "clientsecret",
    "googleclientsecret",
    "awssecretaccesskey",
}

_KEY_VALUE_RE = re.compile(
    r"(?i)(authorization|access[-_]?token|private[-_]?key|client[-_]?secret|token)(\"?\s*[:=]\s*)"
    r"(\"[^\"]*\"|'[^']*'|Bearer\s+[^,\s]+|[^,\s]+)"
)
_BEARER_RE = re.compile(r"(?i)Bearer\s+[^\s,\"']+")
_TOKEN_PATTERNS = [
    re.compile(r"AKIA[0-9A-Z]{16}"),
    re.compile(r"ya29\.[A-Za-z0-9_-]{20,}"),
    re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL),
]


def _normalize_key(key: str) -> str:
    return re.sub(r"[^a-z0-9]", "", key.lower())


def is_sensitive_key(key: str) -> bool:
    return _normalize_key(key) in _SENSITIVE_KEY_NORMALIZED


class SecretStr:
    """
    String-like wrapper for credentials that must never reach the logs.

    The Google service-account JSON travels through the configuration wrapped in
    a ``SecretStr``; ``str()`` and ``repr()`` give ``<REDACTED>`` and only
    ``reveal()`` hands back the real value, right before it is passed to the
    credentials loader::

        secret = SecretStr('{"private_key": "..."}')
        print(secret)           # <REDACTED>
        secret.reveal()         # '{"private_key": "..."}'

    ``None`` is normalized to the empty string, so ``bool(secret)`` tells
    whether anything was configured.
    """

    def __init__(self, value: Any) -> None:
        self._value = "" if value is None else str(value)

    def reveal(self) -> str:
        return self._value

    def __bool__(self) -> bool:
        return bool(self._value)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return REDACTED

    def __str__(self) -> str:
        return REDACTED

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretStr):
            return self._value == other._value
        return False

    def __hash__(self) -> int:
        return hash(self._value)


def redact_string(text: str) -> str:
    redacted = text

    def replace_match(match: re.Match[str]) -> str:
        value = match.group(3)
        if value.startswith(("'", '"')) and value.endswith(value[0]):
            quote = value[0]
            return f"{match.group(1)}{match.group(2)}{quote}{REDACTED}{quote}"
        return f"{match.group(1)}{match.group(2)}{REDACTED}"

    for pattern in _TOKEN_PATTERNS:
        redacted = pattern.sub(REDACTED, redacted)
    redacted = _KEY_VALUE_RE.sub(replace_match, redacted)
    redacted = _BEARER_RE.sub(f"Bearer {REDACTED}", redacted)
    return redacted


def redact_structure(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, Mapping):
        return {
            key: SecretStr(val) if is_sensitive_key(str(key)) else redact_structure(val)
            for key, val in value.items()
        }
    if isinstance(value, tuple):
        return tuple(redact_structure(item) for item in value)
    if isinstance(value, list):
        return [redact_structure(item) for item in value]
    return value
