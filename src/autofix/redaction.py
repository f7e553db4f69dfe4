from __future__ import annotations

import re

_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Common token shapes that show up in install/auth output (best-effort).
    (re.compile(r"\bsk-[A-Za-z0-9]{16,}\b"), "sk-REDACTED"),
    (re.compile(r"\bAKIA[0-9A-Z]{16}\b"), "AKIA_REDACTED"),
    (re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.S), "PRIVATE_KEY_REDACTED"),
    (re.compile(r"\bghp_[A-Za-z0-9]{20,}\b"), "ghp_REDACTED"),
    (re.compile(r"\bnpm_[A-Za-z0-9]{36}\b"), "npm_REDACTED"),
    (re.compile(r"\bpypi-[A-Za-z0-9_-]{40,}\b"), "pypi-REDACTED"),
    (re.compile(r"(//[^\s/]+/:_authToken=)\S+"), r"\1REDACTED"),
]


def redact_text(s: str, *, max_len: int = 400) -> str:
    """Redact common secret patterns and truncate.

    Command output goes to telemetry only in this redacted, truncated form.
    """
    if not s:
        return ""
    out = s
    for pat, repl in _PATTERNS:
        out = pat.sub(repl, out)
    out = out.strip()
    if len(out) > max_len:
        out = out[:max_len] + "...(truncated)"
    return out
