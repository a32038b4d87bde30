"""
Link safety checker.

A URL without an http(s) scheme is rejected locally, without any outbound
call. Well-formed URLs are assessed by the classification capability for
phishing, malware, scam and suspicious-domain signals.

Same fail-open policy as the content classifier: when the capability cannot
give a usable answer the link is treated as safe (low risk) and the reason
says the check did not run.

Verdicts from a successful check are cached per URL for
LINK_VERDICT_CACHE_SECONDS; fail-open verdicts are never cached.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import threading

from cachetools import TTLCache
from flask import current_app, has_app_context

from roadway.constants import (
    INVALID_URL_REASON,
    LINK_CHECK_FAILED_REASON,
    SEVERITY_HIGH,
    SEVERITY_LEVELS,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    URL_SCHEME_PREFIXES,
)
from roadway.services import ai
from roadway.utils.errors import ExternalServiceUnavailable, log_warning, sanitize_reason

LINK_CACHE_MAX_ENTRIES = 2000
DEFAULT_LINK_CACHE_SECONDS = 3600
MAX_WARNINGS = 10

LINK_SYSTEM_PROMPT = (
    "You are a URL security analyst. Assess the URL for:\n"
    "- Phishing (credential harvesting, look-alike or typo-squatted domains)\n"
    "- Malware or drive-by download distribution\n"
    "- Scams (fake giveaways, crypto or payment fraud)\n"
    "- Suspicious domains (URL shorteners hiding the target, raw IPs, newly "
    "registered or throwaway TLDs)\n\n"
    "Respond ONLY with valid JSON in this exact format:\n"
    "{\n"
    '  "isSafe": true|false,\n'
    '  "riskLevel": "low|medium|high",\n'
    '  "reason": "short explanation",\n'
    '  "warnings": ["specific warning", "..."]\n'
    "}"
)

_link_cache: Optional[TTLCache] = None
_cache_lock = threading.Lock()


@dataclass
class LinkVerdict:
    """Result of one URL risk assessment."""

    is_safe: bool = True
    risk_level: str = SEVERITY_LOW
    reason: str = ""
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isSafe": self.is_safe,
            "riskLevel": self.risk_level,
            "reason": self.reason,
            "warnings": list(self.warnings),
        }


def _get_cache() -> TTLCache:
    global _link_cache
    with _cache_lock:
        if _link_cache is None:
            ttl = DEFAULT_LINK_CACHE_SECONDS
            if has_app_context():
                ttl = int(current_app.config.get("LINK_VERDICT_CACHE_SECONDS", ttl))
            _link_cache = TTLCache(maxsize=LINK_CACHE_MAX_ENTRIES, ttl=ttl)
        return _link_cache


def clear_link_cache() -> None:
    """Drop all cached verdicts (tests, or after a policy prompt change)."""
    global _link_cache
    with _cache_lock:
        _link_cache = None


def _fail_open_verdict() -> LinkVerdict:
    return LinkVerdict(is_safe=True, risk_level=SEVERITY_LOW, reason=LINK_CHECK_FAILED_REASON, warnings=[])


def has_valid_scheme(url: str) -> bool:
    return (url or "").strip().lower().startswith(URL_SCHEME_PREFIXES)


def parse_link_verdict(payload: Dict[str, Any]) -> LinkVerdict:
    """
    Validate a link-check reply.

    Raises:
        ExternalServiceUnavailable: the reply lacks a boolean isSafe
    """
    is_safe = payload.get("isSafe")
    if not isinstance(is_safe, bool):
        raise ExternalServiceUnavailable("Link checker reply missing boolean isSafe")

    risk = payload.get("riskLevel")
    risk = risk.strip().lower() if isinstance(risk, str) else ""
    if risk not in SEVERITY_LEVELS:
        risk = SEVERITY_LOW if is_safe else SEVERITY_MEDIUM

    raw_warnings = payload.get("warnings")
    warnings: List[str] = []
    if isinstance(raw_warnings, list):
        for w in raw_warnings[:MAX_WARNINGS]:
            cleaned = sanitize_reason(w) if isinstance(w, str) else ""
            if cleaned:
                warnings.append(cleaned)

    return LinkVerdict(
        is_safe=is_safe,
        risk_level=risk,
        reason=sanitize_reason(payload.get("reason")),
        warnings=warnings,
    )


def check_link(url: str) -> LinkVerdict:
    """
    Assess the risk of a URL.

    Args:
        url: Link attached to a post (or submitted by an admin)

    Returns:
        LinkVerdict. Invalid scheme -> unsafe/high without an outbound call;
        capability failure -> safe/low with a "not verified" reason.
    """
    url = (url or "").strip()
    if not has_valid_scheme(url):
        return LinkVerdict(is_safe=False, risk_level=SEVERITY_HIGH, reason=INVALID_URL_REASON, warnings=[])

    if has_app_context() and not current_app.config.get("MODERATION_ENABLED", True):
        return _fail_open_verdict()

    cache = _get_cache()
    with _cache_lock:
        cached = cache.get(url)
    if cached is not None:
        return cached

    try:
        payload = ai.complete_json(LINK_SYSTEM_PROMPT, f"URL: {url}", max_tokens=250)
        verdict = parse_link_verdict(payload)
    except ExternalServiceUnavailable as e:
        log_warning("Link safety check unavailable; failing open", reason=str(e)[:200])
        return _fail_open_verdict()

    with _cache_lock:
        cache[url] = verdict
    return verdict
