"""
Content classifier for user-submitted posts.

Sends a post's text (and link, for context) to the classification capability
with a fixed five-category policy and returns a ModerationVerdict.

Fails open: if the capability is unavailable, times out, or answers with
something that is not a well-formed verdict, the post is treated as clean and
the failure is logged. A classifier outage degrades to "no moderation", never
to "no posting".
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context

from roadway.constants import (
    DEFAULT_VIOLATION_REASON,
    SEVERITY_HIGH,
    SEVERITY_LEVELS,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    VIOLATION_TYPES,
)
from roadway.services import ai
from roadway.utils.errors import ExternalServiceUnavailable, log_warning, sanitize_reason

MAX_CLASSIFY_CHARS = 6000

CLASSIFIER_SYSTEM_PROMPT = (
    "You are a content moderator for a student learning community where people "
    "review courses and share study resources. Check the post for:\n"
    "1. Hate speech (attacks on protected groups, slurs)\n"
    "2. Harassment or abuse (insults, threats, bullying aimed at people)\n"
    "3. Explicit or +18 sexual content\n"
    "4. Violence or graphic content\n"
    "5. Spam or malicious intent (scams, phishing, unsolicited advertising)\n\n"
    "Criticism of a course, instructor's teaching, or platform is allowed.\n"
    "Respond ONLY with valid JSON in this exact format:\n"
    "{\n"
    '  "isViolation": true|false,\n'
    '  "reason": "short explanation suitable to show the author",\n'
    '  "severity": "low|medium|high",\n'
    '  "violationTypes": ["hate_speech"|"abusive"|"explicit"|"violence"|"spam"|"malicious_link"]\n'
    "}\n"
    "Use an empty reason and an empty list when there is no violation."
)


@dataclass
class ModerationVerdict:
    """Result of one content classification. Never persisted verbatim."""

    is_violation: bool = False
    reason: str = ""
    severity: str = SEVERITY_LOW
    violation_types: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isViolation": self.is_violation,
            "reason": self.reason,
            "severity": self.severity,
            "violationTypes": list(self.violation_types),
        }


def clean_verdict() -> ModerationVerdict:
    """Verdict used for empty input and every fail-open path."""
    return ModerationVerdict(is_violation=False, reason="", severity=SEVERITY_LOW, violation_types=[])


def _moderation_enabled() -> bool:
    if has_app_context():
        return bool(current_app.config.get("MODERATION_ENABLED", True))
    return True


def _normalize_types(raw: Any) -> List[str]:
    """Keep known violation tags only, lowercased, de-duplicated, in reply order."""
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    types: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        tag = item.strip().lower().replace(" ", "_").replace("-", "_")
        if tag in VIOLATION_TYPES and tag not in types:
            types.append(tag)
    return types


def parse_verdict(payload: Dict[str, Any]) -> ModerationVerdict:
    """
    Validate a classifier reply and turn it into a verdict.

    Raises:
        ExternalServiceUnavailable: the reply lacks a boolean isViolation
    """
    is_violation = payload.get("isViolation")
    if not isinstance(is_violation, bool):
        raise ExternalServiceUnavailable("Classifier reply missing boolean isViolation")

    if not is_violation:
        return clean_verdict()

    severity = payload.get("severity")
    severity = severity.strip().lower() if isinstance(severity, str) else ""
    if severity not in SEVERITY_LEVELS:
        severity = SEVERITY_MEDIUM

    return ModerationVerdict(
        is_violation=True,
        reason=sanitize_reason(payload.get("reason"), DEFAULT_VIOLATION_REASON),
        severity=severity,
        violation_types=_normalize_types(payload.get("violationTypes")),
    )


def build_classifier_prompt(text: str, link_url: Optional[str]) -> str:
    parts = [f"Post text:\n{text[:MAX_CLASSIFY_CHARS]}"]
    if link_url:
        parts.append(f"Attached link: {link_url}")
    return "\n\n".join(parts)


def classify(text: str, link_url: Optional[str] = None) -> ModerationVerdict:
    """
    Classify post content against the community policy.

    Args:
        text: Trimmed title + body of the post (may be empty)
        link_url: Optional link attached to the post, given as context

    Returns:
        ModerationVerdict; clean when text is empty, moderation is disabled,
        or the capability fails
    """
    text = (text or "").strip()
    if not text:
        return clean_verdict()

    if not _moderation_enabled():
        return clean_verdict()

    try:
        payload = ai.complete_json(
            CLASSIFIER_SYSTEM_PROMPT,
            build_classifier_prompt(text, link_url),
        )
        verdict = parse_verdict(payload)
    except ExternalServiceUnavailable as e:
        log_warning("Content classifier unavailable; failing open", reason=str(e)[:200])
        return clean_verdict()

    if verdict.is_violation and verdict.severity == SEVERITY_HIGH:
        log_warning("High severity content blocked", types=",".join(verdict.violation_types) or "unspecified")
    return verdict
