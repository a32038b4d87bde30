"""
Admission gate for new posts.

Every submitted post goes through the same path:

    submitted -> classifying -> rejected        (never stored)
                             -> pending review  (stored, invisible until approved)

1. Classify title + body (the link, if any, is passed along as context).
2. If a link is attached, check it independently; both checks run concurrently.
3. Reject when the content is a violation or the link is unsafe. The content
   reason wins when both fire; an unsafe link alone gets a fixed message.
4. Rejections are recorded against the author's trust and never touch the
   post store. Admitted posts are stored as "pending", the author gets a
   clean outcome, and a post_admitted event is emitted.

Classification finishes before anything is written, so content that fails
screening never exists in storage, not even briefly.
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

from flask import current_app, has_app_context

from roadway import signals
from roadway.constants import POST_STATUS_PENDING, UNSAFE_LINK_REASON
from roadway.services import link_safety, moderation, supabase_client, trust
from roadway.services.link_safety import LinkVerdict
from roadway.services.moderation import ModerationVerdict
from roadway.utils.errors import log_info


@dataclass
class AdmitResult:
    """Outcome of one admission decision."""

    accepted: bool
    post: Optional[Dict[str, Any]] = None
    reason: str = ""
    violation_types: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        if self.accepted:
            return {"accepted": True, "post": self.post}
        return {
            "accepted": False,
            "reason": self.reason,
            "violationTypes": list(self.violation_types),
        }


def build_moderation_text(candidate: Dict[str, Any]) -> str:
    """Trimmed title + body, the text the classifier sees."""
    parts = [
        (candidate.get("courseName") or "").strip(),
        (candidate.get("review") or "").strip(),
    ]
    return "\n".join(p for p in parts if p)


def _with_app_context(func: Callable) -> Callable:
    """Carry the current app context into a worker thread."""
    if not has_app_context():
        return func
    app = current_app._get_current_object()

    @wraps(func)
    def wrapper(*args, **kwargs):
        with app.app_context():
            return func(*args, **kwargs)

    return wrapper


def _run_checks(text: str, link_url: Optional[str]) -> tuple[ModerationVerdict, Optional[LinkVerdict]]:
    if not link_url:
        return moderation.classify(text, None), None

    with ThreadPoolExecutor(max_workers=2) as executor:
        content_future = executor.submit(_with_app_context(moderation.classify), text, link_url)
        link_future = executor.submit(_with_app_context(link_safety.check_link), link_url)
        return content_future.result(), link_future.result()


def decide(
    content: ModerationVerdict,
    link: Optional[LinkVerdict],
) -> tuple[bool, str, List[str]]:
    """
    Fold the two verdicts into (rejected, reason, violation_types).
    """
    link_unsafe = link is not None and not link.is_safe

    if not content.is_violation and not link_unsafe:
        return False, "", []

    types = list(content.violation_types) if content.is_violation else []
    if link_unsafe and "malicious_link" not in types:
        types.append("malicious_link")

    reason = content.reason if content.is_violation else UNSAFE_LINK_REASON
    return True, reason, types


def admit(candidate: Dict[str, Any]) -> AdmitResult:
    """
    Screen a validated candidate post and store it as pending if it passes.

    Args:
        candidate: Output of validate_post_payload

    Returns:
        AdmitResult(accepted=False, reason, violation_types) for rejections,
        AdmitResult(accepted=True, post) with the stored pending post otherwise

    Raises:
        StoreUnavailable: the accepted post could not be written
    """
    author_id = candidate["author"]
    link_url = candidate.get("linkUrl") or None

    content_verdict, link_verdict = _run_checks(build_moderation_text(candidate), link_url)
    rejected, reason, violation_types = decide(content_verdict, link_verdict)

    if rejected:
        trust.record_outcome_best_effort(author_id, was_clean=False)
        log_info(
            "Post rejected by automated screening",
            user_id=author_id,
            types=",".join(violation_types) or "unspecified",
        )
        return AdmitResult(accepted=False, reason=reason, violation_types=violation_types)

    post = supabase_client.create_post(candidate, status=POST_STATUS_PENDING)
    trust.record_outcome_best_effort(author_id, was_clean=True)
    log_info("Post admitted for review", user_id=author_id, post_id=post.get("id"))

    signals.emit(signals.post_admitted, "gate", post=post)
    return AdmitResult(accepted=True, post=post)
