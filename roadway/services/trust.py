"""
Trust ledger: per-user moderation history counters.

Every moderation decision that affects a user is recorded here exactly once:
- clean outcome: clean_post_count += 1; crossing TRUST_THRESHOLD sets is_trusted
- violation: post_violations += 1 and clean_post_count resets to 0

is_trusted is never cleared by a violation. Whether a trusted user should lose
that status after later violations is an open policy question; the current
behavior keeps it (see DESIGN.md).

Counters are written with a compare-and-set on the profile row, retried a few
times on contention. If every attempt loses the race the update is dropped and
logged; counters are never written from a stale read.
"""

from __future__ import annotations
from typing import Any, Dict, Optional

from flask import current_app, has_app_context

from roadway.services import supabase_client
from roadway.utils.errors import NotFound, StoreUnavailable, log_error, log_info, log_warning

DEFAULT_TRUST_THRESHOLD = 5
MAX_CAS_ATTEMPTS = 3


def _trust_threshold() -> int:
    if has_app_context():
        return int(current_app.config.get("TRUST_THRESHOLD", DEFAULT_TRUST_THRESHOLD))
    return DEFAULT_TRUST_THRESHOLD


def _counters(profile: Dict[str, Any]) -> Dict[str, Any]:
    return {column: profile.get(column) for column in supabase_client.TRUST_COLUMNS}


def next_counters(profile: Dict[str, Any], was_clean: bool, threshold: int) -> Dict[str, Any]:
    """
    Compute the column changes for one outcome.

    Pure function of the current row; the caller writes the result with
    compare-and-set against the same row.
    """
    clean = int(profile.get("clean_post_count") or 0)
    violations = int(profile.get("post_violations") or 0)
    trusted = bool(profile.get("is_trusted"))

    if was_clean:
        changes: Dict[str, Any] = {"clean_post_count": clean + 1}
        if clean + 1 >= threshold and not trusted:
            changes["is_trusted"] = True
        return changes

    return {"post_violations": violations + 1, "clean_post_count": 0}


def record_outcome(user_id: str, was_clean: bool) -> None:
    """
    Record one moderation outcome for a user.

    Args:
        user_id: Author the outcome applies to
        was_clean: True for an admitted post, False for any violation

    Missing users are a no-op (logged): moderation must not fail on a
    dangling author reference. StoreUnavailable propagates to the caller.
    """
    threshold = _trust_threshold()

    for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
        profile = supabase_client.get_user_profile(user_id)
        if not profile:
            log_info("Trust update skipped: user not found", user_id=user_id)
            return

        changes = next_counters(profile, was_clean, threshold)
        if supabase_client.compare_and_set_profile(user_id, _counters(profile), changes):
            if changes.get("is_trusted"):
                log_info("User reached trusted status", user_id=user_id)
            return

        log_info("Trust update contention, retrying", user_id=user_id, attempt=attempt)

    log_warning("Trust update dropped after repeated contention", user_id=user_id, was_clean=was_clean)


def get_trust_record(user_id: str) -> Dict[str, Any]:
    """Return a user's trust counters in API shape, or raise NotFound."""
    profile: Optional[Dict[str, Any]] = supabase_client.get_user_profile(user_id)
    if not profile:
        raise NotFound("User not found")
    return {
        "userId": user_id,
        "cleanPostCount": int(profile.get("clean_post_count") or 0),
        "postViolations": int(profile.get("post_violations") or 0),
        "isTrusted": bool(profile.get("is_trusted")),
    }


def record_outcome_best_effort(user_id: str, was_clean: bool) -> None:
    """
    record_outcome for callers whose own decision is already final.

    A store outage here becomes a lost counter update (logged), never a
    failure of the admission or review that triggered it.
    """
    try:
        record_outcome(user_id, was_clean)
    except StoreUnavailable:
        log_error("Trust update lost: store unavailable", user_id=user_id, was_clean=was_clean)
