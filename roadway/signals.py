"""
In-process events emitted by the moderation services.

The gate and the review service announce what happened; side effects that
must not affect the decision (notifications) subscribe here. `emit` never lets
a receiver failure escape into the request that produced the event.
"""

from __future__ import annotations

from blinker import Namespace

from roadway.utils.errors import log_error

_signals = Namespace()

# sender: "gate"; kwargs: post (stored post, API shape)
post_admitted = _signals.signal("post-admitted")

# sender: "review"; kwargs: post, decision ("approved" | "rejected"), reviewer_id
post_reviewed = _signals.signal("post-reviewed")


def emit(signal, sender: str, **kwargs) -> None:
    """Send a signal; receiver exceptions are logged and swallowed."""
    try:
        signal.send(sender, **kwargs)
    except Exception as e:
        log_error(f"Event receiver failed for {signal.name}: {e}")
