from roadway import signals
from roadway.constants import UNSAFE_LINK_REASON
from roadway.services import gate
from roadway.services.link_safety import LinkVerdict
from roadway.services.moderation import ModerationVerdict


def _candidate(**overrides):
    candidate = {
        "author": "user1",
        "courseName": "Intro to Databases",
        "review": "Clear lectures and fair exams.",
        "rating": 5,
        "linkUrl": None,
        "repostOf": None,
        "field": None,
        "isCommunityPost": False,
        "imageUrls": [],
    }
    candidate.update(overrides)
    return candidate


def test_clean_post_is_stored_pending(ctx, db, classifier):
    result = gate.admit(_candidate())

    assert result.accepted is True
    assert result.post["status"] == "pending"
    assert result.post["author"] == "user1"
    assert [row["status"] for row in db.tables["posts"]] == ["pending"]
    assert db.profile("user1")["clean_post_count"] == 1


def test_classifier_sees_title_and_body(ctx, classifier):
    gate.admit(_candidate(courseName="  Calculus ", review=" Hard but worth it "))

    assert classifier.calls_of("content")[0].startswith("Post text:\nCalculus\nHard but worth it")


def test_violation_is_never_stored(ctx, db, classifier):
    classifier.violate(reason="hate speech detected", types=["hate_speech"])

    result = gate.admit(_candidate(review="slur"))

    assert result.accepted is False
    assert result.reason == "hate speech detected"
    assert result.violation_types == ["hate_speech"]
    assert db.tables["posts"] == []
    profile = db.profile("user1")
    assert profile["post_violations"] == 1
    assert profile["clean_post_count"] == 0


def test_classifier_outage_admits(ctx, db, classifier):
    classifier.content_down()

    result = gate.admit(_candidate())

    assert result.accepted is True
    assert len(db.tables["posts"]) == 1


def test_both_checkers_down_admits_post_with_link(ctx, db, classifier):
    classifier.content_down()
    classifier.link_down()

    result = gate.admit(_candidate(linkUrl="https://example.com"))

    assert result.accepted is True


def test_unsafe_link_rejects_clean_content(ctx, db, classifier):
    classifier.link_reply = {"isSafe": False, "riskLevel": "high", "reason": "phishing", "warnings": []}

    result = gate.admit(_candidate(linkUrl="https://login-verify.example"))

    assert result.accepted is False
    assert result.reason == UNSAFE_LINK_REASON
    assert result.violation_types == ["malicious_link"]
    assert db.tables["posts"] == []
    assert db.profile("user1")["post_violations"] == 1


def test_invalid_link_scheme_rejects(ctx, db, classifier):
    result = gate.admit(_candidate(linkUrl="ftp://files.example"))

    assert result.accepted is False
    assert result.reason == UNSAFE_LINK_REASON
    assert classifier.calls_of("link") == []


def test_both_checks_run_when_link_present(ctx, classifier):
    gate.admit(_candidate(linkUrl="https://example.com/syllabus"))

    assert len(classifier.calls_of("content")) == 1
    assert classifier.calls_of("link") == ["URL: https://example.com/syllabus"]


def test_admitted_post_emits_event(ctx, classifier):
    received = []

    def receiver(sender, post, **kwargs):
        received.append((sender, post["id"]))

    signals.post_admitted.connect(receiver)
    try:
        result = gate.admit(_candidate())
    finally:
        signals.post_admitted.disconnect(receiver)

    assert received == [("gate", result.post["id"])]


def test_failing_receiver_does_not_fail_admission(ctx, db, classifier):
    def broken(sender, **kwargs):
        raise RuntimeError("sink down")

    signals.post_admitted.connect(broken)
    try:
        result = gate.admit(_candidate())
    finally:
        signals.post_admitted.disconnect(broken)

    assert result.accepted is True
    assert len(db.tables["posts"]) == 1


def test_rejection_survives_trust_store_outage(ctx, db, classifier, monkeypatch):
    from roadway.services import supabase_client
    from roadway.utils.errors import StoreUnavailable

    def unavailable(user_id):
        raise StoreUnavailable()

    classifier.violate()
    monkeypatch.setattr(supabase_client, "get_user_profile", unavailable)

    result = gate.admit(_candidate())

    assert result.accepted is False


class TestDecide:
    def test_clean(self):
        assert gate.decide(ModerationVerdict(), None) == (False, "", [])

    def test_content_reason_wins_over_link(self):
        content = ModerationVerdict(is_violation=True, reason="spam", severity="medium", violation_types=["spam"])
        link = LinkVerdict(is_safe=False, risk_level="high", reason="phishing")

        rejected, reason, types = gate.decide(content, link)

        assert rejected is True
        assert reason == "spam"
        assert types == ["spam", "malicious_link"]

    def test_malicious_link_not_duplicated(self):
        content = ModerationVerdict(is_violation=True, reason="x", violation_types=["malicious_link"])
        link = LinkVerdict(is_safe=False)

        assert gate.decide(content, link)[2] == ["malicious_link"]

    def test_safe_link_keeps_content_verdict(self):
        content = ModerationVerdict(is_violation=True, reason="abuse", violation_types=["abusive"])

        assert gate.decide(content, LinkVerdict()) == (True, "abuse", ["abusive"])
