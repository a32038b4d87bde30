import pytest

from roadway.constants import INVALID_URL_REASON, LINK_CHECK_FAILED_REASON
from roadway.services import link_safety
from roadway.utils.errors import ExternalServiceUnavailable


@pytest.mark.parametrize("url", ["ftp://example.com/file", "example.com", "javascript:alert(1)", ""])
def test_invalid_scheme_is_unsafe_without_a_call(ctx, classifier, url):
    verdict = link_safety.check_link(url)

    assert verdict.is_safe is False
    assert verdict.risk_level == "high"
    assert verdict.reason == INVALID_URL_REASON
    assert classifier.calls == []


def test_safe_reply(ctx, classifier):
    verdict = link_safety.check_link("https://docs.python.org/3/")

    assert verdict.is_safe is True
    assert verdict.risk_level == "low"
    assert classifier.calls_of("link") == ["URL: https://docs.python.org/3/"]


def test_unsafe_reply(ctx, classifier):
    classifier.link_reply = {
        "isSafe": False,
        "riskLevel": "high",
        "reason": "Known phishing domain",
        "warnings": ["Look-alike domain", "Credential form"],
    }

    verdict = link_safety.check_link("https://paypa1-login.example")

    assert verdict.is_safe is False
    assert verdict.risk_level == "high"
    assert verdict.reason == "Known phishing domain"
    assert verdict.warnings == ["Look-alike domain", "Credential form"]


def test_unavailable_checker_fails_open(ctx, classifier):
    classifier.link_down()

    verdict = link_safety.check_link("https://example.com")

    assert verdict.is_safe is True
    assert verdict.risk_level == "low"
    assert verdict.reason == LINK_CHECK_FAILED_REASON


def test_successful_verdicts_are_cached(ctx, classifier):
    link_safety.check_link("https://example.com/a")
    link_safety.check_link("https://example.com/a")
    link_safety.check_link("https://example.com/b")

    assert len(classifier.calls_of("link")) == 2


def test_fail_open_verdicts_are_not_cached(ctx, classifier):
    classifier.link_down()
    link_safety.check_link("https://example.com/a")

    classifier.link_reply = {"isSafe": False, "riskLevel": "medium", "reason": "scam", "warnings": []}
    verdict = link_safety.check_link("https://example.com/a")

    assert verdict.is_safe is False
    assert len(classifier.calls_of("link")) == 2


def test_disabled_moderation_skips_checker(ctx, classifier):
    ctx.config["MODERATION_ENABLED"] = False

    verdict = link_safety.check_link("https://example.com")

    assert verdict.is_safe is True
    assert classifier.calls == []


class TestParseLinkVerdict:
    def test_requires_boolean_flag(self):
        with pytest.raises(ExternalServiceUnavailable):
            link_safety.parse_link_verdict({"riskLevel": "low"})

    def test_missing_risk_follows_safety(self):
        assert link_safety.parse_link_verdict({"isSafe": True}).risk_level == "low"
        assert link_safety.parse_link_verdict({"isSafe": False}).risk_level == "medium"

    def test_warnings_are_cleaned_and_capped(self):
        verdict = link_safety.parse_link_verdict({
            "isSafe": False,
            "warnings": ["  short\x00link  ", 5, ""] + [f"w{i}" for i in range(20)],
        })
        assert verdict.warnings[0] == "shortlink"
        assert len(verdict.warnings) <= 10
