import pytest

from roadway.constants import DEFAULT_REJECT_REASON
from roadway.services import review
from roadway.utils.errors import Conflict, Forbidden, NotFound, ValidationError


@pytest.fixture
def posts(db):
    db.add_post("user1", "approved", "2024-05-01T10:00:00+00:00", id="p_old_approved")
    db.add_post("user1", "pending", "2024-05-02T10:00:00+00:00", id="p_pending_1")
    db.add_post("user2", "rejected", "2024-05-03T10:00:00+00:00", id="p_rejected")
    db.add_post("user2", "pending", "2024-05-04T10:00:00+00:00", id="p_pending_2")
    db.add_post("user2", "approved", "2024-05-05T10:00:00+00:00", id="p_new_approved")
    return db


class TestListPending:
    def test_admin_gets_pending_newest_first(self, ctx, posts):
        result = review.list_pending("admin1")

        assert [p["id"] for p in result] == ["p_pending_2", "p_pending_1"]
        assert {p["status"] for p in result} == {"pending"}

    def test_non_admin_is_forbidden(self, ctx, posts):
        with pytest.raises(Forbidden):
            review.list_pending("user1")

    def test_unknown_user_is_not_found(self, ctx, posts):
        with pytest.raises(NotFound):
            review.list_pending("nobody")

    def test_missing_user_is_invalid(self, ctx, posts):
        with pytest.raises(ValidationError):
            review.list_pending(None)


class TestListing:
    def test_approved_only_by_default(self, ctx, posts):
        result = review.list_posts("admin1")

        assert [p["id"] for p in result] == ["p_new_approved", "p_old_approved"]

    def test_admin_can_include_pending(self, ctx, posts):
        result = review.list_posts("admin1", include_pending=True)

        assert [p["id"] for p in result] == [
            "p_new_approved", "p_pending_2", "p_pending_1", "p_old_approved",
        ]

    def test_non_admin_include_pending_is_ignored(self, ctx, posts):
        result = review.list_posts("user1", include_pending=True)

        assert {p["status"] for p in result} == {"approved"}

    def test_pagination(self, ctx, posts):
        result = review.list_approved(limit=1, offset=1)

        assert [p["id"] for p in result] == ["p_old_approved"]


class TestVisibility:
    def test_approved_post_is_public(self, ctx, posts):
        assert review.get_visible_post("p_old_approved")["id"] == "p_old_approved"

    @pytest.mark.parametrize("post_id", ["p_pending_1", "p_rejected"])
    def test_hidden_from_non_admins(self, ctx, posts, post_id):
        with pytest.raises(NotFound):
            review.get_visible_post(post_id, "user1")

    def test_admin_sees_pending(self, ctx, posts):
        assert review.get_visible_post("p_pending_1", "admin1")["status"] == "pending"


class TestApprove:
    def test_approve_pending(self, ctx, posts):
        post = review.approve("p_pending_1", "admin1")

        assert post["status"] == "approved"
        assert post["approvedBy"] == "admin1"
        assert post["approvedAt"]
        assert posts.post("p_pending_1")["status"] == "approved"

    def test_approve_is_not_a_trust_event(self, ctx, posts):
        posts.profile("user1").update(clean_post_count=3, post_violations=1)

        review.approve("p_pending_1", "admin1")

        profile = posts.profile("user1")
        assert profile["clean_post_count"] == 3
        assert profile["post_violations"] == 1

    def test_non_admin_cannot_approve(self, ctx, posts):
        with pytest.raises(Forbidden):
            review.approve("p_pending_1", "user2")
        assert posts.post("p_pending_1")["status"] == "pending"

    def test_missing_post(self, ctx, posts):
        with pytest.raises(NotFound):
            review.approve("p_missing", "admin1")

    def test_already_decided(self, ctx, posts):
        with pytest.raises(Conflict) as exc:
            review.approve("p_rejected", "admin1")
        assert "rejected" in exc.value.message

    def test_lost_race_is_a_conflict(self, ctx, posts):
        def other_reviewer(fake):
            fake.post("p_pending_1")["status"] = "rejected"

        posts.before_update = other_reviewer

        with pytest.raises(Conflict):
            review.approve("p_pending_1", "admin1")
        assert posts.post("p_pending_1")["status"] == "rejected"


class TestReject:
    def test_reject_counts_against_author(self, ctx, posts):
        posts.profile("user1").update(clean_post_count=3, post_violations=1)

        post = review.reject("p_pending_1", "admin1", "Off-topic advertising")

        assert post["status"] == "rejected"
        assert post["moderationReason"] == "Off-topic advertising"
        assert post["rejectedBy"] == "admin1"
        profile = posts.profile("user1")
        assert profile["clean_post_count"] == 0
        assert profile["post_violations"] == 2

    def test_default_reason(self, ctx, posts):
        post = review.reject("p_pending_2", "admin1")

        assert post["moderationReason"] == DEFAULT_REJECT_REASON

    def test_cannot_reject_approved(self, ctx, posts):
        with pytest.raises(Conflict):
            review.reject("p_old_approved", "admin1")
        assert posts.profile("user1")["post_violations"] == 0
