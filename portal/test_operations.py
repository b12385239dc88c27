"""
portal/test_operations.py

Tests for tenant-scoped resource operations against a real SQLite database.

Tests:
1. Single-resource reads/writes are tenant-scoped (403/404)
2. Bulk approve/reject is all-or-nothing
3. Primary contact stays exclusive per client
4. Scheduled publish sweep is idempotent and keeps one timestamp per sweep
5. Mark-all-read touches only the caller's and global notifications
6. Social content styles, campaign review, messages and private notes
7. Store range filters and literal search terms

Run:
    pytest portal/test_operations.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from portal.db import Between, Search, Store, to_iso
from portal.errors import Conflict, Forbidden, Internal, InvalidArgument, NotFound
from portal.models import ALL_ROLES
from portal.operations import (
    bulk_transition,
    create_contact,
    create_message,
    create_note,
    create_notification,
    create_owned,
    create_social_post,
    delete_note,
    get_owned,
    list_notes,
    list_scoped,
    mark_all_read,
    mark_message_read,
    publish_scheduled,
    review_social_post,
    set_primary_contact,
    update_campaign,
    update_contact,
    update_note,
    update_notification,
    update_owned,
    update_social_post,
)
from portal.slugs import generate_slug, unique_slug

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def iso(hours=0):
    return to_iso(NOW + timedelta(hours=hours))


def fetch(db, table, row_id):
    with db.transaction() as store:
        return store.find(table, row_id)


# =============================================================================
# Single-resource operations
# =============================================================================

class TestSingleResource:
    def test_client_reads_own_post(self, db, seed, add_post):
        post = add_post("blog_posts", seed["a"])
        assert get_owned(db, seed["client_a"], "blog_posts", post["id"])["id"] == post["id"]

    def test_client_cannot_read_other_tenant_post(self, db, seed, add_post):
        post = add_post("blog_posts", seed["b"])
        with pytest.raises(Forbidden):
            get_owned(db, seed["client_a"], "blog_posts", post["id"])

    def test_missing_post_is_not_found(self, db, seed):
        with pytest.raises(NotFound) as exc:
            get_owned(db, seed["client_a"], "blog_posts", "does-not-exist")
        assert exc.value.message == "Post not found"

    def test_agency_reads_any_tenant(self, db, seed, add_post):
        post = add_post("social_posts", seed["b"])
        assert get_owned(db, seed["agency"], "social_posts", post["id"])["client_id"] == seed["b"]

    def test_list_ignores_foreign_tenant_filter_for_clients(self, db, seed, add_post):
        add_post("blog_posts", seed["a"])
        add_post("blog_posts", seed["b"])
        rows = list_scoped(db, seed["client_a"], "blog_posts", filters={"client_id": seed["b"]})
        assert [r["client_id"] for r in rows] == [seed["a"]]

    def test_agency_list_can_filter_by_tenant(self, db, seed, add_post):
        add_post("blog_posts", seed["a"])
        add_post("blog_posts", seed["b"])
        rows = list_scoped(db, seed["agency"], "blog_posts", filters={"client_id": seed["b"]})
        assert [r["client_id"] for r in rows] == [seed["b"]]

    def test_client_create_is_forced_into_own_tenant(self, db, seed):
        row = create_owned(
            db, seed["client_a"], "projects", {"client_id": seed["b"], "name": "Launch"}, roles=ALL_ROLES
        )
        assert row["client_id"] == seed["a"]

    def test_create_for_unknown_client_is_not_found(self, db, seed):
        with pytest.raises(NotFound):
            create_owned(db, seed["agency"], "projects", {"client_id": "nope", "name": "Launch"})

    def test_create_requires_client_id(self, db, seed):
        with pytest.raises(InvalidArgument):
            create_owned(db, seed["agency"], "projects", {"name": "Launch"})

    def test_disabled_feature_blocks_content_creation(self, db, seed):
        with db.transaction() as store:
            store.update("clients", seed["b"], {"blogs_enabled": False})
        with pytest.raises(Forbidden):
            create_owned(
                db, seed["agency"], "blog_posts",
                {"client_id": seed["b"], "title": "T", "content": "C", "slug": "t"},
            )

    def test_client_cannot_use_agency_operation(self, db, seed):
        with pytest.raises(Forbidden):
            create_owned(db, seed["client_a"], "projects", {"client_id": seed["a"], "name": "X"})

    def test_update_gated_on_status(self, db, seed, add_post):
        post = add_post("blog_posts", seed["a"], status="approved")
        with pytest.raises(InvalidArgument) as exc:
            update_owned(
                db, seed["agency"], "blog_posts", post["id"], {"title": "New"},
                editable_statuses={"draft", "rejected"},
            )
        assert "draft or rejected" in exc.value.message
        assert fetch(db, "blog_posts", post["id"])["title"] == "Post"

    def test_update_returns_fresh_row(self, db, seed, add_post):
        post = add_post("blog_posts", seed["a"], status="draft")
        updated = update_owned(db, seed["agency"], "blog_posts", post["id"], {"title": "New"})
        assert updated["title"] == "New"
        assert updated["updated_at"] >= post["updated_at"]

    def test_duplicate_invoice_number_conflicts(self, db, seed):
        invoice = {"client_id": seed["a"], "number": "INV-001", "amount": 100.0, "due_date": iso()}
        create_owned(db, seed["agency"], "invoices", invoice)
        with pytest.raises(Conflict):
            create_owned(db, seed["agency"], "invoices", {**invoice, "client_id": seed["b"]})


# =============================================================================
# Bulk transition
# =============================================================================

class TestBulkTransition:
    def test_foreign_id_rejects_whole_batch(self, db, seed, add_post):
        p1 = add_post("blog_posts", seed["a"])
        p3 = add_post("blog_posts", seed["b"])

        with pytest.raises(Forbidden) as exc:
            bulk_transition(db, seed["client_a"], "blog_posts", [p1["id"], p3["id"]], "approve")

        assert exc.value.message == "Some posts not found or unauthorized"
        assert fetch(db, "blog_posts", p1["id"])["status"] == "pending_review"
        assert fetch(db, "blog_posts", p3["id"])["status"] == "pending_review"

    def test_missing_id_rejects_whole_batch(self, db, seed, add_post):
        p1 = add_post("social_posts", seed["a"])
        with pytest.raises(Forbidden):
            bulk_transition(db, seed["client_a"], "social_posts", [p1["id"], "ghost"], "reject", "No")
        assert fetch(db, "social_posts", p1["id"])["status"] == "pending_review"

    def test_approve_all_in_scope(self, db, seed, add_post):
        p1 = add_post("blog_posts", seed["a"])
        p2 = add_post("blog_posts", seed["a"], status="rejected", rejection_reason="Too long")

        result = bulk_transition(db, seed["client_a"], "blog_posts", [p1["id"], p2["id"]], "approve")

        assert result["success"] is True
        assert result["count"] == 2
        assert result["message"] == "Approved 2 post(s)"
        for pid in (p1["id"], p2["id"]):
            row = fetch(db, "blog_posts", pid)
            assert row["status"] == "approved"
            assert row["rejection_reason"] is None

    def test_short_update_fails_and_changes_nothing(self, db, seed, add_post, monkeypatch):
        p1 = add_post("blog_posts", seed["a"])
        p2 = add_post("blog_posts", seed["a"])
        real_update_many = Store.update_many

        def one_row_short(self, table_name, filters, values):
            return real_update_many(self, table_name, filters, values) - 1

        monkeypatch.setattr(Store, "update_many", one_row_short)

        with pytest.raises(Internal) as exc:
            bulk_transition(db, seed["client_a"], "blog_posts", [p1["id"], p2["id"]], "approve")

        assert exc.value.message == "Failed to perform bulk action"
        assert fetch(db, "blog_posts", p1["id"])["status"] == "pending_review"
        assert fetch(db, "blog_posts", p2["id"])["status"] == "pending_review"

    def test_reject_records_reason(self, db, seed, add_post):
        p1 = add_post("social_posts", seed["b"])
        result = bulk_transition(db, seed["client_b"], "social_posts", [p1["id"]], "reject", "Off brand")
        assert result["message"] == "Rejected 1 post(s)"
        row = fetch(db, "social_posts", p1["id"])
        assert row["status"] == "rejected"
        assert row["rejection_reason"] == "Off brand"

    def test_duplicate_ids_collapse(self, db, seed, add_post):
        p1 = add_post("blog_posts", seed["a"])
        result = bulk_transition(db, seed["client_a"], "blog_posts", [p1["id"], p1["id"]], "approve")
        assert result["count"] == 1
        assert result["ids"] == [p1["id"]]

    def test_published_post_conflicts(self, db, seed, add_post):
        p1 = add_post("blog_posts", seed["a"])
        p2 = add_post("blog_posts", seed["a"], status="published")
        with pytest.raises(Conflict):
            bulk_transition(db, seed["client_a"], "blog_posts", [p1["id"], p2["id"]], "reject")
        assert fetch(db, "blog_posts", p1["id"])["status"] == "pending_review"

    @pytest.mark.parametrize("ids", [[], None, "abc"])
    def test_ids_required(self, db, seed, ids):
        with pytest.raises(InvalidArgument) as exc:
            bulk_transition(db, seed["client_a"], "blog_posts", ids, "approve")
        assert exc.value.message == "ids array is required"

    def test_unknown_action(self, db, seed, add_post):
        p1 = add_post("blog_posts", seed["a"])
        with pytest.raises(InvalidArgument) as exc:
            bulk_transition(db, seed["client_a"], "blog_posts", [p1["id"]], "publish")
        assert exc.value.message == "action must be one of: approve, reject"

    def test_agency_cannot_bulk_review(self, db, seed, add_post):
        p1 = add_post("blog_posts", seed["a"])
        with pytest.raises(Forbidden):
            bulk_transition(db, seed["agency"], "blog_posts", [p1["id"]], "approve")

    def test_unsupported_table(self, db, seed):
        with pytest.raises(InvalidArgument):
            bulk_transition(db, seed["client_a"], "contacts", ["x"], "approve")


# =============================================================================
# Primary contact exclusivity
# =============================================================================

def _contact(client_id, name, primary=False):
    return {"client_id": client_id, "first_name": name, "last_name": "Doe", "is_primary": primary}


class TestPrimaryContact:
    def _primaries(self, db, client_id):
        with db.transaction() as store:
            return [c["id"] for c in store.find_many("contacts", {"client_id": client_id, "is_primary": True})]

    def test_new_primary_demotes_previous(self, db, seed):
        c1 = create_contact(db, seed["agency"], _contact(seed["a"], "Ann", primary=True))
        c2 = create_contact(db, seed["agency"], _contact(seed["a"], "Bob", primary=True))
        assert self._primaries(db, seed["a"]) == [c2["id"]]
        assert c1["is_primary"] is True
        assert fetch(db, "contacts", c1["id"])["is_primary"] is False

    def test_set_primary_is_exclusive_per_client(self, db, seed):
        c1 = create_contact(db, seed["agency"], _contact(seed["a"], "Ann", primary=True))
        c2 = create_contact(db, seed["agency"], _contact(seed["a"], "Bob"))
        other = create_contact(db, seed["agency"], _contact(seed["b"], "Cat", primary=True))

        result = set_primary_contact(db, seed["agency"], c2["id"])

        assert result["is_primary"] is True
        assert self._primaries(db, seed["a"]) == [c2["id"]]
        assert self._primaries(db, seed["b"]) == [other["id"]]
        assert fetch(db, "contacts", c1["id"])["is_primary"] is False

    def test_update_to_primary(self, db, seed):
        c1 = create_contact(db, seed["agency"], _contact(seed["a"], "Ann", primary=True))
        c2 = create_contact(db, seed["agency"], _contact(seed["a"], "Bob"))
        update_contact(db, seed["agency"], c2["id"], {"is_primary": True, "phone": "555"})
        assert self._primaries(db, seed["a"]) == [c2["id"]]
        assert fetch(db, "contacts", c2["id"])["phone"] == "555"
        assert fetch(db, "contacts", c1["id"])["is_primary"] is False

    def test_client_cannot_set_primary(self, db, seed):
        c1 = create_contact(db, seed["agency"], _contact(seed["a"], "Ann"))
        with pytest.raises(Forbidden):
            set_primary_contact(db, seed["client_a"], c1["id"])

    def test_missing_contact(self, db, seed):
        with pytest.raises(NotFound):
            set_primary_contact(db, seed["agency"], "ghost")


# =============================================================================
# Scheduled publish sweep
# =============================================================================

class TestPublishScheduled:
    def test_sweep_publishes_due_approved_posts_once(self, db, seed, add_post):
        due = add_post("social_posts", seed["a"], status="approved", scheduled_at=iso(-1))
        later = add_post("social_posts", seed["a"], status="approved", scheduled_at=iso(1))
        pending = add_post("social_posts", seed["a"], status="pending_review", scheduled_at=iso(-1))
        unscheduled = add_post("social_posts", seed["a"], status="approved")

        first = publish_scheduled(db, seed["agency"], now=NOW)
        assert first["count"] == 1
        assert first["post_ids"] == [due["id"]]
        assert first["published_at"] == iso()
        assert first["message"] == "Successfully published 1 post(s)"

        second = publish_scheduled(db, seed["agency"], now=NOW)
        assert second["count"] == 0
        assert second["message"] == "No posts to publish"

        third = publish_scheduled(db, seed["agency"], now=NOW + timedelta(hours=2))
        assert third["post_ids"] == [later["id"]]

        # Published posts keep the timestamp of the sweep that published them
        assert fetch(db, "social_posts", due["id"])["published_at"] == iso()
        assert fetch(db, "social_posts", later["id"])["published_at"] == iso(2)
        assert fetch(db, "social_posts", pending["id"])["status"] == "pending_review"
        assert fetch(db, "social_posts", unscheduled["id"])["published_at"] is None

    def test_one_timestamp_per_sweep(self, db, seed, add_post):
        ids = [
            add_post("social_posts", tenant, status="approved", scheduled_at=iso(-h))["id"]
            for tenant, h in ((seed["a"], 3), (seed["a"], 2), (seed["b"], 1))
        ]
        result = publish_scheduled(db, seed["agency"], now=NOW)
        assert sorted(result["post_ids"]) == sorted(ids)
        stamps = {fetch(db, "social_posts", pid)["published_at"] for pid in ids}
        assert stamps == {result["published_at"]}

    def test_sweeps_at_same_instant_publish_each_post_once(self, db, seed, add_post):
        ids = {add_post("social_posts", seed["a"], status="approved", scheduled_at=iso(-1))["id"] for _ in range(3)}

        first = publish_scheduled(db, seed["agency"], now=NOW)
        second = publish_scheduled(db, seed["client_a"], now=NOW)

        assert first["count"] + second["count"] == 3
        assert set(first["post_ids"]) == ids
        assert second["post_ids"] == []

    def test_rows_published_by_overlapping_sweep_are_not_reported(self, db, seed, add_post, monkeypatch):
        taken = add_post("social_posts", seed["a"], status="approved", scheduled_at=iso(-2))
        left = add_post("social_posts", seed["a"], status="approved", scheduled_at=iso(-1))
        real_find_many = Store.find_many
        state = {"done": False}

        def find_then_race(self, table_name, filters=None, *args, **kwargs):
            rows = real_find_many(self, table_name, filters, *args, **kwargs)
            if table_name == "social_posts" and not state["done"]:
                state["done"] = True
                # Another sweep with the same timestamp publishes one row first
                self.update("social_posts", taken["id"], {"status": "published", "published_at": iso()})
            return rows

        monkeypatch.setattr(Store, "find_many", find_then_race)

        result = publish_scheduled(db, seed["agency"], now=NOW)

        assert result["count"] == 1
        assert result["post_ids"] == [left["id"]]
        assert fetch(db, "social_posts", taken["id"])["status"] == "published"

    def test_client_sweep_stays_in_tenant(self, db, seed, add_post):
        own = add_post("social_posts", seed["a"], status="approved", scheduled_at=iso(-1))
        foreign = add_post("social_posts", seed["b"], status="approved", scheduled_at=iso(-1))

        result = publish_scheduled(db, seed["client_a"], now=NOW)

        assert result["post_ids"] == [own["id"]]
        assert fetch(db, "social_posts", foreign["id"])["status"] == "approved"

    def test_requires_session(self, db):
        from portal.errors import Unauthenticated

        with pytest.raises(Unauthenticated):
            publish_scheduled(db, None, now=NOW)


# =============================================================================
# Single social post review
# =============================================================================

class TestReviewSocialPost:
    def test_approve_pending(self, db, seed, add_post):
        post = add_post("social_posts", seed["a"])
        assert review_social_post(db, seed["client_a"], post["id"], "approve")["status"] == "approved"

    def test_reject_requires_reason(self, db, seed, add_post):
        post = add_post("social_posts", seed["a"])
        with pytest.raises(InvalidArgument) as exc:
            review_social_post(db, seed["client_a"], post["id"], "reject")
        assert exc.value.message == "Rejection reason is required"

    def test_only_pending_posts(self, db, seed, add_post):
        post = add_post("social_posts", seed["a"], status="draft")
        with pytest.raises(InvalidArgument):
            review_social_post(db, seed["client_a"], post["id"], "approve")

    def test_foreign_post(self, db, seed, add_post):
        post = add_post("social_posts", seed["b"])
        with pytest.raises(Forbidden):
            review_social_post(db, seed["client_a"], post["id"], "approve")


# =============================================================================
# Notifications
# =============================================================================

class TestNotifications:
    def _notify(self, db, seed, client_id, **extra):
        values = {"title": "Hello", "client_id": client_id, **extra}
        return create_notification(db, seed["agency"], values)

    def test_mark_all_read_scoped_to_tenant_and_global(self, db, seed):
        own = self._notify(db, seed, seed["a"])
        shared = self._notify(db, seed, None)
        foreign = self._notify(db, seed, seed["b"])

        result = mark_all_read(db, seed["client_a"], now=NOW)

        assert result == {"success": True, "count": 2}
        assert fetch(db, "notifications", own["id"])["read_at"] == iso()
        assert fetch(db, "notifications", shared["id"])["is_read"] is True
        assert fetch(db, "notifications", foreign["id"])["is_read"] is False

    def test_mark_all_read_twice(self, db, seed):
        self._notify(db, seed, seed["a"])
        mark_all_read(db, seed["client_a"], now=NOW)
        assert mark_all_read(db, seed["client_a"], now=NOW)["count"] == 0

    def test_agency_cannot_mark_all_read(self, db, seed):
        with pytest.raises(Forbidden):
            mark_all_read(db, seed["agency"])

    def test_global_notification_listed_for_clients(self, db, seed):
        shared = self._notify(db, seed, "")
        self._notify(db, seed, seed["b"])
        rows = list_scoped(db, seed["client_a"], "notifications", allow_global=True)
        assert [r["id"] for r in rows] == [shared["id"]]
        assert shared["client_id"] is None

    def test_client_may_only_mark_read(self, db, seed):
        note = self._notify(db, seed, seed["a"])
        with pytest.raises(InvalidArgument):
            update_notification(db, seed["client_a"], note["id"], {"title": "Edited"})
        updated = update_notification(db, seed["client_a"], note["id"], {"is_read": True}, now=NOW)
        assert updated["is_read"] is True
        assert updated["title"] == "Hello"

    def test_client_cannot_touch_foreign_notification(self, db, seed):
        note = self._notify(db, seed, seed["b"])
        with pytest.raises(Forbidden):
            update_notification(db, seed["client_a"], note["id"], {"is_read": True})

    def test_unknown_client(self, db, seed):
        with pytest.raises(NotFound):
            self._notify(db, seed, "ghost")

    def test_move_to_unknown_client_is_not_found(self, db, seed):
        note = self._notify(db, seed, seed["a"])
        with pytest.raises(NotFound) as exc:
            update_notification(db, seed["agency"], note["id"], {"client_id": "nope"})
        assert exc.value.message == "Client not found"
        assert fetch(db, "notifications", note["id"])["client_id"] == seed["a"]

    def test_agency_moves_notification(self, db, seed):
        note = self._notify(db, seed, seed["a"])
        moved = update_notification(db, seed["agency"], note["id"], {"client_id": seed["b"]})
        assert moved["client_id"] == seed["b"]
        assert update_notification(db, seed["agency"], note["id"], {"client_id": ""})["client_id"] is None


# =============================================================================
# Slugs / transactions
# =============================================================================

class TestSlugs:
    def test_generate_slug(self):
        assert generate_slug("  Hello, World!  Again ") == "hello-world-again"
        assert generate_slug("a -- b") == "a-b"

    def test_unique_slug_appends_counter(self, db, seed, add_post):
        first = add_post("blog_posts", seed["a"], slug="hello-world")
        add_post("blog_posts", seed["a"], slug="hello-world-1")
        with db.transaction() as store:
            assert unique_slug(store, "Hello World") == "hello-world-2"
            assert unique_slug(store, "Hello World", exclude_id=first["id"]) == "hello-world"


def test_transaction_rolls_back_on_error(db, seed, add_post):
    post = add_post("blog_posts", seed["a"])
    with pytest.raises(RuntimeError):
        with db.transaction() as store:
            store.update("blog_posts", post["id"], {"status": "approved"})
            raise RuntimeError("boom")
    assert fetch(db, "blog_posts", post["id"])["status"] == "pending_review"


# =============================================================================
# Social posts
# =============================================================================

class TestSocialPosts:
    def _values(self, seed, **extra):
        return {"client_id": seed["a"], "platform": "instagram", "content_style": "post", "caption": "Hi", **extra}

    def test_create_stores_images_as_json(self, db, seed):
        post = create_social_post(db, seed["agency"], self._values(seed, images=["a.png", "b.png"]))
        assert post["images"] == '["a.png", "b.png"]'
        assert post["content_style"] == "post"

    def test_platform_style_and_client_required(self, db, seed):
        with pytest.raises(InvalidArgument) as exc:
            create_social_post(db, seed["agency"], self._values(seed, content_style=None))
        assert exc.value.message == "Platform, content style, and client ID are required"

    @pytest.mark.parametrize(
        "extra, message",
        [
            ({"content_style": "reel"}, "Video is required for this content style"),
            ({"platform": "linkedin", "content_style": "article"}, "Link is required for this content style"),
            ({"content_style": "carousel", "images": ["a.png"]}, "At least 2 image(s) required for this content style"),
            ({"content_style": "story", "images": ["a.png", "b.png"]}, "Maximum 1 image(s) allowed for this content style"),
            ({"platform": "twitter", "content_style": "tweet", "caption": "x" * 281}, "Content must be 280 characters or less"),
        ],
    )
    def test_content_style_rules(self, db, seed, extra, message):
        with pytest.raises(InvalidArgument) as exc:
            create_social_post(db, seed["agency"], self._values(seed, **extra))
        assert exc.value.message == message

    def test_style_must_belong_to_platform(self, db, seed):
        with pytest.raises(InvalidArgument):
            create_social_post(db, seed["agency"], self._values(seed, platform="tiktok"))

    def test_update_is_checked_against_merged_post(self, db, seed):
        post = create_social_post(db, seed["agency"], self._values(seed, platform="twitter", content_style="tweet"))
        with pytest.raises(InvalidArgument):
            update_social_post(db, seed["agency"], post["id"], {"caption": "x" * 300})
        assert fetch(db, "social_posts", post["id"])["caption"] == "Hi"

    def test_resubmit_clears_rejection_reason(self, db, seed, add_post):
        post = add_post("social_posts", seed["a"], status="rejected", rejection_reason="Off brand")
        updated = update_social_post(db, seed["agency"], post["id"], {"status": "pending_review"})
        assert updated["status"] == "pending_review"
        assert updated["rejection_reason"] is None

    def test_client_cannot_edit(self, db, seed, add_post):
        post = add_post("social_posts", seed["a"])
        with pytest.raises(Forbidden):
            update_social_post(db, seed["client_a"], post["id"], {"caption": "Mine"})


# =============================================================================
# Campaigns
# =============================================================================

class TestCampaigns:
    def _campaign(self, db, seed, client_id, status="REVIEW"):
        return create_owned(db, seed["agency"], "campaigns", {"client_id": client_id, "name": "Spring", "status": status})

    def test_disabled_flag_blocks_creation(self, db, seed):
        with db.transaction() as store:
            store.update("clients", seed["a"], {"campaigns_enabled": False})
        with pytest.raises(Forbidden):
            self._campaign(db, seed, seed["a"])

    def test_client_rejects_with_reason(self, db, seed):
        campaign = self._campaign(db, seed, seed["a"])
        with pytest.raises(InvalidArgument) as exc:
            update_campaign(db, seed["client_a"], campaign["id"], {"status": "REJECTED"})
        assert exc.value.message == "Rejection reason is required when rejecting a campaign"

        updated = update_campaign(
            db, seed["client_a"], campaign["id"], {"status": "REJECTED", "rejection_reason": " Too late "}
        )
        assert updated["status"] == "REJECTED"
        assert updated["rejection_reason"] == "Too late"

    def test_client_only_decides_campaigns_in_review(self, db, seed):
        draft = self._campaign(db, seed, seed["a"], status="DRAFT")
        with pytest.raises(InvalidArgument):
            update_campaign(db, seed["client_a"], draft["id"], {"status": "APPROVED"})
        with pytest.raises(InvalidArgument):
            update_campaign(db, seed["client_a"], draft["id"], {"name": "Renamed", "status": "ACTIVE"})

    def test_client_cannot_decide_foreign_campaign(self, db, seed):
        campaign = self._campaign(db, seed, seed["b"])
        with pytest.raises(Forbidden):
            update_campaign(db, seed["client_a"], campaign["id"], {"status": "APPROVED"})
        assert fetch(db, "campaigns", campaign["id"])["status"] == "REVIEW"

    def test_agency_edits_any_field(self, db, seed):
        campaign = self._campaign(db, seed, seed["a"])
        updated = update_campaign(db, seed["agency"], campaign["id"], {"name": "Summer", "status": "SCHEDULED"})
        assert (updated["name"], updated["status"]) == ("Summer", "SCHEDULED")


# =============================================================================
# Messages
# =============================================================================

class TestMessages:
    def test_client_message_lands_in_own_tenant(self, db, seed):
        message = create_message(db, seed["client_a"], {"content": "  Hello  ", "client_id": seed["b"]})
        assert message["client_id"] == seed["a"]
        assert message["content"] == "Hello"
        assert message["sender_id"] == seed["client_a"].user_id

    def test_content_required(self, db, seed):
        with pytest.raises(InvalidArgument) as exc:
            create_message(db, seed["client_a"], {"content": "   "})
        assert exc.value.message == "Message content is required"

    def test_agency_must_name_client(self, db, seed):
        with pytest.raises(InvalidArgument):
            create_message(db, seed["agency"], {"content": "Hi"})

    def test_mark_read_is_tenant_scoped(self, db, seed):
        message = create_message(db, seed["agency"], {"content": "Invoice sent", "client_id": seed["b"]})
        with pytest.raises(Forbidden):
            mark_message_read(db, seed["client_a"], message["id"], now=NOW)
        updated = mark_message_read(db, seed["client_b"], message["id"], now=NOW)
        assert updated["is_read"] is True
        assert updated["read_at"] == iso()


# =============================================================================
# CRM notes
# =============================================================================

class TestNotes:
    def test_private_note_hidden_from_other_staff(self, db, seed):
        shared = create_note(db, seed["agency"], {"client_id": seed["a"], "content": "Renewal in May"})
        private = create_note(db, seed["agency"], {"client_id": seed["a"], "content": "Churn risk", "is_private": True})
        own = create_note(db, seed["staff"], {"client_id": seed["a"], "content": "Mine", "is_private": True})

        staff_view = {n["id"] for n in list_notes(db, seed["staff"], seed["a"])}
        admin_view = {n["id"] for n in list_notes(db, seed["agency"], seed["a"])}

        assert staff_view == {shared["id"], own["id"]}
        assert admin_view == {shared["id"], private["id"], own["id"]}
        assert private["user_id"] == seed["agency"].user_id

    def test_only_author_or_admin_edits_private_note(self, db, seed):
        note = create_note(db, seed["staff"], {"client_id": seed["a"], "content": "Draft", "is_private": True})
        admin_note = create_note(db, seed["agency"], {"client_id": seed["a"], "content": "Secret", "is_private": True})

        assert update_note(db, seed["agency"], note["id"], {"content": "Reviewed"})["content"] == "Reviewed"
        with pytest.raises(Forbidden):
            update_note(db, seed["staff"], admin_note["id"], {"content": "Peek"})
        with pytest.raises(Forbidden):
            delete_note(db, seed["staff"], admin_note["id"])
        assert fetch(db, "notes", admin_note["id"])["content"] == "Secret"

    def test_missing_note(self, db, seed):
        with pytest.raises(NotFound) as exc:
            delete_note(db, seed["agency"], "ghost")
        assert exc.value.message == "Note not found"

    def test_clients_have_no_notes_access(self, db, seed):
        with pytest.raises(Forbidden):
            list_notes(db, seed["client_a"], seed["a"])


# =============================================================================
# Store filters
# =============================================================================

class TestStoreFilters:
    def test_between_applies_both_bounds(self, db, seed):
        with db.transaction() as store:
            for number, days in (("I-1", 1), ("I-2", 10), ("I-3", 20)):
                store.create("invoices", {"client_id": seed["a"], "number": number, "amount": 1, "due_date": iso(24 * days)})
            rows = store.find_many("invoices", {"due_date": Between(iso(24 * 5), iso(24 * 15))})
            open_high = store.find_many("invoices", {"due_date": Between(iso(24 * 5), None)}, order_by=("number",))
        assert [r["number"] for r in rows] == ["I-2"]
        assert [r["number"] for r in open_high] == ["I-2", "I-3"]

    @pytest.mark.parametrize("term, expected", [("100%", {"100% organic"}), ("a_b", {"a_b plan"}), ("\\", {"back\\slash"})])
    def test_search_matches_wildcards_literally(self, db, seed, add_post, term, expected):
        for title in ("100% organic", "1000 organic", "a_b plan", "axb plan", "back\\slash"):
            add_post("blog_posts", seed["a"], title=title)
        with db.transaction() as store:
            rows = store.find_many("blog_posts", search=Search(("title",), term))
        assert {r["title"] for r in rows} == expected
