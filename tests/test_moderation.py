"""Tests for the moderation queue and review state machine."""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from catalog_moderation.core.exceptions import (
    AuthorizationError, ConflictError, DependencyError, NotFoundError,
    NotImplementedFeatureError, ValidationError,
)
from catalog_moderation.db.base import utcnow
from catalog_moderation.models.audit_log import AuditLog
from catalog_moderation.models.submission import Submission
from catalog_moderation.services.moderation_service import SubmissionFilter, moderation_service
from catalog_moderation.services.submission_service import SubmissionService, submission_service

from conftest import grant


@pytest.fixture
def pending(db, artwork):
    return submission_service.create_submission(
        db,
        submission_type="field_edit",
        subject_type="artwork",
        subject_ref="aw-1",
        actor_token="user-w",
        payload_old={"title": "Digital Orca"},
        payload_new={"title": "Orca"},
    )


@pytest.fixture
def moderator(db):
    grant(db, "mod-m", "moderator")
    return "mod-m"


def bulk_pending(db, count, **fields):
    now = utcnow()
    for i in range(count):
        db.add(Submission(
            submission_type=fields.get("submission_type", "new_entry"),
            subject_type=fields.get("subject_type", "artwork"),
            actor_token=f"user-{i}",
            payload_new_json=json.dumps({"title": f"Mural {i}"}),
            lat=49.0,
            lon=-123.0,
            status=fields.get("status", "pending"),
            created_at=now - timedelta(seconds=i),
        ))
    db.commit()


def update_audits(db):
    return db.query(AuditLog).filter(AuditLog.action == "update").all()


class TestReview:

    def test_without_capability_nothing_changes(self, db, pending):
        grant(db, "editor", "artwork.edit")
        for actor in ("user-w", "editor", "stranger"):
            for action in ("approve", "reject", "archive"):
                with pytest.raises(AuthorizationError):
                    moderation_service.review_submission(db, pending.id, actor, action)
        db.refresh(pending)
        assert pending.status == "pending"
        assert pending.reviewer_token is None
        assert update_audits(db) == []

    def test_approve(self, db, pending, moderator, materializer):
        result = moderation_service.review_submission(
            db, pending.id, moderator, "approve", notes="checked on site", materializer=materializer,
        )
        assert result.status == "approved"
        assert result.reviewer_token == moderator
        assert result.reviewed_at is not None
        assert result.review_notes == "checked on site"
        assert result.pending_key is None
        assert materializer.materialized == [pending.id]

        entry = update_audits(db)[0]
        assert json.loads(entry.old_data_json) == {"status": "pending"}
        assert json.loads(entry.new_data_json) == {"status": "approved"}

    def test_second_review_conflicts(self, db, pending, moderator):
        moderation_service.review_submission(db, pending.id, moderator, "approve")
        with pytest.raises(ConflictError):
            moderation_service.review_submission(db, pending.id, moderator, "reject")
        assert submission_service.get_submission(db, pending.id).status == "approved"
        assert len(update_audits(db)) == 1

    def test_audit_survives_failed_reload(self, db, pending, moderator):
        submission_id = pending.id
        before = submission_service.get_submission(db, submission_id)
        with patch.object(
            SubmissionService, "get_submission",
            side_effect=[before, DependencyError("Storage unavailable during review reload")],
        ):
            with pytest.raises(DependencyError):
                moderation_service.review_submission(db, submission_id, moderator, "approve")

        assert db.query(Submission).filter_by(id=submission_id).one().status == "approved"
        audits = update_audits(db)
        assert len(audits) == 1
        assert audits[0].entity_id == submission_id

    @pytest.mark.parametrize("action,status", [
        ("reject", "rejected"), ("rejected", "rejected"),
        ("archive", "archived"), ("approved", "approved"),
    ])
    def test_action_aliases(self, db, pending, moderator, action, status):
        assert moderation_service.review_submission(db, pending.id, moderator, action).status == status

    def test_apply_changes_not_implemented(self, db, pending, moderator):
        with pytest.raises(NotImplementedFeatureError) as exc:
            moderation_service.review_submission(db, pending.id, moderator, "apply_changes")
        assert exc.value.status_code == 501
        assert submission_service.get_submission(db, pending.id).status == "pending"

    def test_invalid_action(self, db, pending, moderator):
        with pytest.raises(ValidationError):
            moderation_service.review_submission(db, pending.id, moderator, "delete")

    def test_notes_too_long(self, db, pending, moderator):
        with pytest.raises(ValidationError):
            moderation_service.review_submission(db, pending.id, moderator, "reject", notes="x" * 501)

    def test_missing_submission(self, db, moderator):
        with pytest.raises(NotFoundError):
            moderation_service.review_submission(db, "nope", moderator, "approve")

    def test_materializer_failure_is_logged(self, db, pending, moderator):
        class Broken:
            def materialize(self, submission):
                raise RuntimeError("catalog offline")

        result = moderation_service.review_submission(
            db, pending.id, moderator, "approve", materializer=Broken(),
        )
        assert result.status == "approved"

    def test_reject_does_not_materialize(self, db, pending, moderator, materializer):
        moderation_service.review_submission(db, pending.id, moderator, "reject", materializer=materializer)
        assert materializer.materialized == []


class TestQueue:

    def test_per_page_is_clamped(self, db):
        bulk_pending(db, 120)
        items, total, per_page = moderation_service.list_submissions(db, page=1, per_page=200)
        assert per_page == 100
        assert len(items) == 100
        assert total == 120

    def test_per_page_minimum(self, db):
        bulk_pending(db, 3)
        items, _, per_page = moderation_service.list_submissions(db, per_page=0)
        assert per_page == 1
        assert len(items) == 1

    def test_newest_first(self, db):
        bulk_pending(db, 3)
        items, _, _ = moderation_service.list_submissions(db)
        assert [s.actor_token for s in items] == ["user-0", "user-1", "user-2"]

    def test_page_below_one(self, db):
        with pytest.raises(ValidationError):
            moderation_service.list_submissions(db, page=0)

    def test_page_past_end(self, db):
        bulk_pending(db, 3)
        with pytest.raises(NotFoundError):
            moderation_service.list_submissions(db, page=2, per_page=3)

    def test_empty_queue_first_page(self, db):
        assert moderation_service.list_submissions(db) == ([], 0, 20)

    def test_filters(self, db, pending):
        bulk_pending(db, 2, subject_type="artist", status="approved")
        edits, total, _ = moderation_service.list_submissions(
            db, SubmissionFilter(status="pending", submission_type="field_edit"),
        )
        assert total == 1 and edits[0].id == pending.id

        artists, total, _ = moderation_service.list_submissions(db, SubmissionFilter(subject_type="artist"))
        assert total == 2

    def test_invalid_filter(self, db):
        with pytest.raises(ValidationError):
            moderation_service.list_submissions(db, SubmissionFilter(status="deleted"))

    def test_review_view_lists_nearby(self, db, artwork):
        submission = submission_service.create_submission(
            db,
            submission_type="new_entry",
            subject_type="artwork",
            subject_ref=None,
            actor_token="user-w",
            payload_old=None,
            payload_new={"title": "Another orca"},
            lat=artwork.lat,
            lon=artwork.lon + 0.001,
        )
        detail = moderation_service.get_for_review(db, submission.id)
        assert [n["id"] for n in detail["nearby"]] == ["aw-1"]
