"""Tests for the submission store."""

import json
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from catalog_moderation.core.exceptions import (
    DependencyError, DuplicatePendingSubmissionError, NotFoundError, ValidationError,
)
from catalog_moderation.models.audit_log import AuditLog
from catalog_moderation.models.submission import Submission
from catalog_moderation.services.submission_service import SubmissionService, submission_service


def edit(db, actor="user-w", subject_ref="aw-1", **overrides):
    kwargs = dict(
        submission_type="field_edit",
        subject_type="artwork",
        subject_ref=subject_ref,
        actor_token=actor,
        payload_old={"title": "Digital Orca", "medium": None},
        payload_new={"title": "Digital Orca (1997)", "medium": "aluminium"},
    )
    kwargs.update(overrides)
    return submission_service.create_submission(db, **kwargs)


class TestFieldEdits:

    def test_payload_round_trips_in_order(self, db, artwork):
        payload_new = {"tags": ["whale", "pixel"], "title": "Orca", "year_created": 2009}
        payload_old = {"tags": [], "title": "Digital Orca", "year_created": None}
        edit(db, payload_old=payload_old, payload_new=payload_new)

        pending = submission_service.get_pending_submissions(db, "aw-1", "user-w")
        assert len(pending) == 1
        stored_old, stored_new = SubmissionService.payloads(pending[0])
        assert stored_new == payload_new
        assert list(stored_new) == ["tags", "title", "year_created"]
        assert stored_old == payload_old

    def test_second_pending_edit_is_refused(self, db, artwork):
        first = edit(db)
        with pytest.raises(DuplicatePendingSubmissionError) as exc:
            edit(db, payload_old={"title": "x"}, payload_new={"title": "y"})
        assert exc.value.existing_id == first.id
        assert exc.value.status_code == 409
        assert db.query(Submission).filter_by(status="pending").count() == 1

    def test_other_actor_may_edit_same_subject(self, db, artwork):
        edit(db, actor="user-a")
        edit(db, actor="user-b")
        assert db.query(Submission).count() == 2

    def test_reviewed_submission_frees_the_slot(self, db, artwork):
        first = edit(db)
        first.status = "rejected"
        first.pending_key = None
        db.commit()
        edit(db)
        assert db.query(Submission).count() == 2

    def test_unique_key_catches_lost_race(self, db, artwork):
        first = edit(db)
        with patch.object(
            SubmissionService, "get_pending_submissions", side_effect=[[], [first]]
        ):
            with pytest.raises(DuplicatePendingSubmissionError):
                edit(db)
        assert db.query(Submission).count() == 1

    def test_unknown_subject(self, db):
        with pytest.raises(NotFoundError):
            edit(db, subject_ref="missing")

    def test_field_not_in_allow_list(self, db, artwork):
        with pytest.raises(ValidationError) as exc:
            edit(db, payload_old={"owner": None}, payload_new={"owner": "city"})
        assert exc.value.details["invalid_fields"] == ["owner"]

    def test_old_and_new_fields_must_match(self, db, artwork):
        with pytest.raises(ValidationError):
            edit(db, payload_old={"title": "a"}, payload_new={"title": "b", "medium": "c"})

    def test_artist_edit(self, db, artist):
        submission = edit(
            db, subject_ref="ar-1", subject_type="artist",
            payload_old={"website": None}, payload_new={"website": "https://coupland.com"},
        )
        assert submission.subject_type == "artist"

    def test_creation_is_audited(self, db, artwork):
        submission = edit(db)
        entry = db.query(AuditLog).filter_by(entity_id=submission.id).one()
        assert entry.action == "create"
        assert entry.actor_token == "user-w"
        assert json.loads(entry.new_data_json) == {"title": "Digital Orca (1997)", "medium": "aluminium"}
        assert json.loads(entry.metadata_json)["submission_type"] == "field_edit"

    def test_audit_failure_keeps_submission(self, db, engine, artwork):
        AuditLog.__table__.drop(engine)
        try:
            submission = edit(db)
            assert submission_service.get_submission(db, submission.id).status == "pending"
        finally:
            AuditLog.__table__.create(engine)

    def test_creation_audited_when_reload_fails(self, db, artwork):
        failure = OperationalError("SELECT", {}, Exception("connection dropped"))
        with patch.object(db, "refresh", side_effect=failure):
            with pytest.raises(DependencyError):
                edit(db)
        stored = db.query(Submission).one()
        entry = db.query(AuditLog).filter_by(action="create").one()
        assert entry.entity_id == stored.id


class TestNewEntries:

    def new_artwork(self, db, **overrides):
        kwargs = dict(
            submission_type="new_entry",
            subject_type="artwork",
            subject_ref=None,
            actor_token="user-w",
            payload_old=None,
            payload_new={"title": "Untitled mural"},
            lat=49.28,
            lon=-123.12,
        )
        kwargs.update(overrides)
        return submission_service.create_submission(db, **kwargs)

    def test_new_artwork(self, db):
        submission = self.new_artwork(db)
        assert submission.status == "pending"
        assert submission.subject_ref is None
        assert submission.pending_key is None
        assert SubmissionService.payloads(submission)[0] == {}

    def test_new_entries_do_not_collide(self, db):
        self.new_artwork(db)
        self.new_artwork(db)
        assert db.query(Submission).count() == 2

    def test_new_artwork_needs_location(self, db):
        with pytest.raises(ValidationError):
            self.new_artwork(db, lat=None, lon=None)

    def test_coordinates_checked(self, db):
        with pytest.raises(ValidationError):
            self.new_artwork(db, lat=120.0)

    def test_new_entry_cannot_reference_subject(self, db):
        with pytest.raises(ValidationError):
            self.new_artwork(db, subject_ref="aw-1")

    def test_new_artist_needs_name(self, db):
        with pytest.raises(ValidationError):
            self.new_artwork(db, subject_type="artist", payload_new={"biography": "..."})

    def test_unknown_type(self, db):
        with pytest.raises(ValidationError):
            self.new_artwork(db, submission_type="photo_upload")


def test_list_for_actor(db, artwork):
    edit(db)
    assert [s.actor_token for s in submission_service.list_for_actor(db, "user-w")] == ["user-w"]
    assert submission_service.list_for_actor(db, "user-w", status="approved") == []
