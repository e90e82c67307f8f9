"""Tests for the consent ledger."""

import hashlib

import pytest

from catalog_moderation.core.consent import CONSENT_TEXTS, consent_text_hash
from catalog_moderation.core.exceptions import (
    DuplicatePendingSubmissionError, NotFoundError, ValidationError,
)
from catalog_moderation.models.consent_record import ConsentRecord
from catalog_moderation.models.submission import Submission
from catalog_moderation.services.consent_service import consent_service
from catalog_moderation.services.intake_service import intake_service

from conftest import ALL_CONSENTS


class TestConsentHash:

    def test_hash_is_sha256_of_version_text(self):
        expected = hashlib.sha256(CONSENT_TEXTS["2025-09-09.v2"].encode("utf-8")).hexdigest()
        assert consent_text_hash("2025-09-09.v2") == expected

    def test_versions_hash_differently(self):
        assert consent_text_hash("1.0.0") != consent_text_hash("2025-09-09.v2")


class TestRecordConsent:

    def test_record_stores_version_and_hash(self, db):
        record = consent_service.record_consent(
            db, "user-1", "submission", "sub-1", "2025-09-09.v2", ip_address="10.0.0.1",
        )
        assert record.id is not None
        assert record.consent_text_hash == consent_text_hash("2025-09-09.v2")
        assert record.ip_address == "10.0.0.1"

    def test_unknown_version(self, db):
        with pytest.raises(ValidationError):
            consent_service.record_consent(db, "user-1", "submission", "sub-1", "9.9.9")
        assert db.query(ConsentRecord).count() == 0

    def test_unknown_content_type(self, db):
        with pytest.raises(ValidationError):
            consent_service.record_consent(db, "user-1", "photo", "p-1", "1.0.0")

    def test_retry_records_twice(self, db):
        """Recording is not idempotent: a client retry leaves two rows."""
        consent_service.record_consent(db, "user-1", "submission", "sub-1", "1.0.0")
        consent_service.record_consent(db, "user-1", "submission", "sub-1", "1.0.0")
        records = consent_service.get_consent_records(db, "submission", "sub-1")
        assert len(records) == 2


class TestConsentFlags:

    def test_all_flags_pass(self):
        consent_service.validate_consent_flags(ALL_CONSENTS)

    def test_missing_flags_are_listed(self):
        flags = dict(ALL_CONSENTS, cc0_licensing=False, freedom_of_panorama=False)
        with pytest.raises(ValidationError) as exc:
            consent_service.validate_consent_flags(flags)
        assert exc.value.details["missing_consents"] == ["cc0_licensing", "freedom_of_panorama"]

    def test_form_lists_current_version(self):
        form = consent_service.consent_form()
        assert form["consent_version"] == "2025-09-09.v2"
        assert set(form["descriptions"]) == set(ALL_CONSENTS)


class TestIntakeConsent:

    def submit(self, db, **overrides):
        kwargs = dict(
            rate_limiter=None,
            actor_token="user-1",
            submission_type="field_edit",
            subject_type="artwork",
            subject_ref="aw-1",
            payload_old={"title": "Digital Orca"},
            payload_new={"title": "Orca"},
            consent=ALL_CONSENTS,
        )
        kwargs.update(overrides)
        return intake_service.submit(db, **kwargs)

    def test_accepted_submission_has_consent(self, db, artwork):
        result = self.submit(db)
        records = consent_service.get_consent_records(db, "submission", result.submission.id)
        assert [r.id for r in records] == [result.consent_id]

    @pytest.mark.parametrize("overrides,error", [
        ({"payload_old": {"owner": "x"}, "payload_new": {"owner": "y"}}, ValidationError),
        ({"subject_ref": "missing"}, NotFoundError),
        ({"payload_old": {}, "payload_new": {}}, ValidationError),
    ])
    def test_rejected_payload_records_no_consent(self, db, artwork, overrides, error):
        with pytest.raises(error):
            self.submit(db, **overrides)
        assert db.query(Submission).count() == 0
        assert db.query(ConsentRecord).count() == 0

    def test_duplicate_pending_records_no_extra_consent(self, db, artwork):
        self.submit(db)
        with pytest.raises(DuplicatePendingSubmissionError):
            self.submit(db, payload_old={"title": "Orca"}, payload_new={"title": "Orca II"})
        assert db.query(Submission).count() == 1
        assert db.query(ConsentRecord).count() == 1
