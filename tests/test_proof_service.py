"""
Tests for the proof log: upload, admin review and storage invariants.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from greentax.db.models import ProofStatus, ProofSubmission
from greentax.exceptions import (
    InvalidCoordinate,
    MissingImageFingerprint,
    ProofAlreadyReviewed,
    ProofImmutableError,
    ProofNotFound,
    SocietyNotFound,
)
from greentax.services.compliance_service import ComplianceService
from greentax.services.image_store import ImageStore
from greentax.services.proof_service import ProofService, REASON_APPROVED
from greentax.services.validation_service import (
    REASON_DUPLICATE,
    ValidationService,
    Verdict,
)
from tests.conftest import SOCIETY_LAT, SOCIETY_LNG

NOW = datetime(2026, 10, 18, 9, 30)
IMAGE = b"\xff\xd8\xff\xe0 segregated wet and dry bins"


@pytest.fixture
def service(tmp_path):
    return ProofService(store=ImageStore(upload_dir=str(tmp_path), base_url="/media"))


def upload(service, db, society_id, image=IMAGE, lat=SOCIETY_LAT, lng=SOCIETY_LNG, now=NOW):
    return service.upload(
        db=db,
        society_id=society_id,
        latitude=lat,
        longitude=lng,
        image_bytes=image,
        filename="proof.jpg",
        uploaded_by="USR-secretary",
        now=now
    )


class TestUpload:

    def test_fresh_valid_proof_then_green(self, db, society, service):
        proof, verdict = upload(service, db, society.id)

        assert verdict.status == ProofStatus.VERIFIED
        assert verdict.reason == "All validation checks passed"
        assert proof.status == "VERIFIED"
        assert proof.timestamp == NOW
        assert proof.uploaded_by == "USR-secretary"
        assert proof.image_url.startswith("/media/")

        record = ComplianceService().evaluate(db, society.id, now=NOW)
        assert record.compliance_status == "GREEN"
        assert record.rebate_percent == 10
        assert record.compliance_score == 100
        assert record.days_since_last_proof == 0

    def test_image_is_stored(self, db, society, service, tmp_path):
        proof, _ = upload(service, db, society.id)
        stored = tmp_path / proof.image_url.rsplit("/", 1)[-1]
        assert stored.read_bytes() == IMAGE

    def test_duplicate_resubmission_is_logged_as_rejected(self, db, society, service):
        first, first_verdict = upload(service, db, society.id)
        second, second_verdict = upload(service, db, society.id, now=NOW + timedelta(minutes=5))

        assert first_verdict.status == ProofStatus.VERIFIED
        assert second_verdict.status == ProofStatus.REJECTED
        assert second_verdict.reason == REASON_DUPLICATE
        assert second.image_hash == first.image_hash
        assert db.query(ProofSubmission).filter(
            ProofSubmission.society_id == society.id
        ).count() == 2

    def test_far_away_proof_is_flagged(self, db, society, service):
        proof, verdict = upload(service, db, society.id, lat=SOCIETY_LAT + 0.02)
        assert verdict.status == ProofStatus.FLAGGED
        assert proof.status == "FLAGGED"

    def test_missing_image(self, db, society, service):
        with pytest.raises(MissingImageFingerprint):
            upload(service, db, society.id, image=b"")

    def test_invalid_coordinate(self, db, society, service):
        with pytest.raises(InvalidCoordinate):
            upload(service, db, society.id, lat=123.0)
        assert db.query(ProofSubmission).count() == 0

    def test_unknown_society(self, db, service):
        with pytest.raises(SocietyNotFound):
            upload(service, db, "SOC-missing")


class _BlindValidator(ValidationService):
    """Misses duplicates at read time, as a concurrent upload would."""

    def validate(self, db, proof, society, now=None):
        return Verdict(status=ProofStatus.VERIFIED, reason="All validation checks passed")


class TestConcurrentDuplicate:

    def test_storage_constraint_catches_missed_duplicate(self, db, society, tmp_path):
        service = ProofService(
            store=ImageStore(upload_dir=str(tmp_path)),
            validator=_BlindValidator()
        )

        upload(service, db, society.id)
        proof, verdict = upload(service, db, society.id)

        assert verdict.status == ProofStatus.REJECTED
        assert proof.status == "REJECTED"
        assert proof.validation_reason == REASON_DUPLICATE
        assert db.query(ProofSubmission).count() == 2


class _UnawareValidator(_BlindValidator):
    """Cannot see the stored duplicate even after the write fails."""

    @staticmethod
    def is_duplicate(db, image_hash):
        return False


class _FailingWrites(ProofService):

    @staticmethod
    def _append(db, fields, verdict):
        raise SQLAlchemyError("database unavailable")


class TestFailedWrite:

    def test_image_removed_when_proof_is_not_stored(self, db, society, tmp_path):
        service = _FailingWrites(store=ImageStore(upload_dir=str(tmp_path)))

        with pytest.raises(SQLAlchemyError):
            upload(service, db, society.id)

        assert list(tmp_path.iterdir()) == []
        assert db.query(ProofSubmission).count() == 0

    def test_image_removed_when_constraint_error_is_reraised(self, db, society, tmp_path):
        service = ProofService(
            store=ImageStore(upload_dir=str(tmp_path)),
            validator=_UnawareValidator()
        )
        first, _ = upload(service, db, society.id)

        with pytest.raises(IntegrityError):
            upload(service, db, society.id)

        assert [p.name for p in tmp_path.iterdir()] == [first.image_url.rsplit("/", 1)[-1]]
        assert db.query(ProofSubmission).count() == 1


class TestReview:

    def test_admin_override_only_touches_review_fields(self, db, society, service):
        proof, _ = upload(service, db, society.id, lat=SOCIETY_LAT + 0.02)
        original = {
            column: getattr(proof, column)
            for column in ("id", "society_id", "image_url", "image_hash",
                           "timestamp", "latitude", "longitude", "uploaded_by")
        }

        reviewed_at = NOW + timedelta(hours=1)
        reviewed = service.review(
            db, proof.id, approve=True, reviewer_id="USR-admin", now=reviewed_at
        )

        assert reviewed.status == "VERIFIED"
        assert reviewed.validation_reason == REASON_APPROVED
        assert reviewed.reviewed_by == "USR-admin"
        assert reviewed.reviewed_at == reviewed_at

        db.expire_all()
        stored = db.query(ProofSubmission).filter(ProofSubmission.id == proof.id).one()
        for column, value in original.items():
            assert getattr(stored, column) == value

        record = ComplianceService().evaluate(db, society.id, now=reviewed_at)
        assert record.verified_proofs == 1
        assert record.flagged_proofs == 0

    def test_reject_with_reason(self, db, society, service):
        proof, _ = upload(service, db, society.id, lat=SOCIETY_LAT + 0.02)

        reviewed = service.review(
            db, proof.id, approve=False, reviewer_id="USR-admin", reason="Bins not visible"
        )

        assert reviewed.status == "REJECTED"
        assert reviewed.validation_reason == "Bins not visible"

    def test_reject_default_reason(self, db, society, service):
        proof, _ = upload(service, db, society.id, lat=SOCIETY_LAT + 0.02)
        reviewed = service.review(db, proof.id, approve=False, reviewer_id="USR-admin")
        assert reviewed.validation_reason == "Rejected by BMC admin"

    def test_review_happens_once(self, db, society, service):
        proof, _ = upload(service, db, society.id, lat=SOCIETY_LAT + 0.02)
        service.review(db, proof.id, approve=True, reviewer_id="USR-admin")

        with pytest.raises(ProofAlreadyReviewed):
            service.review(db, proof.id, approve=False, reviewer_id="USR-other")

    def test_verified_proof_cannot_be_reviewed(self, db, society, service):
        proof, _ = upload(service, db, society.id)
        with pytest.raises(ProofAlreadyReviewed):
            service.review(db, proof.id, approve=False, reviewer_id="USR-admin")

    def test_unknown_proof(self, db, service):
        with pytest.raises(ProofNotFound):
            service.review(db, "PROOF-missing", approve=True, reviewer_id="USR-admin")

    def test_pending_lists_flagged_only(self, db, society, service):
        upload(service, db, society.id)
        flagged, _ = upload(service, db, society.id, image=b"other bytes", lat=SOCIETY_LAT + 0.02)

        pending = service.list_pending(db)
        assert [p.id for p in pending] == [flagged.id]


class TestStorageInvariants:

    def test_core_fields_are_immutable(self, db, society, add_proof):
        proof = add_proof(society.id, NOW)
        proof.image_url = "/media/tampered.jpg"

        with pytest.raises(ProofImmutableError):
            db.commit()
        db.rollback()

    def test_review_fields_are_mutable(self, db, society, add_proof):
        proof = add_proof(society.id, NOW, status=ProofStatus.FLAGGED)
        proof.status = ProofStatus.VERIFIED.value
        proof.reviewed_by = "USR-admin"
        db.commit()
        assert proof.status == "VERIFIED"

    def test_proofs_cannot_be_deleted(self, db, society, add_proof):
        proof = add_proof(society.id, NOW)
        db.delete(proof)

        with pytest.raises(ProofImmutableError):
            db.commit()
        db.rollback()

    def test_second_accepted_proof_with_same_hash_fails(self, db, society, add_proof):
        add_proof(society.id, NOW, image_hash="e" * 64)

        with pytest.raises(IntegrityError):
            add_proof(society.id, NOW, status=ProofStatus.FLAGGED, image_hash="e" * 64)
        db.rollback()

    def test_rejected_duplicate_is_allowed(self, db, society, add_proof):
        add_proof(society.id, NOW, image_hash="f" * 64)
        add_proof(society.id, NOW, status=ProofStatus.REJECTED, image_hash="f" * 64)
        assert db.query(ProofSubmission).count() == 2
