"""
Proof Service - Upload and review of waste segregation proofs

Upload:
- Rejects malformed input before validation (missing bytes, bad coordinate,
  unknown society)
- Fingerprints the raw bytes and stamps a server-side capture time
- Validates, stores the image and appends the proof to the log

Review is the only mutation path on a stored proof, and only FLAGGED proofs
can be reviewed (exactly once).
"""
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from greentax.db.models import ProofSubmission, ProofStatus
from greentax.exceptions import (
    InvalidCoordinate, MissingImageFingerprint, ProofAlreadyReviewed, ProofNotFound
)
from greentax.services.image_store import image_store
from greentax.services.society_service import society_service
from greentax.services.validation_service import (
    validation_service, ProofCandidate, Verdict, REASON_DUPLICATE
)
from greentax.utils.helpers import (
    generate_image_hash, generate_unique_id, is_valid_coordinate, utcnow
)

logger = logging.getLogger(__name__)

REASON_APPROVED = "Manually approved by BMC admin"
REASON_REJECTED = "Rejected by BMC admin"


class ProofService:
    """Service for the proof log"""

    def __init__(self, store=None, validator=None):
        self.store = store or image_store
        self.validator = validator or validation_service

    def upload(
        self,
        db: Session,
        society_id: str,
        latitude: float,
        longitude: float,
        image_bytes: Optional[bytes],
        filename: str,
        uploaded_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Tuple[ProofSubmission, Verdict]:
        """
        Validate and persist one proof.

        Returns the stored proof and its verdict. Re-evaluation of the
        society's compliance is left to the caller.
        """
        logger.info(f"Proof upload initiated for society: {society_id}")

        if not image_bytes:
            raise MissingImageFingerprint("Please upload an image file")
        if not is_valid_coordinate(latitude, longitude):
            raise InvalidCoordinate(f"Invalid proof coordinate: lat={latitude}, lng={longitude}")

        society = society_service.get(db, society_id)

        # Server-side capture time; client timestamps never reach validation
        captured_at = now or utcnow()
        image_hash = generate_image_hash(image_bytes)

        candidate = ProofCandidate(
            latitude=latitude,
            longitude=longitude,
            timestamp=captured_at,
            image_hash=image_hash
        )
        verdict = self.validator.validate(db, candidate, society, now=captured_at)

        log_id = generate_unique_id("PROOF-")
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
        stored_name = f"{society_id}-{log_id}.{extension}"
        image_url = self.store.save(image_bytes, stored_name)

        fields = {
            "id": log_id,
            "society_id": society_id,
            "image_url": image_url,
            "image_hash": image_hash,
            "timestamp": captured_at,
            "latitude": latitude,
            "longitude": longitude,
            "uploaded_by": uploaded_by,
        }

        try:
            proof, verdict = self._persist(db, fields, verdict)
        except SQLAlchemyError:
            # No log entry points at the image
            db.rollback()
            self.store.delete(stored_name)
            raise

        logger.info(f"Proof uploaded: {proof.id} | Status: {proof.status}")
        return proof, verdict

    def _persist(
        self, db: Session, fields: Dict[str, Any], verdict: Verdict
    ) -> Tuple[ProofSubmission, Verdict]:
        try:
            return self._append(db, fields, verdict), verdict
        except IntegrityError:
            # An accepted proof with this fingerprint landed after our
            # read-time check; the storage constraint is authoritative.
            db.rollback()
            if verdict.status == ProofStatus.REJECTED or not self.validator.is_duplicate(db, fields["image_hash"]):
                raise
            logger.warning(f"Concurrent duplicate detected at write time for {fields['id']}")
            verdict = Verdict(status=ProofStatus.REJECTED, reason=REASON_DUPLICATE)
            return self._append(db, fields, verdict), verdict

    @staticmethod
    def _append(db: Session, fields: Dict[str, Any], verdict: Verdict) -> ProofSubmission:
        proof = ProofSubmission(
            **fields,
            status=verdict.status.value,
            validation_reason=verdict.reason
        )
        db.add(proof)
        db.commit()
        db.refresh(proof)
        return proof

    def review(
        self,
        db: Session,
        log_id: str,
        approve: bool,
        reviewer_id: Optional[str],
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ProofSubmission:
        """Approve (-> VERIFIED) or reject (-> REJECTED) a FLAGGED proof."""
        proof = self.get_proof(db, log_id)

        if proof.status != ProofStatus.FLAGGED.value:
            raise ProofAlreadyReviewed(
                f"Proof {log_id} is {proof.status}; only FLAGGED proofs can be reviewed"
            )

        if approve:
            proof.status = ProofStatus.VERIFIED.value
            proof.validation_reason = REASON_APPROVED
        else:
            proof.status = ProofStatus.REJECTED.value
            proof.validation_reason = reason or REASON_REJECTED
        proof.reviewed_by = reviewer_id
        proof.reviewed_at = now or utcnow()

        db.commit()
        db.refresh(proof)

        logger.info(f"Proof {'approved' if approve else 'rejected'}: {log_id}")
        return proof

    def get_proof(self, db: Session, log_id: str) -> ProofSubmission:
        proof = db.query(ProofSubmission).filter(ProofSubmission.id == log_id).first()
        if not proof:
            raise ProofNotFound(log_id)
        return proof

    def list_society_proofs(
        self,
        db: Session,
        society_id: str,
        status: Optional[str] = None,
        limit: int = 50
    ) -> List[ProofSubmission]:
        query = db.query(ProofSubmission).filter(ProofSubmission.society_id == society_id)
        if status:
            query = query.filter(ProofSubmission.status == status)

        proofs = query.order_by(ProofSubmission.timestamp.desc()).limit(limit).all()
        logger.info(f"Retrieved {len(proofs)} proofs for society: {society_id}")
        return proofs

    def list_pending(self, db: Session) -> List[ProofSubmission]:
        """FLAGGED proofs awaiting admin review, newest first."""
        return db.query(ProofSubmission).filter(
            ProofSubmission.status == ProofStatus.FLAGGED.value
        ).order_by(ProofSubmission.timestamp.desc()).all()

    @staticmethod
    def to_dict(proof: ProofSubmission) -> Dict[str, Any]:
        return {
            "id": proof.id,
            "society_id": proof.society_id,
            "image_url": proof.image_url,
            "image_hash": proof.image_hash,
            "timestamp": proof.timestamp.isoformat(),
            "geo_location": {"lat": proof.latitude, "lng": proof.longitude},
            "status": proof.status,
            "validation_reason": proof.validation_reason,
            "uploaded_by": proof.uploaded_by,
            "reviewed_by": proof.reviewed_by,
            "reviewed_at": proof.reviewed_at.isoformat() if proof.reviewed_at else None
        }


# Singleton instance
proof_service = ProofService()
