"""
Proof Validation Service - Trust checks on waste segregation proofs

Decides whether a submitted proof is trustworthy:
1. Geo-fence: reported location within the society's registered radius
2. Freshness: server capture time within the allowed window
3. Duplicate: image fingerprint never seen before (any society)

Geo and freshness failures accumulate into one FLAGGED verdict.
A duplicate always wins and yields REJECTED.

Inputs crossing the trust boundary:
- society coordinate comes from the database (trusted)
- timestamp is generated by the server, never by the client
- fingerprint is computed from the raw bytes, never from image metadata
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel
from sqlalchemy.orm import Session

from greentax.config import settings
from greentax.db.models import ProofSubmission, ProofStatus, Society
from greentax.exceptions import InvalidCoordinate, MissingImageFingerprint
from greentax.utils.helpers import (
    is_timestamp_fresh, is_valid_coordinate, is_within_radius, utcnow
)

logger = logging.getLogger(__name__)

REASON_PASSED = "All validation checks passed"
REASON_OUTSIDE_RADIUS = "Location is outside acceptable radius (500m)"
REASON_NOT_FRESH = "Timestamp is not fresh (>30 minutes old)"
REASON_NOT_FRESH_APPENDED = "; Timestamp not fresh"
REASON_DUPLICATE = "Duplicate image detected. This proof was already submitted."


class ProofCandidate(BaseModel):
    """The parts of a submission the validator looks at."""
    latitude: float
    longitude: float
    timestamp: datetime
    image_hash: Optional[str] = None

    class Config:
        frozen = True


class Verdict(BaseModel):
    status: ProofStatus
    reason: str

    class Config:
        frozen = True

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "reason": self.reason}


class ValidationService:
    """
    Validates one proof submission against its owning society.

    Read-only: performs a single duplicate-fingerprint lookup and
    persists nothing. The caller stores the proof with the verdict.
    """

    def __init__(
        self,
        radius_km: Optional[float] = None,
        freshness_minutes: Optional[int] = None
    ):
        self.radius_km = radius_km if radius_km is not None else settings.GEOFENCE_RADIUS_KM
        self.freshness_minutes = (
            freshness_minutes if freshness_minutes is not None
            else settings.FRESHNESS_WINDOW_MINUTES
        )

    def validate(
        self,
        db: Session,
        proof: ProofCandidate,
        society: Society,
        now: Optional[datetime] = None
    ) -> Verdict:
        """
        Run all checks in order and compose the verdict.

        Args:
            db: Database session (duplicate lookup only)
            proof: Reported coordinate, server timestamp and fingerprint
            society: Owning society; its registered coordinate is trusted
            now: Reference time, defaults to the current UTC time

        Raises:
            InvalidCoordinate: either coordinate is out of range
            MissingImageFingerprint: no content hash supplied
        """
        society_latitude, society_longitude = society.latitude, society.longitude
        if not is_valid_coordinate(proof.latitude, proof.longitude):
            raise InvalidCoordinate(
                f"Invalid proof coordinate: lat={proof.latitude}, lng={proof.longitude}"
            )
        if not is_valid_coordinate(society_latitude, society_longitude):
            raise InvalidCoordinate(
                f"Invalid society coordinate: lat={society_latitude}, lng={society_longitude}"
            )
        if not proof.image_hash:
            raise MissingImageFingerprint("Image fingerprint is required for validation")

        now = now or utcnow()
        status = ProofStatus.VERIFIED
        reason = REASON_PASSED

        logger.debug(f"Validating proof with fingerprint {proof.image_hash[:12]}")

        # 1. Geo-fence
        if not self._check_geofence(proof, society_latitude, society_longitude):
            status = ProofStatus.FLAGGED
            reason = REASON_OUTSIDE_RADIUS
            logger.info("Location validation failed")

        # 2. Freshness
        if not self._check_freshness(proof.timestamp, now):
            reason = REASON_NOT_FRESH if status == ProofStatus.VERIFIED else reason + REASON_NOT_FRESH_APPENDED
            status = ProofStatus.FLAGGED
            logger.info("Timestamp validation failed")

        # 3. Duplicate fingerprint (dominates earlier flags)
        if self.is_duplicate(db, proof.image_hash):
            status = ProofStatus.REJECTED
            reason = REASON_DUPLICATE
            logger.info("Duplicate image detected")

        if status == ProofStatus.VERIFIED:
            logger.info("Proof validation passed")

        return Verdict(status=status, reason=reason)

    def _check_geofence(
        self,
        proof: ProofCandidate,
        society_latitude: float,
        society_longitude: float
    ) -> bool:
        return is_within_radius(
            proof.latitude, proof.longitude,
            society_latitude, society_longitude,
            max_radius_km=self.radius_km
        )

    def _check_freshness(self, timestamp: datetime, now: datetime) -> bool:
        return is_timestamp_fresh(timestamp, now, max_minutes=self.freshness_minutes)

    @staticmethod
    def is_duplicate(db: Session, image_hash: str) -> bool:
        """Any stored proof, for any society, with the same fingerprint."""
        existing = db.query(ProofSubmission.id).filter(
            ProofSubmission.image_hash == image_hash
        ).first()
        return existing is not None


# Singleton instance
validation_service = ValidationService()
