"""
SQLAlchemy ORM Models for the Green-Tax Compliance service
"""
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime,
    ForeignKey, UniqueConstraint, Index, event, inspect, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from greentax.db.database import Base
from greentax.exceptions import ProofImmutableError


class ProofStatus(str, Enum):
    """Verdict of a proof submission."""
    VERIFIED = "VERIFIED"
    FLAGGED = "FLAGGED"
    REJECTED = "REJECTED"


class ComplianceTier(str, Enum):
    """Weekly compliance classification of a society."""
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


# Only these proof columns may change after insert (admin review overlay)
PROOF_REVIEW_FIELDS = frozenset({"status", "reviewed_by", "reviewed_at", "validation_reason"})


class Society(Base):
    __tablename__ = "societies"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    ward = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    property_tax_number = Column(String(100), unique=True, nullable=False)
    address = Column(Text, default="")
    total_units = Column(Integer, default=0)
    contact_email = Column(String(255), default="")
    contact_phone = Column(String(50), default="")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    __table_args__ = (
        Index("idx_society_ward", "ward"),
        Index("idx_society_geo", "latitude", "longitude"),
    )

    # Relationships
    proofs = relationship("ProofSubmission", back_populates="society")
    compliance_records = relationship("ComplianceRecord", back_populates="society")


class ProofSubmission(Base):
    """Append-only proof log. Only the review overlay is ever updated."""
    __tablename__ = "proof_submissions"

    id = Column(String(64), primary_key=True)  # PROOF-<ms>-<hex>
    society_id = Column(String(64), ForeignKey("societies.id"), nullable=False)
    image_url = Column(Text, nullable=False)
    image_hash = Column(String(64), nullable=False)  # SHA-256 of raw bytes
    timestamp = Column(DateTime, nullable=False)  # Server-assigned capture time
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    uploaded_by = Column(String(64))
    created_at = Column(DateTime, server_default=func.now())

    # Review overlay
    status = Column(String(20), nullable=False, default=ProofStatus.VERIFIED.value)
    validation_reason = Column(Text, default="")
    reviewed_by = Column(String(64))
    reviewed_at = Column(DateTime)

    __table_args__ = (
        # Storage-level duplicate guard: at most one accepted proof per image.
        # Rejected duplicates are still logged for audit.
        Index(
            "uq_proof_image_hash_accepted",
            "image_hash",
            unique=True,
            postgresql_where=text("status <> 'REJECTED'"),
            sqlite_where=text("status <> 'REJECTED'"),
        ),
        Index("idx_proof_hash", "image_hash"),
        Index("idx_proof_society_timestamp", "society_id", "timestamp"),
        Index("idx_proof_status", "status"),
    )

    # Relationships
    society = relationship("Society", back_populates="proofs")


class ComplianceRecord(Base):
    """Weekly compliance snapshot, recomputable from the proof log."""
    __tablename__ = "compliance_records"

    id = Column(Integer, primary_key=True, index=True)
    society_id = Column(String(64), ForeignKey("societies.id"), nullable=False)
    week = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    compliance_status = Column(String(10), nullable=False)
    rebate_percent = Column(Integer, nullable=False)
    proof_count = Column(Integer, default=0)
    last_proof_date = Column(DateTime)
    days_since_last_proof = Column(Integer, default=0)
    verified_proofs = Column(Integer, default=0)
    flagged_proofs = Column(Integer, default=0)
    rejected_proofs = Column(Integer, default=0)
    compliance_score = Column(Integer, default=0)
    evaluated_at = Column(DateTime, nullable=False)  # "now" of the last evaluation
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("society_id", "year", "month", "week", name="unique_society_period"),
        Index("idx_compliance_status", "compliance_status"),
        Index("idx_compliance_society_evaluated", "society_id", "evaluated_at"),
    )

    # Relationships
    society = relationship("Society", back_populates="compliance_records")


@event.listens_for(ProofSubmission, "before_update")
def _guard_proof_immutability(mapper, connection, target):
    """Fail the flush if anything outside the review overlay changed."""
    state = inspect(target)
    changed = [
        attr.key for attr in state.attrs
        if attr.key not in PROOF_REVIEW_FIELDS and attr.history.has_changes()
    ]
    if changed:
        raise ProofImmutableError(
            f"ProofSubmission is immutable. Only status reviews are allowed (changed: {', '.join(changed)})"
        )


@event.listens_for(ProofSubmission, "before_delete")
def _guard_proof_delete(mapper, connection, target):
    raise ProofImmutableError("ProofSubmission is append-only. Deletes are not allowed.")
