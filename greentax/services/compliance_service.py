"""
Compliance Service - Weekly compliance tier, rebate and score

Tier is a pure function of recency of the last proof:
- GREEN: proof submitted today (10% rebate, score 100)
- YELLOW: last proof 1-2 days ago (5% rebate, score 60)
- RED: 3+ days or never (0% rebate, score 20)

Status counts are cumulative over the whole proof history and recorded for
reporting only; they do not affect the tier.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from greentax.db.models import (
    Society, ProofSubmission, ComplianceRecord, ProofStatus, ComplianceTier
)
from greentax.exceptions import SocietyNotFound
from greentax.utils.helpers import days_since, utcnow, week_number

logger = logging.getLogger(__name__)

# Sentinel for "no proof ever submitted"; lands in the RED bucket
NEVER_SUBMITTED_DAYS = 999

REBATE_BY_TIER = {
    ComplianceTier.GREEN: 10,
    ComplianceTier.YELLOW: 5,
    ComplianceTier.RED: 0,
}

SCORE_BY_TIER = {
    ComplianceTier.GREEN: 100,
    ComplianceTier.YELLOW: 60,
    ComplianceTier.RED: 20,
}


def tier_to_rebate(tier) -> int:
    """Rebate percentage for a tier. Single mapping for scoring and display."""
    return REBATE_BY_TIER[ComplianceTier(tier)]


def classify_days_since_last_proof(days: int) -> ComplianceTier:
    if days == 0:
        return ComplianceTier.GREEN
    if days <= 2:
        return ComplianceTier.YELLOW
    return ComplianceTier.RED


def period_key(now: datetime) -> Tuple[int, int, int]:
    """(year, month, week) of the compliance snapshot for `now`."""
    return now.year, now.month, week_number(now.date())


class ComplianceService:
    """Service for evaluating society compliance and rebates"""

    RECENT_PROOFS_LIMIT = 10

    def evaluate(
        self,
        db: Session,
        society_id: str,
        now: Optional[datetime] = None
    ) -> ComplianceRecord:
        """
        Recompute and upsert the current-period compliance record.

        Raises:
            SocietyNotFound: no write is performed
        """
        logger.info(f"Evaluating compliance for society: {society_id}")

        society = db.query(Society).filter(Society.id == society_id).first()
        if not society:
            raise SocietyNotFound(society_id)

        now = now or utcnow()
        year, month, week = period_key(now)

        proofs = db.query(ProofSubmission).filter(
            ProofSubmission.society_id == society_id
        ).order_by(ProofSubmission.timestamp.desc()).all()

        last_proof_date = proofs[0].timestamp if proofs else None
        days_since_last_proof = (
            days_since(last_proof_date, now) if last_proof_date else NEVER_SUBMITTED_DAYS
        )

        counts = {status: 0 for status in ProofStatus}
        for proof in proofs:
            counts[ProofStatus(proof.status)] += 1

        tier = classify_days_since_last_proof(days_since_last_proof)

        logger.info(
            f"Compliance Status: {tier.value} | Days since last proof: {days_since_last_proof}"
        )

        values = {
            "compliance_status": tier.value,
            "rebate_percent": tier_to_rebate(tier),
            "compliance_score": SCORE_BY_TIER[tier],
            "proof_count": len(proofs),
            "last_proof_date": last_proof_date,
            "days_since_last_proof": days_since_last_proof,
            "verified_proofs": counts[ProofStatus.VERIFIED],
            "flagged_proofs": counts[ProofStatus.FLAGGED],
            "rejected_proofs": counts[ProofStatus.REJECTED],
            "evaluated_at": now,
        }

        return self._upsert_record(db, society_id, year, month, week, values)

    def _upsert_record(
        self,
        db: Session,
        society_id: str,
        year: int,
        month: int,
        week: int,
        values: Dict[str, Any]
    ) -> ComplianceRecord:
        """Overwrite the record for the period in place, or insert it."""
        record = self._find_period_record(db, society_id, year, month, week)
        if record is None:
            record = ComplianceRecord(
                society_id=society_id, year=year, month=month, week=week, **values
            )
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                # A concurrent evaluation inserted the same period first
                db.rollback()
                record = self._find_period_record(db, society_id, year, month, week)
                if record is None:
                    raise
                self._apply(record, values)
                db.commit()
        else:
            self._apply(record, values)
            db.commit()

        db.refresh(record)
        return record

    @staticmethod
    def _find_period_record(
        db: Session, society_id: str, year: int, month: int, week: int
    ) -> Optional[ComplianceRecord]:
        return db.query(ComplianceRecord).filter(
            ComplianceRecord.society_id == society_id,
            ComplianceRecord.year == year,
            ComplianceRecord.month == month,
            ComplianceRecord.week == week
        ).first()

    @staticmethod
    def _apply(record: ComplianceRecord, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            setattr(record, key, value)

    def get_latest_record(self, db: Session, society_id: str) -> Optional[ComplianceRecord]:
        """Most recently evaluated record. The (year, month, week) key is not
        chronological around New Year, so it is not used for ordering."""
        return db.query(ComplianceRecord).filter(
            ComplianceRecord.society_id == society_id
        ).order_by(
            ComplianceRecord.evaluated_at.desc(),
            ComplianceRecord.id.desc()
        ).first()

    def calculate_rebate(self, db: Session, society_id: str) -> Dict[str, Any]:
        """Project the latest compliance record into rebate terms. No recompute."""
        society = db.query(Society).filter(Society.id == society_id).first()
        if not society:
            raise SocietyNotFound(society_id)

        latest = self.get_latest_record(db, society_id)

        if not latest:
            return {
                "society_id": society.id,
                "society_name": society.name,
                "ward": society.ward,
                "compliance_status": ComplianceTier.RED.value,
                "rebate_percent": tier_to_rebate(ComplianceTier.RED),
                "message": "No compliance data available"
            }

        return {
            "society_id": society.id,
            "society_name": society.name,
            "ward": society.ward,
            "compliance_status": latest.compliance_status,
            "rebate_percent": tier_to_rebate(latest.compliance_status),
            "proof_count": latest.proof_count,
            "last_proof_date": latest.last_proof_date.isoformat() if latest.last_proof_date else None,
            "days_since_last_proof": latest.days_since_last_proof,
            "compliance_score": latest.compliance_score
        }

    def get_resident_summary(self, db: Session, society_id: str) -> Dict[str, Any]:
        """Society profile, rebate projection and most recent proofs."""
        society = db.query(Society).filter(Society.id == society_id).first()
        if not society:
            raise SocietyNotFound(society_id)

        recent_proofs = db.query(ProofSubmission).filter(
            ProofSubmission.society_id == society_id
        ).order_by(ProofSubmission.timestamp.desc()).limit(self.RECENT_PROOFS_LIMIT).all()

        return {
            "society": {
                "id": society.id,
                "name": society.name,
                "ward": society.ward,
                "address": society.address,
                "total_units": society.total_units
            },
            "compliance": self.calculate_rebate(db, society_id),
            "recent_proofs": [
                {
                    "id": p.id,
                    "timestamp": p.timestamp.isoformat(),
                    "status": p.status,
                    "image_url": p.image_url
                }
                for p in recent_proofs
            ]
        }

    def get_ward_heatmap(self, db: Session) -> Dict[str, Any]:
        """Latest compliance per active society, aggregated by ward."""
        societies = db.query(Society).filter(Society.is_active == True).all()  # noqa: E712

        points: List[Dict[str, Any]] = []
        for society in societies:
            latest = self.get_latest_record(db, society.id)
            points.append({
                "ward": society.ward,
                "society_id": society.id,
                "society_name": society.name,
                "lat": society.latitude,
                "lng": society.longitude,
                "compliance_score": latest.compliance_score if latest else 0,
                "compliance_status": latest.compliance_status if latest else ComplianceTier.RED.value,
                "rebate_percent": latest.rebate_percent if latest else 0
            })

        wards: Dict[str, Dict[str, Any]] = defaultdict(lambda: {
            "societies": [],
            "total_societies": 0,
            "score_total": 0,
            "green_count": 0,
            "yellow_count": 0,
            "red_count": 0
        })
        for point in points:
            ward = wards[point["ward"]]
            ward["societies"].append(point)
            ward["total_societies"] += 1
            ward["score_total"] += point["compliance_score"]
            ward[f"{point['compliance_status'].lower()}_count"] += 1

        ward_summary = []
        for name, ward in wards.items():
            score_total = ward.pop("score_total")
            ward_summary.append({
                "ward": name,
                **ward,
                "avg_compliance_score": round(score_total / ward["total_societies"])
            })

        logger.info(f"Heatmap data generated for {len(ward_summary)} wards")

        return {"societies": points, "ward_summary": ward_summary}


# Singleton instance
compliance_service = ComplianceService()
