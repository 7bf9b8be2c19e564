"""
Compliance Router - Evaluation, rebate and ward heatmap endpoints
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from greentax.db.models import ComplianceRecord
from greentax.dependencies import get_db, verify_api_key
from greentax.services.compliance_service import compliance_service

router = APIRouter()


class EvaluateRequest(BaseModel):
    society_id: str = Field(..., description="Society to evaluate")


def record_to_dict(record: ComplianceRecord) -> dict:
    return {
        "society_id": record.society_id,
        "week": record.week,
        "month": record.month,
        "year": record.year,
        "compliance_status": record.compliance_status,
        "rebate_percent": record.rebate_percent,
        "proof_count": record.proof_count,
        "last_proof_date": record.last_proof_date.isoformat() if record.last_proof_date else None,
        "days_since_last_proof": record.days_since_last_proof,
        "verified_proofs": record.verified_proofs,
        "flagged_proofs": record.flagged_proofs,
        "rejected_proofs": record.rejected_proofs,
        "compliance_score": record.compliance_score,
        "evaluated_at": record.evaluated_at.isoformat()
    }


@router.post("/compliance/evaluate")
async def evaluate_compliance(
    request: EvaluateRequest,
    db: Session = Depends(get_db)
):
    """
    Evaluate compliance for a society now.

    Compliance Rules (days since last proof):
    - 0: GREEN, 10% rebate, score 100
    - 1-2: YELLOW, 5% rebate, score 60
    - 3+ or never: RED, 0% rebate, score 20

    One record per (society, year, month, ISO week); re-evaluation
    overwrites it in place.
    """
    record = compliance_service.evaluate(db, request.society_id)
    return {"success": True, "data": record_to_dict(record)}


@router.get("/rebate/{society_id}")
async def get_rebate(
    society_id: str,
    db: Session = Depends(get_db)
):
    """Rebate from the latest compliance record (no recomputation)."""
    return {"success": True, "data": compliance_service.calculate_rebate(db, society_id)}


@router.get("/resident/society/{society_id}/summary")
async def get_society_summary(
    society_id: str,
    db: Session = Depends(get_db)
):
    """Society profile, rebate and recent proofs for residents."""
    return {"success": True, "data": compliance_service.get_resident_summary(db, society_id)}


@router.get("/heatmap/ward", dependencies=[Depends(verify_api_key)])
async def get_heatmap(db: Session = Depends(get_db)):
    """Latest compliance of active societies, aggregated by ward."""
    return {"success": True, "data": compliance_service.get_ward_heatmap(db)}
