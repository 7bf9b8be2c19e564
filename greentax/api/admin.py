"""
Admin Router - Review queue for flagged proofs
"""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from greentax.dependencies import get_db, verify_api_key, current_user_id
from greentax.services.proof_service import proof_service
from greentax.worker.tasks import schedule_compliance_evaluation

router = APIRouter(dependencies=[Depends(verify_api_key)])


class RejectRequest(BaseModel):
    reason: Optional[str] = None


@router.get("/proofs/pending")
async def get_pending_proofs(db: Session = Depends(get_db)):
    """Get all FLAGGED proofs awaiting review."""
    proofs = proof_service.list_pending(db)
    return {
        "success": True,
        "count": len(proofs),
        "data": [proof_service.to_dict(p) for p in proofs]
    }


@router.post("/proof/{log_id}/approve")
async def approve_proof(
    log_id: str,
    reviewer_id: Optional[str] = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    """
    Approve a flagged proof (FLAGGED -> VERIFIED).

    Only the review fields change; compliance is re-evaluated in the background.
    """
    proof = proof_service.review(db, log_id, approve=True, reviewer_id=reviewer_id)
    schedule_compliance_evaluation(proof.society_id)
    return {
        "success": True,
        "message": "Proof approved successfully",
        "data": proof_service.to_dict(proof)
    }


@router.post("/proof/{log_id}/reject")
async def reject_proof(
    log_id: str,
    request: Optional[RejectRequest] = None,
    reviewer_id: Optional[str] = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    """Reject a flagged proof (FLAGGED -> REJECTED)."""
    proof = proof_service.review(
        db,
        log_id,
        approve=False,
        reviewer_id=reviewer_id,
        reason=request.reason if request else None
    )
    schedule_compliance_evaluation(proof.society_id)
    return {
        "success": True,
        "message": "Proof rejected successfully",
        "data": proof_service.to_dict(proof)
    }
