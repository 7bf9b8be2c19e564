"""
Proof Router - Upload and lookup of waste segregation proofs

Provides:
- POST /api/proof/upload: Upload a proof image with its reported location
- GET /api/proof/society/{society_id}: List a society's proofs
- GET /api/proof/{log_id}: Get a single proof
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from greentax.dependencies import get_db, current_user_id
from greentax.exceptions import MissingImageFingerprint
from greentax.services.image_store import image_store
from greentax.services.proof_service import proof_service
from greentax.worker.tasks import schedule_compliance_evaluation

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_proof(
    society_id: str = Form(..., description="Owning society"),
    lat: float = Form(..., description="Reported GPS latitude"),
    lng: float = Form(..., description="Reported GPS longitude"),
    image: Optional[UploadFile] = File(None, description="Proof photo"),
    user_id: Optional[str] = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    """
    Upload waste segregation proof.

    The capture time is assigned by the server and the fingerprint is
    computed from the uploaded bytes. A FLAGGED or REJECTED verdict is a
    successful upload; the proof is stored either way.

    Compliance is re-evaluated in the background.
    """
    if image is None:
        raise MissingImageFingerprint("Please upload an image file")

    image_bytes = await image.read()
    image_store.check_upload(image.filename, image.content_type, len(image_bytes))

    proof, verdict = proof_service.upload(
        db=db,
        society_id=society_id,
        latitude=lat,
        longitude=lng,
        image_bytes=image_bytes,
        filename=image.filename or "proof.jpg",
        uploaded_by=user_id
    )

    schedule_compliance_evaluation(society_id)

    return {
        "success": True,
        "data": {
            "proof": proof_service.to_dict(proof),
            "validation": verdict.to_dict()
        }
    }


@router.get("/society/{society_id}")
async def get_society_proofs(
    society_id: str,
    status: Optional[str] = Query(None, description="VERIFIED, FLAGGED or REJECTED"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Get a society's proofs, newest first."""
    proofs = proof_service.list_society_proofs(db, society_id, status=status, limit=limit)
    return {
        "success": True,
        "count": len(proofs),
        "data": [proof_service.to_dict(p) for p in proofs]
    }


@router.get("/{log_id}")
async def get_proof(
    log_id: str,
    db: Session = Depends(get_db)
):
    """Get single proof by ID."""
    proof = proof_service.get_proof(db, log_id)
    return {"success": True, "data": proof_service.to_dict(proof)}
