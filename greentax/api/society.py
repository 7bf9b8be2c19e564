"""
Society Router - Registration and lookup of housing societies
"""
from typing import Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from greentax.db.models import Society
from greentax.dependencies import get_db, verify_api_key
from greentax.services.society_service import society_service

router = APIRouter()


class GeoLocation(BaseModel):
    lat: float = Field(..., description="Latitude")
    lng: float = Field(..., description="Longitude")


class SocietyRegisterRequest(BaseModel):
    name: str
    ward: str
    geo_location: GeoLocation
    property_tax_number: str
    address: Optional[str] = None
    total_units: Optional[int] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Green Meadows CHS",
                "ward": "K-West",
                "geo_location": {"lat": 19.1364, "lng": 72.8296},
                "property_tax_number": "PTN-KW-000123"
            }
        }


def society_to_dict(society: Society) -> dict:
    return {
        "id": society.id,
        "name": society.name,
        "ward": society.ward,
        "geo_location": {"lat": society.latitude, "lng": society.longitude},
        "property_tax_number": society.property_tax_number,
        "address": society.address,
        "total_units": society.total_units,
        "contact_email": society.contact_email,
        "contact_phone": society.contact_phone,
        "is_active": society.is_active
    }


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
async def register_society(
    request: SocietyRegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a new society.

    Property tax number must be unique; coordinate must be a valid point.
    """
    society = society_service.register(
        db=db,
        name=request.name,
        ward=request.ward,
        latitude=request.geo_location.lat,
        longitude=request.geo_location.lng,
        property_tax_number=request.property_tax_number,
        address=request.address,
        total_units=request.total_units,
        contact_email=request.contact_email,
        contact_phone=request.contact_phone
    )
    return {"success": True, "data": society_to_dict(society)}


@router.get("/{society_id}")
async def get_society(
    society_id: str,
    db: Session = Depends(get_db)
):
    """Get society details."""
    society = society_service.get(db, society_id)
    return {"success": True, "data": society_to_dict(society)}


@router.post("/{society_id}/deactivate", dependencies=[Depends(verify_api_key)])
async def deactivate_society(
    society_id: str,
    db: Session = Depends(get_db)
):
    """Soft-delete a society. Its proofs and records are kept."""
    society = society_service.deactivate(db, society_id)
    return {"success": True, "data": society_to_dict(society)}
