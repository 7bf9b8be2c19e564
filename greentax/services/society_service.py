"""
Society Service - Registration and lookup of housing societies
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session

from greentax.db.models import Society
from greentax.exceptions import DuplicateTaxNumber, InvalidCoordinate, SocietyNotFound
from greentax.utils.helpers import generate_unique_id, is_valid_coordinate

logger = logging.getLogger(__name__)


class SocietyService:
    """Service for managing societies. Societies are deactivated, never deleted."""

    def register(
        self,
        db: Session,
        name: str,
        ward: str,
        latitude: float,
        longitude: float,
        property_tax_number: str,
        address: Optional[str] = None,
        total_units: Optional[int] = None,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None
    ) -> Society:
        logger.info(f"Registering new society: {name}")

        if not is_valid_coordinate(latitude, longitude):
            raise InvalidCoordinate(f"Invalid society coordinate: lat={latitude}, lng={longitude}")

        existing = db.query(Society).filter(
            Society.property_tax_number == property_tax_number
        ).first()
        if existing:
            raise DuplicateTaxNumber("Society with this property tax number already exists")

        society = Society(
            id=generate_unique_id("SOC-"),
            name=name,
            ward=ward,
            latitude=latitude,
            longitude=longitude,
            property_tax_number=property_tax_number,
            address=address or "",
            total_units=total_units or 0,
            contact_email=contact_email or "",
            contact_phone=contact_phone or "",
            is_active=True
        )
        db.add(society)
        db.commit()
        db.refresh(society)

        logger.info(f"Society registered: {name} (ID: {society.id})")
        return society

    def get(self, db: Session, society_id: str) -> Society:
        society = db.query(Society).filter(Society.id == society_id).first()
        if not society:
            raise SocietyNotFound(society_id)
        return society

    def deactivate(self, db: Session, society_id: str) -> Society:
        society = self.get(db, society_id)
        society.is_active = False
        db.commit()
        db.refresh(society)
        logger.info(f"Society deactivated: {society_id}")
        return society


# Singleton instance
society_service = SocietyService()
