"""
Services package - Business logic layer
"""
from greentax.services.validation_service import validation_service
from greentax.services.compliance_service import compliance_service
from greentax.services.society_service import society_service
from greentax.services.image_store import image_store
from greentax.services.proof_service import proof_service

__all__ = [
    "validation_service",
    "compliance_service",
    "society_service",
    "image_store",
    "proof_service"
]
