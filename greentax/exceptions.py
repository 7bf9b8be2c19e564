"""
Domain exceptions for the Green-Tax service.

Input-contract violations and referential failures are raised; business
verdicts (FLAGGED / REJECTED) are never exceptions.
"""


class GreenTaxError(Exception):
    """Base class for all service errors"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCoordinate(GreenTaxError):
    status_code = 400


class MissingImageFingerprint(GreenTaxError):
    status_code = 400


class InvalidImage(GreenTaxError):
    status_code = 400


class SocietyNotFound(GreenTaxError):
    status_code = 404

    def __init__(self, society_id: str):
        super().__init__("Society not found")
        self.society_id = society_id


class ProofNotFound(GreenTaxError):
    status_code = 404

    def __init__(self, log_id: str):
        super().__init__("Proof not found")
        self.log_id = log_id


class DuplicateTaxNumber(GreenTaxError):
    status_code = 409


class ProofAlreadyReviewed(GreenTaxError):
    status_code = 409


class ProofImmutableError(GreenTaxError):
    """Raised when a write touches a field outside the review overlay"""
    status_code = 500
