"""
API routers package
"""
from greentax.api import (
    system,
    society,
    proofs,
    admin,
    compliance
)

__all__ = [
    "system",
    "society",
    "proofs",
    "admin",
    "compliance"
]
