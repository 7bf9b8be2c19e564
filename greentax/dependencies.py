"""
FastAPI dependencies for the Green-Tax service
"""
from typing import Generator, Optional
from fastapi import HTTPException, Header, status
from sqlalchemy.orm import Session
from greentax.db.database import SessionLocal
from greentax.config import settings


def get_db() -> Generator[Session, None, None]:
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def verify_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    """Verify API key for admin endpoints"""
    if not x_api_key or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return x_api_key


async def current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Acting user reference (uploader / reviewer), supplied by the auth gateway"""
    return x_user_id
