"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from typing import Optional, Dict, Any
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ambulance_backend.app.core.jwt import decode_access_token
from ambulance_backend.app.db.session import get_db
from ambulance_backend.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


async def authenticate_token(token: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    """
    Validate a bearer token against the users collection.
    
    Checks:
    1. JWT signature and expiry
    2. Subject claim present
    3. User document exists and is active (real-time check)
    
    Returns:
        Decoded token payload; role and hospital_id are taken from the
        user document so stale claims cannot outlive a role change
        
    Raises:
        HTTPException: 401 if authentication fails, 403 if the user is inactive
    """
    payload = decode_access_token(token) if token else None
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )
    
    return {
        **payload,
        "role": user.role.value,
        "hospital_id": user.hospital_id,
    }


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """FastAPI dependency for JWT authentication."""
    token = credentials.credentials if credentials else None
    return await authenticate_token(token, db)
