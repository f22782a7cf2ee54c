from typing import Dict, Any
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from ftrmsg.core.config import settings
from ftrmsg.core.database import get_async_session
from ftrmsg.repositories.profile_repository import ProfileRepository
from ftrmsg.models.profile import Profile

# Security configuration
security = HTTPBearer()


class AuthService:
    """Verifies bearer tokens issued by the external auth provider."""

    @staticmethod
    def verify_token(token: str) -> Dict[str, Any]:
        """Verify a JWT access token and return its payload."""
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
                audience=settings.JWT_AUDIENCE,
            )
            return payload
        except JWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )


async def get_current_profile(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_async_session)
) -> Profile:
    """
    Dependency to get the caller's profile from the JWT `sub` claim.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = AuthService.verify_token(credentials.credentials)
    subject = payload.get("sub")
    if subject is None:
        raise credentials_exception

    try:
        profile_id = UUID(str(subject))
    except ValueError:
        raise credentials_exception

    profile = await ProfileRepository(session).get_by_id(profile_id)
    if profile is None:
        raise credentials_exception

    return profile
