"""Bearer-token actor identity and capability dependencies."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from catalog_moderation.core.config import settings
from catalog_moderation.core.exceptions import AuthenticationError, AuthorizationError
from catalog_moderation.db.session import get_db
from catalog_moderation.services.permission_service import permission_service

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def create_access_token(actor_token: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed token whose subject is the opaque actor token."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode = {"sub": actor_token, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> str:
    """Extract the actor token from the Bearer JWT."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    payload = decode_token(credentials.credentials)
    actor = payload.get("sub")
    if not actor:
        raise AuthenticationError("Invalid token payload")
    return str(actor)


class RequireCapability:
    """Dependency that resolves the actor and checks one of ``capabilities``."""

    def __init__(self, *capabilities: str):
        self.capabilities = list(capabilities)

    async def __call__(
        self,
        actor: str = Depends(get_current_actor),
        db: Session = Depends(get_db),
    ) -> str:
        check = permission_service.has_any_permission(db, actor, self.capabilities)
        if not check.granted:
            raise AuthorizationError(
                f"Requires one of: {', '.join(self.capabilities)}"
            )
        return actor


require_reviewer = RequireCapability("review", "moderator", "admin")
require_admin = RequireCapability("admin")
