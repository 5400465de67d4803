import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .security_utils import verify_access_token

logger = logging.getLogger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _resolve_user(db: Session, token: str) -> Optional[User]:
    payload = verify_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    return db.query(User).filter(User.id == payload["sub"], User.is_active.is_(True)).first()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user"""
    user = _resolve_user(db, credentials.credentials)
    if not user:
        logger.warning("❌ Rejected request with invalid or expired token")
        raise HTTPException(status_code=401, detail="Authentication required. Please login first.")
    return user


async def get_current_customer(user: User = Depends(get_current_user)) -> User:
    """Any authenticated account may act as a customer"""
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        logger.warning(f"⚠️ User {user.id} attempted admin access with role {user.role}")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Resolve the user when a valid token is present, otherwise None"""
    if not credentials:
        return None
    return _resolve_user(db, credentials.credentials)
