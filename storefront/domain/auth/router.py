"""Auth router - Sign-in with email or phone number"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...security_utils import create_access_token, log_security_event, mask_sensitive_data, verify_password
from ...shared.validators import normalize_phone_number, validate_email
from .schemas import SignInRequest, SignInResponse, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _to_user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, email=user.email, phone=user.phone, role=user.role)


@router.post("/signin", response_model=SignInResponse)
async def signin(data: SignInRequest, request: Request, db: Session = Depends(get_db)):
    """Exchange email/phone and password for a bearer token"""
    identifier = data.identifier.strip()
    client_ip = request.client.host if request.client else None

    if "@" in identifier:
        try:
            email = validate_email(identifier)
        except ValueError:
            raise HTTPException(status_code=401, detail="Invalid credentials")
        user = db.query(User).filter(User.email == email).first()
    else:
        phone = normalize_phone_number(identifier)
        user = db.query(User).filter(or_(User.phone == phone, User.phone == identifier)).first()

    if not user or not user.is_active or not verify_password(data.password, user.password_hash):
        log_security_event(
            "failed_signin", ip_address=client_ip, details={"identifier": mask_sensitive_data(identifier)}
        )
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token({"sub": user.id, "role": user.role})
    log_security_event("signin", user_id=user.id, ip_address=client_ip)
    logger.info(f"✅ User {user.id} signed in")

    return SignInResponse(access_token=token, user=_to_user_response(user))


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return _to_user_response(current_user)
