"""Checkout router - FastAPI endpoint for customer checkout"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_customer
from ...database import get_db
from ...models import User
from .schemas import CheckoutRequest
from .service import CheckoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customer", tags=["Checkout"])


def get_checkout_service(db: Session = Depends(get_db)) -> CheckoutService:
    """Dependency injection for CheckoutService"""
    return CheckoutService(db)


@router.post("/checkout")
async def checkout(
    data: CheckoutRequest,
    current_user: User = Depends(get_current_customer),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Create a transaction for a WhatsApp package, applying an optional voucher"""
    result = service.checkout(data, current_user)
    return {"success": True, "data": result, "message": "Checkout created successfully"}
