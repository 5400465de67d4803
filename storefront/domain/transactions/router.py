"""Transaction router - Customer order history and admin payment review"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_customer
from ...database import get_db
from ...models import User
from ...services.notification_service import notify_payment_status, notify_payment_success
from .schemas import RejectPaymentRequest
from .service import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Transactions"])


def get_transaction_service(db: Session = Depends(get_db)) -> TransactionService:
    """Dependency injection for TransactionService"""
    return TransactionService(db)


# ============================================================================
# CUSTOMER
# ============================================================================


@router.get("/customer/transactions")
async def list_transactions(
    status: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_customer),
    service: TransactionService = Depends(get_transaction_service),
):
    return {"success": True, "data": service.list_customer_transactions(current_user, status, limit, offset)}


@router.get("/customer/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_customer),
    service: TransactionService = Depends(get_transaction_service),
):
    return {"success": True, "data": service.get_customer_transaction(transaction_id, current_user)}


@router.post("/customer/transactions/{transaction_id}/cancel")
async def cancel_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_customer),
    service: TransactionService = Depends(get_transaction_service),
):
    data = service.cancel_customer_transaction(transaction_id, current_user)
    return {"success": True, "data": data, "message": "Transaction cancelled successfully"}


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/transactions")
async def list_all_transactions(
    type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_current_admin),
    service: TransactionService = Depends(get_transaction_service),
):
    return {"success": True, "data": service.list_admin_transactions(type, status, limit, offset)}


@router.post("/admin/payments/{payment_id}/approve")
async def approve_payment(
    payment_id: str,
    background_tasks: BackgroundTasks,
    admin: User = Depends(get_current_admin),
    service: TransactionService = Depends(get_transaction_service),
):
    """Approve a manual payment and activate the customer's services"""
    result = service.approve_payment(payment_id, admin)
    background_tasks.add_task(notify_payment_success, payment_id)
    return {"success": True, "data": result, "message": "Payment approved successfully"}


@router.post("/admin/payments/{payment_id}/reject")
async def reject_payment(
    payment_id: str,
    background_tasks: BackgroundTasks,
    data: Optional[RejectPaymentRequest] = None,
    admin: User = Depends(get_current_admin),
    service: TransactionService = Depends(get_transaction_service),
):
    result = service.reject_payment(payment_id, admin, data.reason if data else None)
    background_tasks.add_task(notify_payment_status, payment_id, "failed")
    return {"success": True, "data": result, "message": "Payment rejected"}
