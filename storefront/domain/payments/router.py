"""Payment router - Customer payments, public status and Duitku callbacks"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from ...auth import get_current_customer
from ...database import get_db
from ...models import User
from ...services.notification_service import (
    notify_payment_created,
    notify_payment_status,
    notify_payment_success,
)
from .schemas import CreatePaymentRequest
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


def schedule_status_notifications(background_tasks: BackgroundTasks, payment_id: str, status: str) -> None:
    if status == "paid":
        background_tasks.add_task(notify_payment_success, payment_id)
    elif status in ("failed", "expired", "cancelled"):
        background_tasks.add_task(notify_payment_status, payment_id, status)


# ============================================================================
# CUSTOMER
# ============================================================================


@router.get("/customer/payment/methods")
async def get_payment_methods(
    currency: str = Query("idr"),
    current_user: User = Depends(get_current_customer),
    service: PaymentService = Depends(get_payment_service),
):
    return service.list_payment_methods(currency)


@router.post("/customer/payment/create")
async def create_payment(
    data: CreatePaymentRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_customer),
    service: PaymentService = Depends(get_payment_service),
):
    """Create a payment for a checkout transaction"""
    logger.info(f"💳 Payment requested by user {current_user.id} for transaction {data.transactionId}")
    result = await service.create_payment(data, current_user)

    payment = result["payment"]
    if payment["status"] == "paid":
        background_tasks.add_task(notify_payment_success, payment["id"])
    else:
        background_tasks.add_task(notify_payment_created, payment["id"])

    message = result.pop("message")
    return {"success": True, "data": result, "message": message}


@router.get("/customer/payment/{payment_id}/status")
async def get_payment_status(
    payment_id: str,
    current_user: User = Depends(get_current_customer),
    service: PaymentService = Depends(get_payment_service),
):
    return {"success": True, "data": service.get_payment_status(payment_id, current_user)}


@router.post("/customer/payment/{payment_id}/check-status")
async def check_payment_status(
    payment_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_customer),
    service: PaymentService = Depends(get_payment_service),
):
    """Refresh a pending gateway payment from the provider"""
    result = await service.check_payment_status(payment_id, current_user)
    if result["updated"]:
        schedule_status_notifications(background_tasks, payment_id, result["status"])
    return {"success": True, "data": result}


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("/public/payment/{payment_id}/status")
async def get_public_payment_status(
    payment_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    return {"success": True, "data": service.get_public_payment_status(payment_id)}


async def _read_callback_body(request: Request) -> dict:
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        return dict(form)
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid request format")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid request format")
    return body


@router.post("/public/duitku/callback")
async def duitku_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    service: PaymentService = Depends(get_payment_service),
):
    """Payment notification from Duitku (form-encoded, JSON accepted)"""
    data = await _read_callback_body(request)
    logger.info(
        f"💳 Duitku callback received: order={data.get('merchantOrderId')}, "
        f"resultCode={data.get('resultCode')}, reference={data.get('reference')}"
    )

    result = await service.handle_duitku_callback(data)
    if not result["changed"]:
        return {"success": True, "message": "Callback acknowledged - no changes needed"}

    schedule_status_notifications(background_tasks, result["paymentId"], result["status"])
    return {"success": True, "message": "Callback processed successfully"}


@router.get("/public/duitku/return")
async def duitku_return(
    request: Request,
    merchantOrderId: Optional[str] = Query(None),
    resultCode: Optional[str] = Query(None),
    reference: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    """Customer redirect back from the Duitku payment page; display only"""
    result = service.resolve_duitku_return(merchantOrderId, resultCode, reference)

    if "application/json" in request.headers.get("accept", ""):
        return JSONResponse(content={"success": True, "data": result, "message": result["statusMessage"]})
    return RedirectResponse(url=result["redirectUrl"], status_code=307)
