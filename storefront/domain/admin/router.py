"""Admin router - Payment methods, gateways and bank details"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...models import User
from .schemas import BankDetailCreate, BankDetailUpdate, PaymentMethodCreate, PaymentMethodUpdate
from .service import AdminService, serialize_admin_bank_detail, serialize_admin_payment_method

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def get_admin_service(db: Session = Depends(get_db)) -> AdminService:
    """Dependency injection for AdminService"""
    return AdminService(db)


# ============================================================================
# PAYMENT METHODS
# ============================================================================


@router.get("/payment-methods")
async def list_payment_methods(
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return {"success": True, "data": [serialize_admin_payment_method(m) for m in service.list_payment_methods()]}


@router.get("/payment-methods/gateways")
async def get_gateway_status(
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return {"success": True, "data": service.gateways.get_gateway_status()}


@router.post("/payment-methods/sync/duitku")
async def sync_duitku_methods(
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    """Pull the live method list from Duitku into the catalogue"""
    result = await service.sync_duitku_methods()
    return {"success": True, "data": result, "message": f"Synced {result['total']} Duitku payment methods"}


@router.post("/payment-methods/defaults")
async def create_default_methods(
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    result = service.create_default_methods()
    return {"success": True, "data": result}


@router.get("/payment-methods/{method_id}")
async def get_payment_method(
    method_id: str,
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return {"success": True, "data": serialize_admin_payment_method(service.get_payment_method(method_id))}


@router.post("/payment-methods", status_code=201)
async def create_payment_method(
    data: PaymentMethodCreate,
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return {"success": True, "data": serialize_admin_payment_method(service.create_payment_method(data))}


@router.put("/payment-methods/{method_id}")
async def update_payment_method(
    method_id: str,
    data: PaymentMethodUpdate,
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return {"success": True, "data": serialize_admin_payment_method(service.update_payment_method(method_id, data))}


@router.delete("/payment-methods/{method_id}")
async def delete_payment_method(
    method_id: str,
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    outcome = service.delete_payment_method(method_id)
    return {"success": True, "result": outcome, "message": f"Payment method {outcome}"}


# ============================================================================
# BANK DETAILS
# ============================================================================


@router.get("/bank-details")
async def list_bank_details(
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return {"success": True, "data": [serialize_admin_bank_detail(b) for b in service.list_bank_details()]}


@router.post("/bank-details", status_code=201)
async def create_bank_detail(
    data: BankDetailCreate,
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return {"success": True, "data": serialize_admin_bank_detail(service.create_bank_detail(data))}


@router.put("/bank-details/{bank_detail_id}")
async def update_bank_detail(
    bank_detail_id: str,
    data: BankDetailUpdate,
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return {"success": True, "data": serialize_admin_bank_detail(service.update_bank_detail(bank_detail_id, data))}


@router.delete("/bank-details/{bank_detail_id}")
async def delete_bank_detail(
    bank_detail_id: str,
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    service.delete_bank_detail(bank_detail_id)
    return {"success": True, "message": "Bank detail deleted successfully"}
