"""WhatsApp router - Packages, customer subscriptions and admin dashboard"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_customer
from ...database import get_db
from ...models import User
from ..transactions.service import TransactionService
from .schemas import PackageCreate, PackageUpdate
from .service import WhatsAppPackageService, serialize_package

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WhatsApp"])


def get_package_service(db: Session = Depends(get_db)) -> WhatsAppPackageService:
    """Dependency injection for WhatsAppPackageService"""
    return WhatsAppPackageService(db)


@router.get("/public/whatsapp/packages")
async def list_packages(service: WhatsAppPackageService = Depends(get_package_service)):
    return {"success": True, "data": [serialize_package(p) for p in service.list_packages()]}


@router.get("/customer/whatsapp/subscriptions")
async def get_subscriptions(
    current_user: User = Depends(get_current_customer),
    service: WhatsAppPackageService = Depends(get_package_service),
):
    return {"success": True, "data": service.get_customer_subscriptions(current_user)}


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/whatsapp/packages")
async def admin_list_packages(
    admin: User = Depends(get_current_admin),
    service: WhatsAppPackageService = Depends(get_package_service),
):
    return {"success": True, "data": [serialize_package(p) for p in service.list_packages()]}


@router.post("/admin/whatsapp/packages", status_code=201)
async def create_package(
    data: PackageCreate,
    admin: User = Depends(get_current_admin),
    service: WhatsAppPackageService = Depends(get_package_service),
):
    return {"success": True, "data": serialize_package(service.create_package(data))}


@router.put("/admin/whatsapp/packages/{package_id}")
async def update_package(
    package_id: str,
    data: PackageUpdate,
    admin: User = Depends(get_current_admin),
    service: WhatsAppPackageService = Depends(get_package_service),
):
    return {"success": True, "data": serialize_package(service.update_package(package_id, data))}


@router.delete("/admin/whatsapp/packages/{package_id}")
async def delete_package(
    package_id: str,
    admin: User = Depends(get_current_admin),
    service: WhatsAppPackageService = Depends(get_package_service),
):
    service.delete_package(package_id)
    return {"success": True, "message": "Package deleted successfully"}


@router.get("/admin/whatsapp/dashboard")
async def get_dashboard(
    admin: User = Depends(get_current_admin),
    service: WhatsAppPackageService = Depends(get_package_service),
):
    return {"success": True, "data": service.get_dashboard()}


@router.get("/admin/whatsapp/transactions")
async def list_whatsapp_transactions(
    status: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    data = TransactionService(db).list_admin_transactions("whatsapp_service", status, limit, offset)
    return {"success": True, "data": data}
