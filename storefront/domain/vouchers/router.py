"""Voucher router - Public voucher check and admin voucher management"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_optional_user
from ...database import get_db
from ...models import User
from .schemas import CheckVoucherRequest, VoucherCreate, VoucherUpdate
from .service import VoucherError, VoucherService, serialize_voucher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Vouchers"])


def get_voucher_service(db: Session = Depends(get_db)) -> VoucherService:
    """Dependency injection for VoucherService"""
    return VoucherService(db)


@router.post("/public/check-voucher")
async def check_voucher(
    data: CheckVoucherRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    service: VoucherService = Depends(get_voucher_service),
):
    """Check a voucher code; signed-in customers also get per-user usage checks"""
    try:
        result = service.check_voucher(data, current_user.id if current_user else None)
    except VoucherError as e:
        logger.info(f"Voucher {data.code} rejected: {e.message}")
        return JSONResponse(status_code=400, content={"success": False, "valid": False, "error": e.message})
    return {"success": True, "valid": True, "data": result}


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/vouchers")
async def list_vouchers(
    is_active: Optional[bool] = Query(None),
    admin: User = Depends(get_current_admin),
    service: VoucherService = Depends(get_voucher_service),
):
    vouchers = service.list_vouchers(is_active)
    return {"success": True, "data": [serialize_voucher(v) for v in vouchers]}


@router.post("/admin/vouchers", status_code=201)
async def create_voucher(
    data: VoucherCreate,
    admin: User = Depends(get_current_admin),
    service: VoucherService = Depends(get_voucher_service),
):
    return {"success": True, "data": serialize_voucher(service.create_voucher(data))}


@router.put("/admin/vouchers/{voucher_id}")
async def update_voucher(
    voucher_id: str,
    data: VoucherUpdate,
    admin: User = Depends(get_current_admin),
    service: VoucherService = Depends(get_voucher_service),
):
    return {"success": True, "data": serialize_voucher(service.update_voucher(voucher_id, data))}


@router.delete("/admin/vouchers/{voucher_id}")
async def delete_voucher(
    voucher_id: str,
    admin: User = Depends(get_current_admin),
    service: VoucherService = Depends(get_voucher_service),
):
    service.delete_voucher(voucher_id)
    return {"success": True, "message": "Voucher deleted"}
