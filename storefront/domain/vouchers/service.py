"""Voucher service - Voucher validation and discount calculation"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Voucher, WhatsappApiPackage
from ...shared.formatting import format_idr
from .repository import VoucherRepository
from .schemas import CheckVoucherRequest, VoucherCreate, VoucherUpdate

logger = logging.getLogger(__name__)

CALCULATION_TYPES = ("percentage", "fixed_amount")

# Request field -> column
UPDATE_FIELDS = {
    "name": "name",
    "description": "description",
    "type": "type",
    "discountType": "discount_type",
    "value": "value",
    "minAmount": "min_amount",
    "maxDiscount": "max_discount",
    "maxUses": "max_uses",
    "allowMultipleUsePerUser": "allow_multiple_use_per_user",
    "isActive": "is_active",
    "startDate": "start_date",
    "endDate": "end_date",
}
REQUIRED_FIELDS = ("name", "discountType", "value", "allowMultipleUsePerUser", "isActive", "startDate")


class VoucherError(Exception):
    """Voucher cannot be applied; message is shown to the customer"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def get_calculation_type(voucher: Voucher) -> str:
    """type wins over discount_type; anything unrecognised is a fixed amount"""
    if voucher.type in CALCULATION_TYPES:
        return voucher.type
    if voucher.discount_type in CALCULATION_TYPES:
        return voucher.discount_type
    return "fixed_amount"


def calculate_discount(voucher: Voucher, applicable_amount: float) -> float:
    value = float(voucher.value or 0)
    if get_calculation_type(voucher) == "percentage":
        discount = applicable_amount * value / 100
        if voucher.max_discount:
            discount = min(discount, float(voucher.max_discount))
    else:
        discount = min(value, applicable_amount)
    return round(max(0.0, min(discount, applicable_amount)), 2)


def check_voucher_rules(
    db: Session,
    voucher: Optional[Voucher],
    amount: float,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Voucher:
    """Raise VoucherError with the first rule the voucher breaks"""
    now = now or datetime.utcnow()

    if not voucher:
        raise VoucherError("Invalid voucher code")
    if not voucher.is_active:
        raise VoucherError("Voucher is not active")
    if voucher.start_date and now < voucher.start_date:
        raise VoucherError("Voucher is not yet valid")
    if voucher.end_date and now > voucher.end_date:
        raise VoucherError("Voucher has expired")
    if voucher.max_uses and (voucher.used_count or 0) >= voucher.max_uses:
        raise VoucherError("Voucher usage limit reached")
    if user_id and not voucher.allow_multiple_use_per_user and VoucherRepository.user_has_used(db, voucher.id, user_id):
        raise VoucherError("You have already used this voucher")
    if voucher.min_amount and amount < float(voucher.min_amount):
        raise VoucherError(f"Minimum order amount is {format_idr(voucher.min_amount)}")
    return voucher


def serialize_voucher(voucher: Voucher) -> dict:
    return {
        "id": voucher.id,
        "code": voucher.code,
        "name": voucher.name,
        "description": voucher.description,
        "type": voucher.type,
        "discountType": voucher.discount_type,
        "value": voucher.value,
        "minAmount": voucher.min_amount,
        "maxDiscount": voucher.max_discount,
        "maxUses": voucher.max_uses,
        "usedCount": voucher.used_count,
        "allowMultipleUsePerUser": voucher.allow_multiple_use_per_user,
        "isActive": voucher.is_active,
        "startDate": voucher.start_date,
        "endDate": voucher.end_date,
        "createdAt": voucher.created_at,
    }


class VoucherService:
    """Service layer for voucher business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = VoucherRepository()

    def check_voucher(self, data: CheckVoucherRequest, user_id: Optional[str] = None) -> dict:
        """Validate a code against a basket and return the discount breakdown"""
        original_amount = 0.0
        items = []
        for item in data.items:
            if not item.duration:
                raise VoucherError(f"Error processing item {item.id}: Duration is required for WhatsApp packages")
            package = self.db.query(WhatsappApiPackage).filter(WhatsappApiPackage.id == item.id).first()
            if not package:
                raise VoucherError(f"Error processing item {item.id}: WhatsApp package with ID {item.id} not found")

            price = float(package.price_month if item.duration == "month" else package.price_year)
            total = price * item.quantity
            original_amount += total
            items.append(
                {
                    "id": item.id,
                    "type": item.type,
                    "name": package.name,
                    "price": price,
                    "quantity": item.quantity,
                    "total": total,
                }
            )

        voucher = check_voucher_rules(self.db, self.repo.get_by_code(self.db, data.code), original_amount, user_id)

        applicable_amount = original_amount
        discount = calculate_discount(voucher, applicable_amount)
        logger.info(f"✅ Voucher {voucher.code} valid: discount {discount} on {original_amount}")

        return {
            "voucher": serialize_voucher(voucher),
            "calculation": {
                "originalAmount": original_amount,
                "applicableAmount": applicable_amount,
                "discountAmount": discount,
                "finalAmount": round(original_amount - discount, 2),
                "savings": discount,
                "currency": "idr",
                "items": items,
            },
        }

    # ------------------------------------------------------------------
    # Admin CRUD
    # ------------------------------------------------------------------

    def list_vouchers(self, is_active: Optional[bool] = None) -> list[Voucher]:
        return self.repo.list_vouchers(self.db, is_active)

    def get_voucher(self, voucher_id: str) -> Voucher:
        voucher = self.repo.get_by_id(self.db, voucher_id)
        if not voucher:
            raise HTTPException(status_code=404, detail="Voucher not found")
        return voucher

    def create_voucher(self, data: VoucherCreate) -> Voucher:
        if self.repo.get_by_code(self.db, data.code):
            raise HTTPException(status_code=400, detail="Voucher code already exists")
        if data.endDate and data.startDate and data.endDate <= data.startDate:
            raise HTTPException(status_code=400, detail="End date must be after start date")

        voucher = self.repo.create(
            self.db,
            code=data.code,
            name=data.name,
            description=data.description,
            type=data.type,
            discount_type=data.discountType,
            value=data.value,
            min_amount=data.minAmount,
            max_discount=data.maxDiscount,
            max_uses=data.maxUses,
            allow_multiple_use_per_user=data.allowMultipleUsePerUser,
            is_active=data.isActive,
            start_date=data.startDate or datetime.utcnow(),
            end_date=data.endDate,
        )
        logger.info(f"✅ Created voucher {voucher.code}")
        return voucher

    def update_voucher(self, voucher_id: str, data: VoucherUpdate) -> Voucher:
        """Apply the fields present in the request; explicit nulls clear optional limits"""
        voucher = self.get_voucher(voucher_id)
        changes = data.model_dump(exclude_unset=True)

        cleared = [field for field in REQUIRED_FIELDS if field in changes and changes[field] is None]
        if cleared:
            raise HTTPException(status_code=400, detail=f"Cannot clear required fields: {', '.join(cleared)}")

        updates = {UPDATE_FIELDS[field]: value for field, value in changes.items()}
        voucher = self.repo.update(self.db, voucher, **updates)
        logger.info(f"✅ Updated voucher {voucher.code}: {', '.join(updates) or 'no changes'}")
        return voucher

    def delete_voucher(self, voucher_id: str) -> None:
        voucher = self.get_voucher(voucher_id)
        if voucher.transactions:
            # Keep history intact for vouchers that were already redeemed
            voucher.is_active = False
            self.db.commit()
            logger.info(f"⚠️ Voucher {voucher.code} has transactions, deactivated instead of deleted")
            return
        self.repo.delete(self.db, voucher)
        logger.info(f"🗑️ Deleted voucher {voucher.code}")
