"""Admin service - Payment method catalogue and bank account management"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import BankDetail, Payment, PaymentMethod
from ..payments.gateways.duitku import DuitkuGateway
from ..payments.gateways.manager import PaymentGatewayManager, gateway_manager
from ..payments.instructions import serialize_payment_method
from ..payments.repository import PaymentMethodRepository
from .schemas import BankDetailCreate, BankDetailUpdate, PaymentMethodCreate, PaymentMethodUpdate

logger = logging.getLogger(__name__)

# Request field -> PaymentMethod column
PAYMENT_METHOD_FIELDS = {
    "name": "name",
    "description": "description",
    "type": "type",
    "currency": "currency",
    "isActive": "is_active",
    "isGatewayMethod": "is_gateway_method",
    "gatewayProvider": "gateway_provider",
    "gatewayCode": "gateway_code",
    "requiresManualApproval": "requires_manual_approval",
    "feeType": "fee_type",
    "feeValue": "fee_value",
    "minFee": "min_fee",
    "maxFee": "max_fee",
    "paymentInstructions": "payment_instructions",
    "instructionType": "instruction_type",
    "instructionImageUrl": "instruction_image_url",
    "gatewayImageUrl": "gateway_image_url",
    "bankDetailId": "bank_detail_id",
}

BANK_DETAIL_FIELDS = {
    "bankName": "bank_name",
    "accountNumber": "account_number",
    "accountName": "account_name",
    "swiftCode": "swift_code",
    "currency": "currency",
    "isActive": "is_active",
}


def serialize_admin_payment_method(method: PaymentMethod) -> dict:
    data = serialize_payment_method(method)
    data.update(
        {
            "id": method.id,
            "currency": method.currency,
            "gatewayCode": method.gateway_code,
            "feeType": method.fee_type,
            "feeValue": method.fee_value,
            "minFee": method.min_fee,
            "maxFee": method.max_fee,
            "bankDetailId": method.bank_detail_id,
            "createdAt": method.created_at.isoformat() if method.created_at else None,
        }
    )
    return data


def serialize_admin_bank_detail(bank_detail: BankDetail) -> dict:
    return {
        "id": bank_detail.id,
        "bankName": bank_detail.bank_name,
        "accountNumber": bank_detail.account_number,
        "accountName": bank_detail.account_name,
        "swiftCode": bank_detail.swift_code,
        "currency": bank_detail.currency,
        "isActive": bank_detail.is_active,
        "createdAt": bank_detail.created_at.isoformat() if bank_detail.created_at else None,
    }


class AdminService:
    """Service layer for admin payment configuration"""

    def __init__(self, db: Session, gateways: Optional[PaymentGatewayManager] = None):
        self.db = db
        self.repo = PaymentMethodRepository()
        self.gateways = gateways or gateway_manager

    # ------------------------------------------------------------------
    # Payment methods
    # ------------------------------------------------------------------

    def list_payment_methods(self) -> list[PaymentMethod]:
        return self.repo.list_methods(self.db)

    def get_payment_method(self, method_id: str) -> PaymentMethod:
        method = self.repo.get_by_id(self.db, method_id)
        if not method:
            raise HTTPException(status_code=404, detail="Payment method not found")
        return method

    def _check_bank_detail(self, bank_detail_id):
        if bank_detail_id and not self.repo.get_bank_detail(self.db, bank_detail_id):
            raise HTTPException(status_code=400, detail="Bank detail not found")

    def create_payment_method(self, data: PaymentMethodCreate) -> PaymentMethod:
        if self.repo.get_by_code(self.db, data.code):
            raise HTTPException(status_code=400, detail=f"Payment method with code {data.code} already exists")
        self._check_bank_detail(data.bankDetailId)

        method = PaymentMethod(code=data.code)
        for field, column in PAYMENT_METHOD_FIELDS.items():
            setattr(method, column, getattr(data, field))
        self.db.add(method)
        self.db.commit()
        self.db.refresh(method)
        logger.info(f"✅ Created payment method {method.code}")
        return method

    def update_payment_method(self, method_id: str, data: PaymentMethodUpdate) -> PaymentMethod:
        method = self.get_payment_method(method_id)
        updates = data.model_dump(exclude_unset=True)
        if "bankDetailId" in updates:
            self._check_bank_detail(updates["bankDetailId"])

        for field, value in updates.items():
            setattr(method, PAYMENT_METHOD_FIELDS[field], value)
        self.db.commit()
        self.db.refresh(method)
        logger.info(f"Updated payment method {method.code}: {sorted(updates)}")
        return method

    def delete_payment_method(self, method_id: str) -> str:
        """Delete an unused method; methods with payments are only deactivated"""
        method = self.get_payment_method(method_id)
        used = self.db.query(Payment).filter(Payment.method == method.code).count()
        if used:
            method.is_active = False
            self.db.commit()
            logger.info(f"⚠️ Payment method {method.code} has {used} payments, deactivated instead of deleted")
            return "deactivated"

        self.db.delete(method)
        self.db.commit()
        logger.info(f"🗑️ Deleted payment method {method.code}")
        return "deleted"

    def _duitku(self) -> DuitkuGateway:
        gateway = self.gateways.get_gateway("duitku")
        if not isinstance(gateway, DuitkuGateway) or not gateway.is_configured():
            raise HTTPException(status_code=503, detail="Duitku gateway is not configured")
        return gateway

    async def sync_duitku_methods(self) -> dict:
        result = await self._duitku().sync_payment_methods(self.db)
        logger.info(f"💳 Duitku method sync: {result}")
        return result

    def create_default_methods(self) -> dict:
        gateway = self.gateways.get_gateway("duitku")
        if not isinstance(gateway, DuitkuGateway):
            raise HTTPException(status_code=503, detail="Duitku gateway is not available")
        return gateway.create_default_payment_methods(self.db)

    # ------------------------------------------------------------------
    # Bank details
    # ------------------------------------------------------------------

    def list_bank_details(self) -> list[BankDetail]:
        return self.repo.list_bank_details(self.db)

    def get_bank_detail(self, bank_detail_id: str) -> BankDetail:
        bank_detail = self.repo.get_bank_detail(self.db, bank_detail_id)
        if not bank_detail:
            raise HTTPException(status_code=404, detail="Bank detail not found")
        return bank_detail

    def create_bank_detail(self, data: BankDetailCreate) -> BankDetail:
        bank_detail = BankDetail()
        for field, column in BANK_DETAIL_FIELDS.items():
            setattr(bank_detail, column, getattr(data, field))
        self.db.add(bank_detail)
        self.db.commit()
        self.db.refresh(bank_detail)
        logger.info(f"✅ Created bank detail {bank_detail.bank_name} ({bank_detail.id})")
        return bank_detail

    def update_bank_detail(self, bank_detail_id: str, data: BankDetailUpdate) -> BankDetail:
        bank_detail = self.get_bank_detail(bank_detail_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(bank_detail, BANK_DETAIL_FIELDS[field], value)
        self.db.commit()
        self.db.refresh(bank_detail)
        return bank_detail

    def delete_bank_detail(self, bank_detail_id: str) -> None:
        bank_detail = self.get_bank_detail(bank_detail_id)
        if bank_detail.payment_methods:
            raise HTTPException(status_code=400, detail="Bank detail is used by payment methods")
        self.db.delete(bank_detail)
        self.db.commit()
        logger.info(f"🗑️ Deleted bank detail {bank_detail_id}")
