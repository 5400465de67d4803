"""Voucher repository - Database operations for vouchers"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Voucher, VoucherUsage


class VoucherRepository:
    """Repository for voucher database operations"""

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[Voucher]:
        return db.query(Voucher).filter(Voucher.code == code.strip().upper()).first()

    @staticmethod
    def get_by_id(db: Session, voucher_id: str) -> Optional[Voucher]:
        return db.query(Voucher).filter(Voucher.id == voucher_id).first()

    @staticmethod
    def list_vouchers(db: Session, is_active: Optional[bool] = None) -> list[Voucher]:
        query = db.query(Voucher)
        if is_active is not None:
            query = query.filter(Voucher.is_active.is_(is_active))
        return query.order_by(Voucher.created_at.desc()).all()

    @staticmethod
    def user_has_used(db: Session, voucher_id: str, user_id: str) -> bool:
        return (
            db.query(VoucherUsage)
            .filter(VoucherUsage.voucher_id == voucher_id, VoucherUsage.user_id == user_id)
            .first()
            is not None
        )

    @staticmethod
    def record_usage(
        db: Session, voucher: Voucher, user_id: str, transaction_id: str, discount_amount: float
    ) -> VoucherUsage:
        """Count one use of the voucher; the caller commits"""
        voucher.used_count = (voucher.used_count or 0) + 1
        usage = VoucherUsage(
            voucher_id=voucher.id,
            user_id=user_id,
            transaction_id=transaction_id,
            discount_amount=discount_amount,
        )
        db.add(usage)
        return usage

    @staticmethod
    def create(db: Session, **voucher_data) -> Voucher:
        voucher = Voucher(**voucher_data)
        db.add(voucher)
        db.commit()
        db.refresh(voucher)
        return voucher

    @staticmethod
    def update(db: Session, voucher: Voucher, **updates) -> Voucher:
        for key, value in updates.items():
            setattr(voucher, key, value)
        db.commit()
        db.refresh(voucher)
        return voucher

    @staticmethod
    def delete(db: Session, voucher: Voucher) -> None:
        db.delete(voucher)
        db.commit()
