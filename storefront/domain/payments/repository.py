"""Payment repository - Database operations for payments and payment methods"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import BankDetail, Payment, PaymentMethod, Transaction, TransactionWhatsappService


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_payment(db: Session, payment_id: str) -> Optional[Payment]:
        return (
            db.query(Payment)
            .options(
                joinedload(Payment.transaction)
                .joinedload(Transaction.whatsapp_transaction)
                .joinedload(TransactionWhatsappService.package)
            )
            .filter(Payment.id == payment_id)
            .first()
        )

    @staticmethod
    def get_user_payment(db: Session, payment_id: str, user_id: str) -> Optional[Payment]:
        return (
            db.query(Payment)
            .join(Transaction, Payment.transaction_id == Transaction.id)
            .filter(Payment.id == payment_id, Transaction.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_by_external_id(db: Session, external_id: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.external_id == external_id).first()

    @staticmethod
    def get_latest_for_transaction(
        db: Session, transaction_id: str, gateway_provider: Optional[str] = None
    ) -> Optional[Payment]:
        query = db.query(Payment).filter(Payment.transaction_id == transaction_id)
        if gateway_provider:
            query = query.filter(Payment.gateway_provider == gateway_provider)
        return query.order_by(Payment.created_at.desc()).first()

    @staticmethod
    def get_pending_for_transaction(db: Session, transaction_id: str) -> Optional[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.transaction_id == transaction_id, Payment.status == "pending")
            .first()
        )

    @staticmethod
    def get_user_transaction(db: Session, transaction_id: str, user_id: str) -> Optional[Transaction]:
        return (
            db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .first()
        )


class PaymentMethodRepository:
    """Repository for payment method and bank detail operations"""

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[PaymentMethod]:
        return db.query(PaymentMethod).filter(PaymentMethod.code == code).first()

    @staticmethod
    def get_by_id(db: Session, method_id: str) -> Optional[PaymentMethod]:
        return db.query(PaymentMethod).filter(PaymentMethod.id == method_id).first()

    @staticmethod
    def list_methods(db: Session, active_only: bool = False) -> list[PaymentMethod]:
        query = db.query(PaymentMethod).options(joinedload(PaymentMethod.bank_detail))
        if active_only:
            query = query.filter(PaymentMethod.is_active.is_(True))
        return query.order_by(PaymentMethod.code.asc()).all()

    @staticmethod
    def get_bank_detail(db: Session, bank_detail_id: str) -> Optional[BankDetail]:
        return db.query(BankDetail).filter(BankDetail.id == bank_detail_id).first()

    @staticmethod
    def list_bank_details(db: Session) -> list[BankDetail]:
        return db.query(BankDetail).order_by(BankDetail.created_at.desc()).all()
