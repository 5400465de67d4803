"""Transaction repository - Database operations for transactions"""

from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload

from ...models import Transaction, TransactionWhatsappService


class TransactionRepository:
    """Repository for transaction database operations"""

    @staticmethod
    def _base_query(db: Session) -> Query:
        return db.query(Transaction).options(
            joinedload(Transaction.whatsapp_transaction).joinedload(TransactionWhatsappService.package),
            joinedload(Transaction.user),
            joinedload(Transaction.voucher),
        )

    @classmethod
    def get_transaction(cls, db: Session, transaction_id: str) -> Optional[Transaction]:
        return cls._base_query(db).filter(Transaction.id == transaction_id).first()

    @classmethod
    def get_user_transaction(cls, db: Session, transaction_id: str, user_id: str) -> Optional[Transaction]:
        return (
            cls._base_query(db)
            .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .first()
        )

    @classmethod
    def list_transactions(
        cls,
        db: Session,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[Transaction], int]:
        """Page of transactions, newest first, with the unpaged total"""
        query = cls._base_query(db)
        if user_id:
            query = query.filter(Transaction.user_id == user_id)
        if type:
            query = query.filter(Transaction.type == type)
        if status:
            query = query.filter(Transaction.status == status)
        total = query.count()
        rows = query.order_by(Transaction.created_at.desc()).offset(offset).limit(limit).all()
        return rows, total
