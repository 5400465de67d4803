"""WhatsApp service - Package catalogue, customer subscriptions and admin dashboard"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import (
    ServicesWhatsappCustomers,
    Transaction,
    TransactionWhatsappService,
    User,
    WhatsappApiPackage,
    WhatsAppSession,
)
from .schemas import PackageCreate, PackageUpdate
from .subscription import days_remaining, get_subscription_status, update_expired_subscriptions

logger = logging.getLogger(__name__)

REVENUE_STATUSES = ("in_progress", "success")


def serialize_package(package: WhatsappApiPackage) -> dict:
    return {
        "id": package.id,
        "name": package.name,
        "description": package.description,
        "priceMonth": package.price_month,
        "priceYear": package.price_year,
        "maxSession": package.max_session,
        "createdAt": package.created_at.isoformat() if package.created_at else None,
    }


def serialize_subscription(subscription: ServicesWhatsappCustomers, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    package = subscription.package
    return {
        "id": subscription.id,
        "packageId": subscription.package_id,
        "packageName": package.name if package else None,
        "maxSession": package.max_session if package else 0,
        "status": subscription.status,
        "isActive": subscription.status == "active" and subscription.expired_at > now,
        "expiredAt": subscription.expired_at.isoformat(),
        "activatedAt": subscription.activated_at.isoformat() if subscription.activated_at else None,
        "lastSubscriptionAt": (
            subscription.last_subscription_at.isoformat() if subscription.last_subscription_at else None
        ),
        "daysRemaining": days_remaining(subscription, now),
    }


def _revenue_total():
    amount = func.coalesce(Transaction.final_amount, Transaction.total_after_discount, Transaction.amount)
    return func.coalesce(func.sum(amount), 0)


class WhatsAppPackageService:
    """Service layer for WhatsApp package business logic"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Packages
    # ------------------------------------------------------------------

    def list_packages(self) -> list[WhatsappApiPackage]:
        return self.db.query(WhatsappApiPackage).order_by(WhatsappApiPackage.price_month.asc()).all()

    def get_package(self, package_id: str) -> WhatsappApiPackage:
        package = self.db.query(WhatsappApiPackage).filter(WhatsappApiPackage.id == package_id).first()
        if not package:
            raise HTTPException(status_code=404, detail="WhatsApp package not found")
        return package

    def create_package(self, data: PackageCreate) -> WhatsappApiPackage:
        package = WhatsappApiPackage(
            name=data.name,
            description=data.description,
            price_month=data.priceMonth,
            price_year=data.priceYear,
            max_session=data.maxSession,
        )
        self.db.add(package)
        self.db.commit()
        self.db.refresh(package)
        logger.info(f"✅ Created WhatsApp package {package.name} ({package.id})")
        return package

    def update_package(self, package_id: str, data: PackageUpdate) -> WhatsappApiPackage:
        package = self.get_package(package_id)

        if data.name is not None:
            package.name = data.name.strip()
        if data.description is not None:
            package.description = data.description
        if data.priceMonth is not None:
            package.price_month = data.priceMonth
        if data.priceYear is not None:
            package.price_year = data.priceYear
        if data.maxSession is not None:
            package.max_session = data.maxSession

        self.db.commit()
        self.db.refresh(package)
        return package

    def delete_package(self, package_id: str) -> None:
        package = self.get_package(package_id)

        subscribers = (
            self.db.query(ServicesWhatsappCustomers).filter(ServicesWhatsappCustomers.package_id == package_id).count()
        )
        transactions = (
            self.db.query(TransactionWhatsappService)
            .filter(TransactionWhatsappService.package_id == package_id)
            .count()
        )
        if subscribers or transactions:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete package with existing subscriptions or transactions",
            )

        self.db.delete(package)
        self.db.commit()
        logger.info(f"🗑️ Deleted WhatsApp package {package_id}")

    # ------------------------------------------------------------------
    # Customer
    # ------------------------------------------------------------------

    def get_customer_subscriptions(self, user: User) -> dict:
        update_expired_subscriptions(self.db)
        subscriptions = (
            self.db.query(ServicesWhatsappCustomers)
            .filter(ServicesWhatsappCustomers.customer_id == user.id)
            .order_by(ServicesWhatsappCustomers.expired_at.desc())
            .all()
        )
        return {
            "subscriptions": [serialize_subscription(s) for s in subscriptions],
            "status": get_subscription_status(self.db, user.id),
        }

    # ------------------------------------------------------------------
    # Admin dashboard
    # ------------------------------------------------------------------

    def get_dashboard(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        total_subscribers = self.db.query(func.count(func.distinct(ServicesWhatsappCustomers.customer_id))).scalar()
        active_subscriptions = (
            self.db.query(ServicesWhatsappCustomers)
            .filter(ServicesWhatsappCustomers.status == "active", ServicesWhatsappCustomers.expired_at > now)
            .count()
        )
        expired_subscriptions = (
            self.db.query(ServicesWhatsappCustomers).filter(ServicesWhatsappCustomers.status == "expired").count()
        )
        total_sessions = self.db.query(WhatsAppSession).count()

        paid_whatsapp = self.db.query(_revenue_total()).filter(
            Transaction.type == "whatsapp_service", Transaction.status.in_(REVENUE_STATUSES)
        )
        total_revenue = paid_whatsapp.scalar() or 0
        monthly_revenue = paid_whatsapp.filter(Transaction.created_at >= month_start).scalar() or 0

        packages = []
        for package in self.list_packages():
            active = (
                self.db.query(ServicesWhatsappCustomers)
                .filter(
                    ServicesWhatsappCustomers.package_id == package.id,
                    ServicesWhatsappCustomers.status == "active",
                    ServicesWhatsappCustomers.expired_at > now,
                )
                .count()
            )
            paid_count, package_revenue = (
                self.db.query(func.count(Transaction.id), _revenue_total())
                .select_from(Transaction)
                .join(TransactionWhatsappService, TransactionWhatsappService.transaction_id == Transaction.id)
                .filter(
                    TransactionWhatsappService.package_id == package.id,
                    Transaction.status.in_(REVENUE_STATUSES),
                )
                .one()
            )
            packages.append(
                {
                    **serialize_package(package),
                    "activeSubscribers": active,
                    "paidTransactions": paid_count,
                    "revenue": round(package_revenue or 0, 2),
                }
            )

        return {
            "totalSubscribers": total_subscribers or 0,
            "activeSubscriptions": active_subscriptions,
            "expiredSubscriptions": expired_subscriptions,
            "totalSessions": total_sessions,
            "revenue": {
                "total": round(total_revenue, 2),
                "thisMonth": round(monthly_revenue, 2),
                "currency": "idr",
            },
            "packages": packages,
        }
