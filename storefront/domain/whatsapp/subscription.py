"""
WhatsApp Subscription Service

Subscription lookups and lapse handling for WhatsApp API packages.
A customer holds at most one subscription row per package.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import ServicesWhatsappCustomers, WhatsAppSession

logger = logging.getLogger(__name__)


def end_of_today(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return datetime.combine(now.date(), time.max)


def update_expired_subscriptions(db: Session, now: Optional[datetime] = None) -> int:
    """Flip active subscriptions that lapse today or earlier to expired"""
    cutoff = end_of_today(now)
    expired = (
        db.query(ServicesWhatsappCustomers)
        .filter(ServicesWhatsappCustomers.status == "active", ServicesWhatsappCustomers.expired_at <= cutoff)
        .all()
    )
    for subscription in expired:
        subscription.status = "expired"
    db.commit()

    if expired:
        logger.info(f"⏰ Marked {len(expired)} WhatsApp subscriptions as expired")
    return len(expired)


def _active_query(db: Session, user_id: str, now: Optional[datetime] = None):
    return (
        db.query(ServicesWhatsappCustomers)
        .options(joinedload(ServicesWhatsappCustomers.package))
        .filter(
            ServicesWhatsappCustomers.customer_id == user_id,
            ServicesWhatsappCustomers.status == "active",
            ServicesWhatsappCustomers.expired_at > (now or datetime.utcnow()),
        )
    )


def has_active_subscription(db: Session, user_id: str) -> bool:
    return _active_query(db, user_id).first() is not None


def get_active_subscription(db: Session, user_id: str) -> Optional[ServicesWhatsappCustomers]:
    """Best subscription: most sessions first, then the one that runs longest"""
    subscriptions = _active_query(db, user_id).all()
    if not subscriptions:
        return None
    return max(subscriptions, key=lambda s: (s.package.max_session if s.package else 0, s.expired_at))


def get_subscription_status(db: Session, user_id: str) -> dict:
    subscription = get_active_subscription(db, user_id)
    current_sessions = db.query(WhatsAppSession).filter(WhatsAppSession.user_id == user_id).count()

    if not subscription:
        return {
            "hasActiveSubscription": False,
            "maxSessions": 0,
            "currentSessions": current_sessions,
            "packageName": None,
            "endDate": None,
            "canCreateMoreSessions": False,
        }

    max_sessions = subscription.package.max_session if subscription.package else 0
    return {
        "hasActiveSubscription": True,
        "maxSessions": max_sessions,
        "currentSessions": current_sessions,
        "packageName": subscription.package.name if subscription.package else None,
        "endDate": subscription.expired_at.isoformat(),
        "canCreateMoreSessions": current_sessions < max_sessions,
    }


def days_remaining(subscription: ServicesWhatsappCustomers, now: Optional[datetime] = None) -> int:
    remaining = subscription.expired_at - (now or datetime.utcnow())
    if remaining <= timedelta(0):
        return 0
    return remaining.days + (1 if remaining.seconds else 0)
