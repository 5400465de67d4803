import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a UUID4 primary key"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    phone = Column(String(50), unique=True, index=True, nullable=True)  # Normalized 62xxx format
    password_hash = Column(String(255), nullable=True)
    role = Column(String(20), default="customer", nullable=False)  # customer, admin
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    transactions = relationship("Transaction", back_populates="user")
    whatsapp_subscriptions = relationship("ServicesWhatsappCustomers", back_populates="customer")
    whatsapp_sessions = relationship("WhatsAppSession", back_populates="user")


class WhatsappApiPackage(Base):
    """WhatsApp API subscription tier"""

    __tablename__ = "whatsapp_api_packages"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price_month = Column(Float, default=0, nullable=False)  # IDR
    price_year = Column(Float, default=0, nullable=False)  # IDR
    max_session = Column(Integer, default=1, nullable=False)  # Session quota for subscribers
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    subscriptions = relationship("ServicesWhatsappCustomers", back_populates="package")
    transactions = relationship("TransactionWhatsappService", back_populates="package")


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(String(36), primary_key=True, default=generate_id)
    code = Column(String(50), unique=True, index=True, nullable=False)  # Stored uppercase
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Legacy calculation hint, takes precedence over discount_type when set
    type = Column(String(20), nullable=True)  # percentage, fixed_amount
    discount_type = Column(String(20), default="fixed_amount", nullable=False)
    value = Column(Float, default=0, nullable=False)  # Percent or IDR depending on type
    min_amount = Column(Float, nullable=True)
    max_discount = Column(Float, nullable=True)
    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, default=0, nullable=False)
    allow_multiple_use_per_user = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    start_date = Column(DateTime, nullable=False, server_default=func.now())
    end_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    usages = relationship("VoucherUsage", back_populates="voucher", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="voucher")


class VoucherUsage(Base):
    __tablename__ = "voucher_usages"

    id = Column(String(36), primary_key=True, default=generate_id)
    voucher_id = Column(String(36), ForeignKey("vouchers.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    transaction_id = Column(String(36), ForeignKey("transactions.id"), nullable=True)
    discount_amount = Column(Float, default=0, nullable=False)
    used_at = Column(DateTime, server_default=func.now())

    voucher = relationship("Voucher", back_populates="usages")


class Transaction(Base):
    """Customer order. Amounts are in IDR."""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), default="whatsapp_service", nullable=False)
    # created, pending, in_progress, success, cancelled, expired
    status = Column(String(20), default="created", nullable=False, index=True)
    currency = Column(String(10), default="idr", nullable=False)
    amount = Column(Float, default=0, nullable=False)  # Subtotal before discount
    original_amount = Column(Float, nullable=True)
    discount_amount = Column(Float, default=0, nullable=False)
    total_after_discount = Column(Float, nullable=True)
    service_fee_amount = Column(Float, nullable=True)
    final_amount = Column(Float, nullable=True)  # Total after discount and service fee
    voucher_id = Column(String(36), ForeignKey("vouchers.id"), nullable=True)
    payment_method = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)  # Cleared once the order leaves created/pending
    transaction_date = Column(DateTime, server_default=func.now())
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="transactions")
    voucher = relationship("Voucher", back_populates="transactions")
    whatsapp_transaction = relationship(
        "TransactionWhatsappService",
        back_populates="transaction",
        uselist=False,
        cascade="all, delete-orphan",
    )
    payments = relationship(
        "Payment",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="Payment.created_at.desc()",
    )


class TransactionWhatsappService(Base):
    """WhatsApp package line of a transaction"""

    __tablename__ = "transaction_whatsapp_services"

    id = Column(String(36), primary_key=True, default=generate_id)
    transaction_id = Column(String(36), ForeignKey("transactions.id"), unique=True, nullable=False)
    package_id = Column(String(36), ForeignKey("whatsapp_api_packages.id"), nullable=False)
    duration = Column(String(10), nullable=False)  # month, year
    # created, pending, in_progress, success, failed, cancelled, expired
    status = Column(String(20), default="created", nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    transaction = relationship("Transaction", back_populates="whatsapp_transaction")
    package = relationship("WhatsappApiPackage", back_populates="transactions")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_id)
    transaction_id = Column(String(36), ForeignKey("transactions.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)  # Final amount charged, fee included
    service_fee = Column(Float, default=0, nullable=False)
    method = Column(String(100), nullable=False)  # PaymentMethod.code
    # pending, paid, failed, expired, cancelled
    status = Column(String(20), default="pending", nullable=False, index=True)
    payment_date = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    external_id = Column(String(255), nullable=True, index=True)  # Gateway reference
    payment_url = Column(Text, nullable=True)
    gateway_provider = Column(String(50), nullable=True)  # duitku, manual
    gateway_response = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    transaction = relationship("Transaction", back_populates="payments")


class BankDetail(Base):
    """Account shown to customers paying by manual transfer"""

    __tablename__ = "bank_details"

    id = Column(String(36), primary_key=True, default=generate_id)
    bank_name = Column(String(255), nullable=False)
    account_number = Column(String(100), nullable=False)
    account_name = Column(String(255), nullable=False)
    swift_code = Column(String(50), nullable=True)
    currency = Column(String(10), default="idr", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    payment_methods = relationship("PaymentMethod", back_populates="bank_detail")


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id = Column(String(36), primary_key=True, default=generate_id)
    code = Column(String(100), unique=True, index=True, nullable=False)  # e.g. duitku_BC, bank_bca
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=False)  # virtual_account, e_wallet, qris, retail, manual_transfer
    currency = Column(String(10), default="idr", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_gateway_method = Column(Boolean, default=False, nullable=False)
    gateway_provider = Column(String(50), nullable=True)
    gateway_code = Column(String(20), nullable=True)  # Code sent to the gateway, e.g. BC
    requires_manual_approval = Column(Boolean, default=False, nullable=False)
    fee_type = Column(String(20), default="fixed", nullable=True)  # fixed, percentage
    fee_value = Column(Float, default=0, nullable=True)
    min_fee = Column(Float, nullable=True)
    max_fee = Column(Float, nullable=True)
    payment_instructions = Column(Text, nullable=True)
    instruction_type = Column(String(20), nullable=True)  # text, image
    instruction_image_url = Column(String(500), nullable=True)
    gateway_image_url = Column(String(500), nullable=True)
    bank_detail_id = Column(String(36), ForeignKey("bank_details.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    bank_detail = relationship("BankDetail", back_populates="payment_methods")


class ServicesWhatsappCustomers(Base):
    """Active or lapsed WhatsApp subscription of a customer for one package"""

    __tablename__ = "services_whatsapp_customers"
    __table_args__ = (UniqueConstraint("customer_id", "package_id", name="uq_whatsapp_customer_package"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    customer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    package_id = Column(String(36), ForeignKey("whatsapp_api_packages.id"), nullable=False)
    status = Column(String(20), default="active", nullable=False)  # active, expired
    expired_at = Column(DateTime, nullable=False)
    activated_at = Column(DateTime, server_default=func.now())
    last_subscription_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("User", back_populates="whatsapp_subscriptions")
    package = relationship("WhatsappApiPackage", back_populates="subscriptions")


class WhatsAppSession(Base):
    """Messaging session registered on the WhatsApp-Go server"""

    __tablename__ = "whatsapp_sessions"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    session_id = Column(String(255), unique=True, nullable=False)
    session_name = Column(String(255), nullable=True)
    status = Column(String(30), default="disconnected", nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="whatsapp_sessions")
