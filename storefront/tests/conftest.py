import os

# Must be set before the application modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DUITKU_MERCHANT_CODE"] = "D0001"
os.environ["DUITKU_API_KEY"] = "test-api-key"
os.environ["WHATSAPP_USER_TOKEN"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["APP_URL"] = "https://genfity.test"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from storefront.database import Base, SessionLocal, engine  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models import (  # noqa: E402
    BankDetail,
    PaymentMethod,
    Transaction,
    TransactionWhatsappService,
    User,
    Voucher,
    WhatsappApiPackage,
)
from storefront.security_utils import create_access_token  # noqa: E402


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def customer(db):
    user = User(name="Budi Santoso", email="budi@example.com", phone="6281234567890", role="customer")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    user = User(name="Admin", email="admin@genfity.com", phone="6281111111111", role="admin")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def package(db):
    pkg = WhatsappApiPackage(
        name="WhatsApp Pro", description="5 sessions", price_month=150000, price_year=1500000, max_session=5
    )
    db.add(pkg)
    db.commit()
    db.refresh(pkg)
    return pkg


@pytest.fixture
def bank_detail(db):
    bank = BankDetail(bank_name="BCA", account_number="1234567890", account_name="PT Genfity Digital")
    db.add(bank)
    db.commit()
    db.refresh(bank)
    return bank


@pytest.fixture
def manual_method(db, bank_detail):
    method = PaymentMethod(
        code="bank_bca",
        name="Transfer BCA",
        type="manual_transfer",
        is_active=True,
        is_gateway_method=False,
        requires_manual_approval=True,
        fee_type="fixed",
        fee_value=0,
        bank_detail_id=bank_detail.id,
    )
    db.add(method)
    db.commit()
    db.refresh(method)
    return method


@pytest.fixture
def duitku_method(db):
    method = PaymentMethod(
        code="duitku_BC",
        name="BCA VA",
        type="virtual_account",
        is_active=True,
        is_gateway_method=True,
        gateway_provider="duitku",
        gateway_code="BC",
        fee_type="fixed",
        fee_value=4000,
    )
    db.add(method)
    db.commit()
    db.refresh(method)
    return method


@pytest.fixture
def voucher(db):
    v = Voucher(
        code="HEMAT10",
        name="Hemat 10%",
        discount_type="percentage",
        value=10,
        max_discount=50000,
        is_active=True,
        start_date=datetime.utcnow() - timedelta(days=1),
    )
    db.add(v)
    db.commit()
    db.refresh(v)
    return v


@pytest.fixture
def make_transaction(db):
    def _make(user, pkg, duration="month", status="created", total=None, expires_in=timedelta(days=7)):
        price = pkg.price_month if duration == "month" else pkg.price_year
        transaction = Transaction(
            user_id=user.id,
            type="whatsapp_service",
            status=status,
            currency="idr",
            amount=price,
            original_amount=price,
            discount_amount=0,
            total_after_discount=price if total is None else total,
            expires_at=datetime.utcnow() + expires_in if expires_in is not None else None,
        )
        db.add(transaction)
        db.flush()
        db.add(
            TransactionWhatsappService(
                transaction_id=transaction.id, package_id=pkg.id, duration=duration, status=status
            )
        )
        db.commit()
        db.refresh(transaction)
        return transaction

    return _make
