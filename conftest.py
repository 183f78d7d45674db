"""
Fixtures compartidas para los tests de todos los módulos.

Base de datos SQLite en memoria, usuarios de ejemplo y un notificador que
registra los correos en lugar de encolarlos en Celery.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from invoice_marshal.main import app
from invoice_marshal.database.database import Base, get_db
from invoice_marshal.modules.auth.models import User
from invoice_marshal.modules.auth.utils import hash_password, create_access_token
from invoice_marshal.modules.company.models import Company
from invoice_marshal.modules.products.models import Product, ProductVariation, ProductType
from invoice_marshal.modules.invoices.notifications import get_invoice_notifier


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@event.listens_for(engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class RecordingNotifier:
    """Guarda los correos enviados; con fail=True simula una caída del broker"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send_invoice_email(self, kind, recipient, variables):
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.sent.append({"kind": kind.value, "recipient": recipient, "variables": variables})
        return True


# ===== FIXTURES =====

@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sample_user(db_session):
    user = User(
        email="owner@example.com",
        password=hash_password("supersecret"),
        first_name="Ada",
        last_name="Lovelace",
        address="12 Analytical Row, London"
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session):
    user = User(email="intruder@example.com", password=hash_password("supersecret"))
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def sample_company(db_session, sample_user):
    company = Company(
        user_id=sample_user.id,
        name="Lovelace Consulting",
        email="billing@lovelace.example.com",
        address="12 Analytical Row, London",
        phone="+44 20 7946 0000",
        tax_id="GB123456789"
    )
    db_session.add(company)
    db_session.commit()
    db_session.refresh(company)
    return company


@pytest.fixture
def sample_product(db_session, sample_user):
    """Producto con inventario: 5 unidades"""
    product = Product(
        user_id=sample_user.id,
        name="Widget",
        sku="WID-001",
        type=ProductType.PRODUCT,
        base_price=Decimal("20.00"),
        currency="USD",
        track_stock=True,
        stock_qty=5,
        min_stock_level=2,
        reorder_point=3
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def sample_variation(db_session, sample_product):
    variation = ProductVariation(
        product_id=sample_product.id,
        name="Size",
        value="L",
        price_adjust=Decimal("2.50"),
        stock_qty=3
    )
    db_session.add(variation)
    db_session.commit()
    db_session.refresh(variation)
    db_session.refresh(sample_product)
    return variation


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(db_session, notifier):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_invoice_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(sample_user):
    token = create_access_token({"sub": str(sample_user.id), "email": sample_user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def invoice_payload():
    """Construye el cuerpo de una factura; items por defecto sin producto"""
    def build(items=None, **overrides):
        payload = {
            "invoice_name": "Website redesign",
            "invoice_number": 1,
            "issue_date": date.today().isoformat(),
            "due_date_offset_days": 30,
            "currency": "USD",
            "from_name": "Ada Lovelace",
            "from_email": "ada@example.com",
            "from_address": "12 Analytical Row, London",
            "client_name": "Charles Babbage",
            "client_email": "charles@example.com",
            "client_address": "1 Difference Engine Way",
            "note": "Thanks for your business",
            "items": items if items is not None else [
                {"description": "Design work", "quantity": 2, "rate": "50.00"}
            ],
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def failing_notifier():
    return RecordingNotifier(fail=True)
