"""
Pytest fixtures for salon ledger backend tests.

Provides test database setup, a TransactionStore bound to the test session,
catalog fixtures, and record factories.
"""

from datetime import datetime

import pytest

from salon_ledger import create_app
from salon_ledger.extensions import db
from salon_ledger.models import (
    CashCut,
    Expense,
    ExpenseSettlementRef,
    Location,
    ManualIncome,
    Product,
    Professional,
    Sale,
    SaleItem,
    Service,
    StaffUser,
)
from salon_ledger.models.catalog import COMMISSION_PERCENT, ROLE_LOCAL_ADMIN
from salon_ledger.models.ledger import ITEM_PRODUCT, ITEM_SERVICE, PAYMENT_CASH
from salon_ledger.services.records_service import classify_legacy_expense
from salon_ledger.store import SqlAlchemyTransactionStore


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    """TransactionStore over the test session, without retry backoff."""
    return SqlAlchemyTransactionStore(db_session, retry_attempts=3, retry_backoff=0)


@pytest.fixture(scope='function')
def location(db_session):
    loc = Location(name="Downtown", code="DT")
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture(scope='function')
def other_location(db_session):
    loc = Location(name="Uptown", code="UT")
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture(scope='function')
def haircut(db_session):
    """Service with a 50% default commission."""
    svc = Service(name="Haircut", price_cents=20000, commission_type=COMMISSION_PERCENT, commission_value=5000)
    db_session.add(svc)
    db_session.commit()
    return svc


@pytest.fixture(scope='function')
def pomade(db_session):
    """Product with a 10% default commission and a purchase cost."""
    prod = Product(
        name="Pomade", price_cents=10000, purchase_cost_cents=4000,
        commission_type=COMMISSION_PERCENT, commission_value=1000,
    )
    db_session.add(prod)
    db_session.commit()
    return prod


@pytest.fixture(scope='function')
def prof_a(db_session, location):
    prof = Professional(name="Alex", location_id=location.id)
    db_session.add(prof)
    db_session.commit()
    return prof


@pytest.fixture(scope='function')
def prof_b(db_session, location):
    prof = Professional(name="Blair", location_id=location.id)
    db_session.add(prof)
    db_session.commit()
    return prof


@pytest.fixture(scope='function')
def local_admin(db_session, location):
    admin = StaffUser(
        name="Morgan",
        role=ROLE_LOCAL_ADMIN,
        location_id=location.id,
        service_commission_type=COMMISSION_PERCENT,
        service_commission_value=1000,
    )
    db_session.add(admin)
    db_session.commit()
    return admin


def dt(day: int, hour: int = 12, minute: int = 0, month: int = 1, year: int = 2024) -> datetime:
    return datetime(year, month, day, hour, minute)


def service_item(catalog, professional=None, subtotal_cents=None, **kwargs) -> dict:
    return {
        "kind": ITEM_SERVICE,
        "catalog_id": catalog.id,
        "unit_price_cents": catalog.price_cents,
        "quantity": 1,
        "subtotal_cents": subtotal_cents if subtotal_cents is not None else catalog.price_cents,
        "professional_id": professional.id if professional else None,
        **kwargs,
    }


def product_item(catalog, professional=None, quantity=1, **kwargs) -> dict:
    return {
        "kind": ITEM_PRODUCT,
        "catalog_id": catalog.id,
        "unit_price_cents": catalog.price_cents,
        "quantity": quantity,
        "subtotal_cents": catalog.price_cents * quantity,
        "professional_id": professional.id if professional else None,
        **kwargs,
    }


@pytest.fixture(scope='function')
def make_sale(db_session, location):
    """Insert a sale with items directly (bypassing validation)."""
    def _make(total_cents, sold_at, items=(), payment_method=PAYMENT_CASH, location_id=None, **kwargs):
        sale = Sale(
            location_id=location_id or location.id,
            sold_at=sold_at,
            total_cents=total_cents,
            payment_method=payment_method,
            **kwargs,
        )
        for index, raw in enumerate(items):
            sale.items.append(SaleItem(item_index=index, **raw))
        db_session.add(sale)
        db_session.commit()
        return sale
    return _make


@pytest.fixture(scope='function')
def make_expense(db_session, location):
    """Insert an expense; category follows the legacy rules unless given."""
    def _make(amount_cents, spent_at, concept="Supplies", recipient="Vendor", refs=(), location_id=None, **kwargs):
        kwargs.setdefault("category", classify_legacy_expense(concept, recipient))
        expense = Expense(
            location_id=location_id or location.id,
            spent_at=spent_at,
            concept=concept,
            recipient=recipient,
            amount_cents=amount_cents,
            **kwargs,
        )
        for ref_type, sale_id, item_index in refs:
            expense.settlement_refs.append(
                ExpenseSettlementRef(ref_type=ref_type, sale_id=sale_id, item_index=item_index)
            )
        db_session.add(expense)
        db_session.commit()
        return expense
    return _make


@pytest.fixture(scope='function')
def make_income(db_session, location):
    def _make(amount_cents, received_at, concept="Float top-up", location_id=None):
        income = ManualIncome(
            location_id=location_id or location.id,
            received_at=received_at,
            amount_cents=amount_cents,
            concept=concept,
        )
        db_session.add(income)
        db_session.commit()
        return income
    return _make


@pytest.fixture(scope='function')
def make_cut(db_session, location):
    def _make(cut_at, location_id=None, **kwargs):
        cut = CashCut(location_id=location_id or location.id, cut_at=cut_at, **kwargs)
        db_session.add(cut)
        db_session.commit()
        return cut
    return _make
