import os
from decimal import Decimal
from datetime import date
from typing import AsyncGenerator

# Settings need a database URL before any app module is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app import models  # noqa: F401  (registers tables on Base.metadata)
from app.api.v1.router import api_router
from app.database import Base, get_db
from app.models.accounting import AccountType, ChartOfAccount, ExpenseCategory
from app.models.banking import BankAccount
from app.models.commission import SalesAgent
from app.models.customer import Customer
from app.models.sale import Sale


@pytest.fixture
async def db_engine(tmp_path):
    db_path = tmp_path / "salesdesk_test.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(db_session):
    test_app = FastAPI()
    test_app.include_router(api_router)

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    test_app.dependency_overrides[get_db] = override_get_db
    return test_app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ==================== Seed data ====================

async def _add_all(session: AsyncSession, *objects):
    session.add_all(objects)
    await session.commit()
    return objects


@pytest.fixture
async def customer(db_session):
    row = Customer(customer_code="CUST-0001", first_name="Asha", last_name="Verma", is_active=True)
    await _add_all(db_session, row)
    return row


@pytest.fixture
async def other_customer(db_session):
    row = Customer(customer_code="CUST-0002", first_name="Ravi", company_name="Ravi Traders", is_active=True)
    await _add_all(db_session, row)
    return row


@pytest.fixture
async def sales(db_session, customer):
    rows = [
        Sale(
            invoice_number=f"INV-2024-00{n}",
            customer_id=customer.id,
            sale_date=date(2024, 5, n),
            total_amount=Decimal("1000.00"),
            amount_received=Decimal("1000.00"),
            is_commission_applied=False,
            is_active=True,
        )
        for n in (1, 2, 3)
    ]
    await _add_all(db_session, *rows)
    return rows


@pytest.fixture
async def agents(db_session):
    rows = [
        SalesAgent(name="Meera Nair", agent_code="AG-001", is_active=True),
        SalesAgent(name="Karan Shah", agent_code="AG-002", is_active=True),
    ]
    await _add_all(db_session, *rows)
    return rows


@pytest.fixture
async def chart(db_session):
    """Small chart: Assets > Bank Accounts > Main Bank, Expenses > Commission Expense."""
    assets = ChartOfAccount(
        account_code="1000", account_name="Assets", account_type=AccountType.ASSET.value,
        path="Assets", depth=0, is_group=True, is_active=True, current_balance=Decimal("0"),
    )
    bank_group = ChartOfAccount(
        account_code="1100", account_name="Bank Accounts", account_type=AccountType.ASSET.value,
        path="Assets / Bank Accounts", depth=1, is_group=True,
        is_active=True, current_balance=Decimal("0"),
    )
    expenses = ChartOfAccount(
        account_code="6000", account_name="Expenses", account_type=AccountType.EXPENSE.value,
        path="Expenses", depth=0, is_group=True, is_active=True, current_balance=Decimal("0"),
    )
    # ids are assigned on flush, so link parents after the first insert
    await _add_all(db_session, assets, expenses)
    bank_group.parent_id = assets.id
    await _add_all(db_session, bank_group)

    main_bank = ChartOfAccount(
        account_code="1110", account_name="Main Bank", account_type=AccountType.ASSET.value,
        parent_id=bank_group.id, path="Assets / Bank Accounts / Main Bank", depth=2,
        is_group=False, is_active=True, current_balance=Decimal("0"),
    )
    commission_expense = ChartOfAccount(
        account_code="6100", account_name="Commission Expense", account_type=AccountType.EXPENSE.value,
        parent_id=expenses.id, path="Expenses / Commission Expense", depth=1,
        is_group=False, is_active=True, current_balance=Decimal("0"),
    )
    await _add_all(db_session, main_bank, commission_expense)
    return {
        "assets": assets,
        "bank_group": bank_group,
        "main_bank": main_bank,
        "expenses": expenses,
        "commission_expense": commission_expense,
    }


@pytest.fixture
async def bank_account(db_session, chart):
    row = BankAccount(
        account_name="Operating Account",
        account_number="000111222",
        bank_name="First Bank",
        opening_balance=Decimal("1000.00"),
        current_balance=Decimal("1000.00"),
        chart_of_account_id=chart["main_bank"].id,
        is_active=True,
    )
    await _add_all(db_session, row)
    return row


@pytest.fixture
async def expense_category(db_session, chart):
    row = ExpenseCategory(
        name="Sales Commission",
        chart_of_account_id=chart["commission_expense"].id,
        is_active=True,
    )
    await _add_all(db_session, row)
    return row


@pytest.fixture
def commission_payload(customer, sales, agents):
    """Builds a create payload: one sale of 1000 + 50 - 20 at 10%, 5% WHT -> 97.85 payable."""

    def build(sale_index: int = 0, amounts=("60.00", "37.85"), **overrides):
        payload = {
            "commission_date": "2024-05-15",
            "customer_id": str(customer.id),
            "sales_entries": [
                {
                    "sale_id": str(sales[sale_index].id),
                    "amount_received": "1000.00",
                    "additions": "50.00",
                    "deductions": "20.00",
                    "commission_rate": "10",
                    "withholding_tax_rate": "5",
                }
            ],
            "recipients": [
                {"sales_agent_id": str(agent.id), "amount": amount}
                for agent, amount in zip(agents, amounts)
            ],
        }
        payload.update(overrides)
        return payload

    return build
