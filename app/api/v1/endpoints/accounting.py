"""API endpoints for Chart of Accounts, paying accounts, expense categories and journals."""
import logging
from typing import Optional, List
from uuid import UUID
from datetime import date

from fastapi import APIRouter, HTTPException, status, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.orm import selectinload

from app.models.accounting import (
    ChartOfAccount, AccountType, ExpenseCategory, JournalEntry, JournalEntryLine,
)
from app.models.banking import BankAccount
from app.schemas.accounting import (
    ChartOfAccountCreate, ChartOfAccountUpdate, ChartOfAccountResponse,
    ChartOfAccountTreeResponse, AccountOptionResponse, AccountListResponse,
    BankAccountCreate, BankAccountResponse, BankAccountListResponse,
    ExpenseCategoryCreate, ExpenseCategoryResponse, ExpenseCategoryListResponse,
    JournalEntryResponse, JournalEntryListResponse,
)
from app.api.deps import DB, Page
from app.services.chart_of_accounts import (
    AccountNode,
    account_options,
    build_account_tree,
    compute_path_and_depth,
    find_descendant_ids,
    refresh_paths,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_account_or_404(db, account_id: UUID) -> ChartOfAccount:
    account = await db.get(ChartOfAccount, account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


# ==================== Chart of Accounts ====================

@router.post(
    "/chart-of-accounts",
    response_model=ChartOfAccountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_account(
    account_in: ChartOfAccountCreate,
    db: DB,
):
    """Create a new account. Path and depth are derived from the parent."""
    existing = await db.execute(
        select(ChartOfAccount).where(ChartOfAccount.account_code == account_in.account_code)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Account code {account_in.account_code} already exists"
        )

    parent = None
    if account_in.parent_id:
        parent = await db.get(ChartOfAccount, account_in.parent_id)
        if not parent:
            raise HTTPException(status_code=404, detail="Parent account not found")

    path, depth = compute_path_and_depth(account_in.account_name, parent)

    account = ChartOfAccount(
        account_code=account_in.account_code,
        account_name=account_in.account_name,
        account_type=account_in.account_type.value,
        description=account_in.description,
        parent_id=account_in.parent_id,
        is_group=account_in.is_group,
        is_active=account_in.is_active,
        path=path,
        depth=depth,
    )

    db.add(account)
    await db.commit()
    await db.refresh(account)

    logger.info(f"Account {account.account_code} created at '{path}'")
    return account


@router.get("/chart-of-accounts", response_model=AccountListResponse)
async def list_accounts(
    db: DB,
    page: Page,
    account_type: Optional[AccountType] = None,
    parent_id: Optional[UUID] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
):
    """Get Chart of Accounts with filtering."""
    query = select(ChartOfAccount)
    count_query = select(func.count(ChartOfAccount.id))

    filters = []
    if account_type:
        filters.append(ChartOfAccount.account_type == account_type.value)
    if parent_id:
        filters.append(ChartOfAccount.parent_id == parent_id)
    if is_active is not None:
        filters.append(ChartOfAccount.is_active == is_active)
    if search:
        filters.append(or_(
            ChartOfAccount.account_code.ilike(f"%{search}%"),
            ChartOfAccount.account_name.ilike(f"%{search}%"),
        ))

    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(ChartOfAccount.account_code).offset(page.skip).limit(page.limit)
    result = await db.execute(query)
    accounts = result.scalars().all()

    return AccountListResponse(
        items=[ChartOfAccountResponse.model_validate(a) for a in accounts],
        total=total,
        skip=page.skip,
        limit=page.limit,
    )


@router.get("/chart-of-accounts/tree", response_model=List[ChartOfAccountTreeResponse])
async def get_accounts_tree(
    db: DB,
    account_type: Optional[AccountType] = None,
    include_inactive: bool = False,
):
    """Get Chart of Accounts as a hierarchical tree."""
    query = select(ChartOfAccount)
    if not include_inactive:
        query = query.where(ChartOfAccount.is_active == True)
    if account_type:
        query = query.where(ChartOfAccount.account_type == account_type.value)

    result = await db.execute(query.order_by(ChartOfAccount.account_code))
    accounts = result.scalars().all()

    def build_tree(node: AccountNode) -> ChartOfAccountTreeResponse:
        return ChartOfAccountTreeResponse(
            **ChartOfAccountResponse.model_validate(node.account).model_dump(),
            children=[build_tree(c) for c in node.children],
        )

    return [build_tree(root) for root in build_account_tree(accounts)]


@router.get("/chart-of-accounts/options", response_model=List[AccountOptionResponse])
async def get_account_options(
    db: DB,
    account_type: Optional[AccountType] = None,
    include_inactive: bool = False,
    postable_only: bool = False,
):
    """
    Flattened chart for select inputs.

    Rows come in tree order with their depth and full ' / ' path, so a filtered
    row still shows where it sits in the hierarchy.
    """
    result = await db.execute(select(ChartOfAccount).order_by(ChartOfAccount.account_code))
    accounts = result.scalars().all()

    rows = account_options(
        accounts,
        account_type=account_type.value if account_type else None,
        active_only=not include_inactive,
        postable_only=postable_only,
    )
    return [
        AccountOptionResponse(
            id=row.account.id,
            account_code=row.account.account_code,
            account_name=row.account.account_name,
            account_type=row.account.account_type,
            depth=row.depth,
            path=row.path,
            label=f"{row.account.account_code} - {row.path}",
            is_group=row.account.is_group,
        )
        for row in rows
    ]


@router.get("/chart-of-accounts/{account_id}", response_model=ChartOfAccountResponse)
async def get_account(
    account_id: UUID,
    db: DB,
):
    """Get account by ID."""
    return await _get_account_or_404(db, account_id)


@router.put("/chart-of-accounts/{account_id}", response_model=ChartOfAccountResponse)
async def update_account(
    account_id: UUID,
    account_in: ChartOfAccountUpdate,
    db: DB,
):
    """Update account. Renaming or moving it rewrites the paths of its whole subtree."""
    account = await _get_account_or_404(db, account_id)
    update_data = account_in.model_dump(exclude_unset=True)

    result = await db.execute(select(ChartOfAccount))
    all_accounts = result.scalars().all()

    if "parent_id" in update_data and update_data["parent_id"] is not None:
        new_parent_id = update_data["parent_id"]
        if new_parent_id == account.id:
            raise HTTPException(status_code=400, detail="Account cannot be its own parent")
        if new_parent_id in find_descendant_ids(all_accounts, account.id):
            raise HTTPException(status_code=400, detail="Account cannot be moved under its own descendant")
        if not any(a.id == new_parent_id for a in all_accounts):
            raise HTTPException(status_code=404, detail="Parent account not found")

    for field, value in update_data.items():
        setattr(account, field, value)

    changed = refresh_paths(all_accounts)

    await db.commit()
    await db.refresh(account)

    if changed:
        logger.info(f"Account {account.account_code} updated, {changed} path(s) rewritten")
    return account


# ==================== Paying Accounts ====================

@router.post("/bank-accounts", response_model=BankAccountResponse, status_code=status.HTTP_201_CREATED)
async def create_bank_account(
    account_in: BankAccountCreate,
    db: DB,
):
    """Create a paying account. Its balance starts at the opening balance."""
    existing = await db.execute(
        select(BankAccount).where(BankAccount.account_number == account_in.account_number)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Bank account with this account number already exists"
        )
    if account_in.chart_of_account_id:
        await _get_account_or_404(db, account_in.chart_of_account_id)

    bank_account = BankAccount(
        **account_in.model_dump(exclude={"account_type"}),
        account_type=account_in.account_type.value,
        current_balance=account_in.opening_balance,
    )
    db.add(bank_account)
    await db.commit()
    await db.refresh(bank_account)
    return bank_account


@router.get("/bank-accounts", response_model=BankAccountListResponse)
async def list_bank_accounts(
    db: DB,
    page: Page,
    is_active: Optional[bool] = None,
):
    query = select(BankAccount)
    count_query = select(func.count(BankAccount.id))
    if is_active is not None:
        query = query.where(BankAccount.is_active == is_active)
        count_query = count_query.where(BankAccount.is_active == is_active)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(BankAccount.account_name).offset(page.skip).limit(page.limit)
    )
    return BankAccountListResponse(
        items=[BankAccountResponse.model_validate(a) for a in result.scalars().all()],
        total=total,
        skip=page.skip,
        limit=page.limit,
    )


# ==================== Expense Categories ====================

@router.post("/expense-categories", response_model=ExpenseCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_expense_category(
    category_in: ExpenseCategoryCreate,
    db: DB,
):
    existing = await db.execute(
        select(ExpenseCategory).where(ExpenseCategory.name == category_in.name)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Expense category {category_in.name} already exists"
        )
    if category_in.chart_of_account_id:
        account = await _get_account_or_404(db, category_in.chart_of_account_id)
        if account.account_type != AccountType.EXPENSE.value:
            raise HTTPException(status_code=400, detail="Expense category must map to an EXPENSE account")

    category = ExpenseCategory(**category_in.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


@router.get("/expense-categories", response_model=ExpenseCategoryListResponse)
async def list_expense_categories(
    db: DB,
    page: Page,
    is_active: Optional[bool] = None,
):
    query = select(ExpenseCategory)
    count_query = select(func.count(ExpenseCategory.id))
    if is_active is not None:
        query = query.where(ExpenseCategory.is_active == is_active)
        count_query = count_query.where(ExpenseCategory.is_active == is_active)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(ExpenseCategory.name).offset(page.skip).limit(page.limit)
    )
    return ExpenseCategoryListResponse(
        items=[ExpenseCategoryResponse.model_validate(c) for c in result.scalars().all()],
        total=total,
        skip=page.skip,
        limit=page.limit,
    )


# ==================== Journal Entries ====================

@router.get("/journal-entries", response_model=JournalEntryListResponse)
async def list_journal_entries(
    db: DB,
    page: Page,
    source_type: Optional[str] = None,
    source_id: Optional[UUID] = None,
    account_id: Optional[UUID] = Query(None, description="Entries touching this account"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    """List journal entries with their lines."""
    filters = []
    if source_type:
        filters.append(JournalEntry.source_type == source_type)
    if source_id:
        filters.append(JournalEntry.source_id == source_id)
    if account_id:
        filters.append(JournalEntry.id.in_(
            select(JournalEntryLine.journal_entry_id).where(JournalEntryLine.account_id == account_id)
        ))
    if date_from:
        filters.append(JournalEntry.entry_date >= date_from)
    if date_to:
        filters.append(JournalEntry.entry_date <= date_to)

    query = select(JournalEntry).options(selectinload(JournalEntry.lines))
    count_query = select(func.count(JournalEntry.id))
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc())
        .offset(page.skip)
        .limit(page.limit)
    )
    return JournalEntryListResponse(
        items=[JournalEntryResponse.model_validate(je) for je in result.scalars().all()],
        total=total,
        skip=page.skip,
        limit=page.limit,
    )


@router.get("/journal-entries/{entry_id}", response_model=JournalEntryResponse)
async def get_journal_entry(
    entry_id: UUID,
    db: DB,
):
    result = await db.execute(
        select(JournalEntry)
        .options(selectinload(JournalEntry.lines))
        .where(JournalEntry.id == entry_id)
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise HTTPException(status_code=404, detail="Journal entry not found")
    return entry
