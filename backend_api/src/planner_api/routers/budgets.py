import logging
from datetime import date as Date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, col, select

from ..db import get_session
from ..models import Budget, BudgetCategory, Transaction, User, utcnow
from ..reports import budget_read
from ..schemas import (
    BudgetCategoryCreate,
    BudgetCategoryRead,
    BudgetCreate,
    BudgetRead,
    BudgetUpdate,
    SuccessResponse,
    TransactionCreate,
    TransactionRead,
)
from ..security import get_current_user

logger = logging.getLogger(__name__)

budgets_router = APIRouter(prefix="/budgets", tags=["budgets"])


def _get_category(session: Session, user_id: int, category_id: int) -> BudgetCategory:
    cat = session.get(BudgetCategory, category_id)
    if not cat or cat.user_id != user_id:
        raise HTTPException(status_code=404, detail="Category not found")
    return cat


def _get_budget(session: Session, user_id: int, budget_id: int) -> Budget:
    obj = session.get(Budget, budget_id)
    if not obj or obj.user_id != user_id:
        raise HTTPException(status_code=404, detail="Budget not found")
    return obj


def _transaction_read(t: Transaction) -> TransactionRead:
    return TransactionRead(
        id=t.id,
        category_id=t.category_id,
        category_name=t.category.name if t.category else None,
        amount=t.amount,
        description=t.description,
        date=t.date,
        type=t.transaction_type,
        created_at=t.created_at,
    )


# =========================
# Categories
# =========================
# PUBLIC_INTERFACE
@budgets_router.get("/categories", response_model=List[BudgetCategoryRead], summary="List categories")
def list_categories(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
) -> List[BudgetCategoryRead]:
    stmt = select(BudgetCategory).where(BudgetCategory.user_id == user.id).order_by(BudgetCategory.id)
    return [BudgetCategoryRead.model_validate(c) for c in session.exec(stmt)]


# PUBLIC_INTERFACE
@budgets_router.post(
    "/categories",
    response_model=BudgetCategoryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
)
def create_category(
    payload: BudgetCategoryCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> BudgetCategoryRead:
    obj = BudgetCategory(user_id=user.id, name=payload.name, color=payload.color)
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return BudgetCategoryRead.model_validate(obj)


# =========================
# Transactions
# =========================
# PUBLIC_INTERFACE
@budgets_router.get(
    "/transactions",
    response_model=List[TransactionRead],
    summary="List transactions",
    description="Newest first, paginated with limit/offset.",
)
def list_transactions(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[TransactionRead]:
    stmt = (
        select(Transaction)
        .where(Transaction.user_id == user.id)
        .order_by(col(Transaction.date).desc(), col(Transaction.created_at).desc(), col(Transaction.id).desc())
        .offset(offset)
        .limit(limit)
    )
    return [_transaction_read(t) for t in session.exec(stmt)]


# PUBLIC_INTERFACE
@budgets_router.post(
    "/transactions",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create transaction",
)
def create_transaction(
    payload: TransactionCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TransactionRead:
    _get_category(session, user.id, payload.category_id)
    obj = Transaction(
        user_id=user.id,
        category_id=payload.category_id,
        amount=float(payload.amount),
        description=payload.description,
        date=payload.date,
        transaction_type=payload.type,
    )
    session.add(obj)
    session.commit()
    session.refresh(obj)
    logger.info("Created %s transaction %s for user %s", obj.transaction_type, obj.id, user.id)
    return _transaction_read(obj)


# PUBLIC_INTERFACE
@budgets_router.delete("/transactions/{transaction_id}", response_model=SuccessResponse, summary="Delete transaction")
def delete_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    obj = session.get(Transaction, transaction_id)
    if not obj or obj.user_id != user.id:
        raise HTTPException(status_code=404, detail="Transaction not found")
    session.delete(obj)
    session.commit()
    return SuccessResponse()


# =========================
# Budgets
# =========================
# PUBLIC_INTERFACE
@budgets_router.get(
    "",
    response_model=List[BudgetRead],
    summary="List budgets",
    description="Budgets for a month with spent (expense transactions in the category during the month) and percentage.",
)
def list_budgets(
    month: Optional[int] = Query(None, ge=1, le=12, description="1-12, defaults to current month"),
    year: Optional[int] = Query(None, ge=1900, le=9999, description="Defaults to current year"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[BudgetRead]:
    today = Date.today()
    m = month or today.month
    y = year or today.year
    stmt = (
        select(Budget)
        .where(Budget.user_id == user.id, Budget.month == m, Budget.year == y)
        .order_by(Budget.id)
    )
    return [budget_read(session, b) for b in session.exec(stmt).all()]


# PUBLIC_INTERFACE
@budgets_router.post(
    "",
    response_model=BudgetRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create budget",
)
def create_budget(
    payload: BudgetCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> BudgetRead:
    _get_category(session, user.id, payload.category_id)
    obj = Budget(
        user_id=user.id,
        category_id=payload.category_id,
        amount=float(payload.amount),
        month=payload.month,
        year=payload.year,
    )
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return budget_read(session, obj)


# PUBLIC_INTERFACE
@budgets_router.put("/{budget_id}", response_model=BudgetRead, summary="Update budget")
def update_budget(
    budget_id: int,
    payload: BudgetUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> BudgetRead:
    obj = _get_budget(session, user.id, budget_id)
    if payload.category_id is not None:
        _get_category(session, user.id, payload.category_id)
        obj.category_id = payload.category_id
    if payload.amount is not None:
        obj.amount = float(payload.amount)
    if payload.month is not None:
        obj.month = payload.month
    if payload.year is not None:
        obj.year = payload.year
    obj.updated_at = utcnow()

    session.add(obj)
    session.commit()
    session.refresh(obj)
    return budget_read(session, obj)


# PUBLIC_INTERFACE
@budgets_router.delete("/{budget_id}", response_model=SuccessResponse, summary="Delete budget")
def delete_budget(
    budget_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    obj = _get_budget(session, user.id, budget_id)
    session.delete(obj)
    session.commit()
    return SuccessResponse()
