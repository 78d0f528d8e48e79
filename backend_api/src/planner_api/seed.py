"""Demo data so a fresh install has something to look at."""
import logging
from datetime import date as Date, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from . import config
from .db import get_session
from .models import Budget, BudgetCategory, Routine, Transaction, User
from .security import get_current_user, hash_password

logger = logging.getLogger(__name__)

seed_router = APIRouter(prefix="/seed", tags=["seed"])


def _previous_month(today: Date) -> Date:
    return today.replace(day=1) - timedelta(days=1)


def _ensure_seed_categories(session: Session, user: User) -> List[BudgetCategory]:
    existing = session.exec(select(BudgetCategory).where(BudgetCategory.user_id == user.id)).all()
    if existing:
        return list(existing)
    preset = [
        BudgetCategory(user_id=user.id, name="Salary", color="#16A34A"),
        BudgetCategory(user_id=user.id, name="Groceries", color="#F97316"),
        BudgetCategory(user_id=user.id, name="Rent", color="#2563EB"),
        BudgetCategory(user_id=user.id, name="Transport", color="#9333EA"),
        BudgetCategory(user_id=user.id, name="Dining", color="#DC2626"),
    ]
    for c in preset:
        session.add(c)
    session.commit()
    return list(session.exec(select(BudgetCategory).where(BudgetCategory.user_id == user.id)).all())


def _seed_transactions_and_budgets(session: Session, user: User, today: Date) -> None:
    cats = _ensure_seed_categories(session, user)
    cat_by_name = {c.name: c for c in cats}
    month_start = today.replace(day=1)
    prev = _previous_month(today)

    # Avoid duplicate seed by checking presence
    if session.exec(
        select(Budget).where(Budget.user_id == user.id, Budget.month == today.month, Budget.year == today.year)
    ).first():
        return

    def tx(day: Date, amount: float, name: str, description: str, kind: str = "expense") -> Transaction:
        return Transaction(
            user_id=user.id,
            category_id=cat_by_name[name].id,
            amount=amount,
            description=description,
            date=day,
            transaction_type=kind,
        )

    transactions = [
        tx(month_start, 3200.0, "Salary", "Monthly salary", "income"),
        tx(month_start + timedelta(days=1), 120.5, "Groceries", "Weekly groceries"),
        tx(month_start + timedelta(days=2), 1200.0, "Rent", "Apartment rent"),
        tx(month_start + timedelta(days=4), 60.0, "Transport", "Monthly pass"),
        tx(month_start + timedelta(days=6), 45.2, "Dining", "Dinner out"),
        tx(prev, 130.0, "Groceries", "Last month groceries"),
    ]
    for t in transactions:
        session.add(t)

    budgets = [
        Budget(user_id=user.id, category_id=cat_by_name["Groceries"].id, amount=500.0, month=today.month, year=today.year),
        Budget(user_id=user.id, category_id=cat_by_name["Rent"].id, amount=1200.0, month=today.month, year=today.year),
        Budget(user_id=user.id, category_id=cat_by_name["Transport"].id, amount=120.0, month=today.month, year=today.year),
        Budget(user_id=user.id, category_id=cat_by_name["Dining"].id, amount=150.0, month=today.month, year=today.year),
    ]
    for b in budgets:
        session.add(b)
    session.commit()


def _seed_routines(session: Session, user: User) -> None:
    if session.exec(select(Routine).where(Routine.user_id == user.id)).first():
        return
    preset = [
        ("Morning Workout", "health", 1, "07:00", "08:00"),
        ("CHEM Lab", "study", 1, "08:30", "10:30"),
        ("Work", "work", 2, "09:00", "13:00"),
        ("Team Standup", "work", 2, "09:30", "09:45"),
        ("Library Shift", "work", 2, "09:15", "10:15"),
        ("Study Group", "study", 4, "14:00", "15:30"),
        ("Evening Reading", "personal", 0, "20:00", "21:00"),
    ]
    for title, category, day, start, end in preset:
        session.add(
            Routine(user_id=user.id, title=title, category=category, day_of_week=day, start_time=start, end_time=end)
        )
    session.commit()


def seed_user(session: Session, user: User, today: Optional[Date] = None) -> None:
    """Seed categories, budgets, transactions and routines. Idempotent per month."""
    _seed_transactions_and_budgets(session, user, today or Date.today())
    _seed_routines(session, user)


def ensure_demo_user(session: Session) -> User:
    user = session.exec(select(User).where(User.email == config.DEMO_EMAIL)).first()
    if not user:
        user = User(email=config.DEMO_EMAIL, password_hash=hash_password(config.DEMO_PASSWORD), name="Demo User")
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info("Created demo user %s", config.DEMO_EMAIL)
    return user


# PUBLIC_INTERFACE
@seed_router.post(
    "",
    summary="Seed demo data",
    description="Populate demo categories, transactions, budgets and routines for the current user.",
)
def seed(user: User = Depends(get_current_user), session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Seed the current user's data. Idempotent for the current month."""
    seed_user(session, user)
    return {"status": "ok", "message": "Seeded demo data"}
