from datetime import date as Date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ..db import get_session
from ..models import User
from ..reports import dashboard_summary
from ..schemas import DashboardSummary
from ..security import get_current_user

dashboard_router = APIRouter(prefix="/dashboard", tags=["dashboard"])


# PUBLIC_INTERFACE
@dashboard_router.get(
    "",
    response_model=DashboardSummary,
    summary="Dashboard summary",
    description=(
        "Budget totals for the month, up to five upcoming events and recent flashcards, "
        "this week's wellness logs and the routine summary."
    ),
)
def get_dashboard(
    on: Optional[Date] = Query(None, description="Reference day (YYYY-MM-DD), defaults to today"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> DashboardSummary:
    """
    Aggregate dashboard around a reference day.

    Parameters:
    - on: reference day; month and week boundaries are taken from it.

    Returns:
    - DashboardSummary with budget, events, flashcards, wellness and routine sections.
    """
    return dashboard_summary(session, user.id, on or Date.today())
