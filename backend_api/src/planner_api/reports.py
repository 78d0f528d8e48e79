"""Grouped aggregations behind the dashboard, budgets and study statistics.

All date ranges are inclusive on both ends: a month runs from its first to its
last day, a week from Sunday to Saturday.
"""
import calendar
from datetime import date as Date, datetime, time, timedelta
from typing import Dict, Iterable, List, Tuple

from sqlmodel import Session, col, select

from .layout import InvalidTimeError, parse_time_to_minutes
from .models import (
    Budget,
    BudgetCategory,
    Event,
    Flashcard,
    FlashcardDeck,
    QuizResult,
    Routine,
    StudyGoal,
    StudySession,
    Transaction,
    WellnessLog,
)
from .schemas import (
    BudgetRead,
    BudgetSummary,
    DashboardSummary,
    DeckStats,
    EventRead,
    FlashcardStats,
    RecentFlashcard,
    RoutineSummary,
    StudyGoalProgress,
    StudyPlanStats,
    StudyTotals,
    WellnessLogRead,
)

MASTERY_THRESHOLD = 0.8
DASHBOARD_LIMIT = 5


# =========================
# Date ranges
# =========================
def month_bounds(year: int, month: int) -> Tuple[Date, Date]:
    """(first day, last day) of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return Date(year, month, 1), Date(year, month, last_day)


def week_bounds(day: Date) -> Tuple[Date, Date]:
    """(Sunday, Saturday) of the week containing ``day``."""
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def _day_range(first: Date, last: Date) -> Tuple[datetime, datetime]:
    """Half-open datetime range covering whole days first..last."""
    return datetime.combine(first, time.min), datetime.combine(last + timedelta(days=1), time.min)


def percentage(part: float, whole: float) -> float:
    """part / whole * 100, or 0.0 when there is nothing to divide by."""
    if not whole or whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


# =========================
# Budgets
# =========================
def compute_spent(session: Session, user_id: int, category_id: int, year: int, month: int) -> float:
    """Sum of the user's expense transactions in the category during the month."""
    first, last = month_bounds(year, month)
    stmt = select(Transaction).where(
        Transaction.user_id == user_id,
        Transaction.category_id == category_id,
        Transaction.transaction_type == "expense",
        Transaction.date >= first,
        Transaction.date <= last,
    )
    total = 0.0
    for tr in session.exec(stmt):
        total += tr.amount
    return round(total, 2)


def budget_read(session: Session, budget: Budget) -> BudgetRead:
    """Budget with its computed spend, remaining amount and percentage."""
    category = session.get(BudgetCategory, budget.category_id)
    spent = compute_spent(session, budget.user_id, budget.category_id, budget.year, budget.month)
    return BudgetRead(
        id=budget.id,
        category_id=budget.category_id,
        category_name=category.name if category else "",
        color=category.color if category else None,
        amount=round(budget.amount, 2),
        month=budget.month,
        year=budget.year,
        spent=spent,
        remaining=round(budget.amount - spent, 2),
        percentage=percentage(spent, budget.amount),
    )


def budget_summary(session: Session, user_id: int, year: int, month: int) -> BudgetSummary:
    stmt = select(Budget).where(Budget.user_id == user_id, Budget.year == year, Budget.month == month)
    total_budget = 0.0
    total_spent = 0.0
    for b in session.exec(stmt):
        total_budget += b.amount
        total_spent += compute_spent(session, user_id, b.category_id, year, month)
    return BudgetSummary(
        month=month,
        year=year,
        total_budget=round(total_budget, 2),
        total_spent=round(total_spent, 2),
        percentage=percentage(total_spent, total_budget),
    )


# =========================
# Routines
# =========================
def routine_summary(routines: Iterable[Routine]) -> RoutineSummary:
    """Counts and total scheduled hours; routines with bad times add no hours."""
    items = list(routines)
    minutes = 0
    for r in items:
        try:
            start = parse_time_to_minutes(r.start_time)
            end = parse_time_to_minutes(r.end_time)
        except InvalidTimeError:
            continue
        minutes += max(end - start, 0)
    return RoutineSummary(
        total_routines=len(items),
        recurring=sum(1 for r in items if r.is_recurring),
        active_days=len({r.day_of_week for r in items}),
        weekly_hours=round(minutes / 60),
    )


# =========================
# Study plans
# =========================
def study_totals(session: Session, user_id: int, first: Date, last: Date) -> StudyTotals:
    start, end = _day_range(first, last)
    stmt = select(StudySession).where(
        StudySession.user_id == user_id,
        StudySession.started_at >= start,
        StudySession.started_at < end,
    )
    minutes = cards = count = 0
    for s in session.exec(stmt):
        minutes += s.duration
        cards += s.cards_reviewed
        count += 1
    return StudyTotals(total_minutes=minutes, total_cards=cards, session_count=count)


def goal_progress(goal: StudyGoal) -> StudyGoalProgress:
    return StudyGoalProgress(
        id=goal.id,
        title=goal.title,
        description=goal.description,
        type=goal.goal_type,
        target_value=goal.target_value,
        target_unit=goal.target_unit,
        current_value=goal.current_value,
        is_active=goal.is_active,
        deadline=goal.deadline,
        progress_percent=min(percentage(goal.current_value, goal.target_value), 100.0),
        is_completed=goal.current_value >= goal.target_value,
    )


def study_plan_stats(session: Session, user_id: int, on: Date) -> StudyPlanStats:
    week_start, week_end = week_bounds(on)
    goals = session.exec(
        select(StudyGoal).where(StudyGoal.user_id == user_id, StudyGoal.is_active == True)  # noqa: E712
    ).all()
    return StudyPlanStats(
        daily=study_totals(session, user_id, on, on),
        weekly=study_totals(session, user_id, week_start, week_end),
        goals=[goal_progress(g) for g in goals],
    )


# =========================
# Flashcards
# =========================
def _quiz_totals(results: Iterable[QuizResult]) -> Tuple[int, int, int]:
    count = scored = asked = 0
    for r in results:
        count += 1
        scored += r.score
        asked += r.total_questions
    return count, scored, asked


def flashcard_stats(session: Session, user_id: int) -> FlashcardStats:
    decks = session.exec(select(FlashcardDeck).where(FlashcardDeck.user_id == user_id)).all()
    cards_reviewed = 0
    for deck in decks:
        cards_reviewed += sum(c.review_count for c in deck.cards)

    results = session.exec(select(QuizResult).where(QuizResult.user_id == user_id)).all()
    quiz_count, scored, asked = _quiz_totals(results)

    per_deck: Dict[int, List[int]] = {}
    for r in results:
        bucket = per_deck.setdefault(r.deck_id, [0, 0])
        bucket[0] += r.score
        bucket[1] += r.total_questions
    mastered = sum(1 for s, a in per_deck.values() if a > 0 and s / a >= MASTERY_THRESHOLD)

    return FlashcardStats(
        total_decks=len(decks),
        decks_mastered=mastered,
        cards_reviewed=cards_reviewed,
        quiz_count=quiz_count,
        overall_mastery_percent=percentage(scored, asked),
    )


def deck_stats(session: Session, user_id: int, deck: FlashcardDeck) -> DeckStats:
    results = session.exec(
        select(QuizResult).where(QuizResult.deck_id == deck.id, QuizResult.user_id == user_id)
    ).all()
    quiz_count, scored, asked = _quiz_totals(results)
    return DeckStats(
        card_count=len(deck.cards),
        cards_reviewed=sum(c.review_count for c in deck.cards),
        quiz_count=quiz_count,
        average_score=percentage(scored, asked),
        last_completed_at=max((r.completed_at for r in results), default=None),
    )


# =========================
# Dashboard
# =========================
def dashboard_summary(session: Session, user_id: int, on: Date) -> DashboardSummary:
    """Aggregate the month, week and upcoming items around ``on``."""
    week_start, week_end = week_bounds(on)

    events = session.exec(
        select(Event)
        .where(Event.user_id == user_id, Event.start_date >= on)
        .order_by(Event.start_date, Event.start_time)
        .limit(DASHBOARD_LIMIT)
    ).all()

    recent_rows = session.exec(
        select(Flashcard, FlashcardDeck)
        .join(FlashcardDeck, Flashcard.deck_id == FlashcardDeck.id)
        .where(FlashcardDeck.user_id == user_id)
        .order_by(col(Flashcard.created_at).desc(), col(Flashcard.id).desc())
        .limit(DASHBOARD_LIMIT)
    ).all()

    wellness = session.exec(
        select(WellnessLog)
        .where(WellnessLog.user_id == user_id, WellnessLog.date >= week_start, WellnessLog.date <= week_end)
        .order_by(col(WellnessLog.date).desc())
        .limit(7)
    ).all()

    routines = session.exec(select(Routine).where(Routine.user_id == user_id)).all()

    return DashboardSummary(
        date=on,
        budget_summary=budget_summary(session, user_id, on.year, on.month),
        upcoming_events=[EventRead.model_validate(e) for e in events],
        recent_flashcards=[RecentFlashcard(id=c.id, front=c.front, deck_title=d.title) for c, d in recent_rows],
        wellness_summary=[WellnessLogRead.model_validate(w) for w in wellness],
        routine_summary=routine_summary(routines),
    )
