from datetime import date as Date, datetime, timezone
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo anyway)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =========================
# Users
# =========================
class User(SQLModel, table=True):
    """Account owning every other row."""
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class UserPreferences(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, unique=True)
    theme: str = "light"
    currency: str = "USD"
    notifications: bool = True
    email_notifications: bool = True
    email_weekly_summary: bool = True
    email_reminders: bool = True
    email_achievements: bool = True
    font_size: str = "medium"
    updated_at: datetime = Field(default_factory=utcnow)


# =========================
# Weekly routines
# =========================
class Routine(SQLModel, table=True):
    """Time-blocked activity on one day of the week.

    Times are stored as "HH:MM" strings; day_of_week is 0-6 with Sunday=0.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    day_of_week: int = Field(index=True)
    start_time: str
    end_time: str
    is_recurring: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# =========================
# Budgets
# =========================
class BudgetCategory(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    name: str
    color: Optional[str] = None  # hex color
    created_at: datetime = Field(default_factory=utcnow)

    # Use forward-ref strings for relationships to avoid runtime annotation resolution issues
    budgets: List["Budget"] = Relationship(back_populates="category")
    transactions: List["Transaction"] = Relationship(back_populates="category")


class Budget(SQLModel, table=True):
    """Budget limit per category per month; spent is computed via transactions."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    category_id: int = Field(foreign_key="budgetcategory.id")
    amount: float
    month: int = Field(index=True)  # 1-12
    year: int = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    category: Optional[BudgetCategory] = Relationship(back_populates="budgets")


class Transaction(SQLModel, table=True):
    """Income or expense entry.

    Note:
    - Database column is 'transaction_type' to avoid clashing with the built-in name 'type'.
    - API schemas expose the field as 'type'.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    category_id: int = Field(foreign_key="budgetcategory.id")
    amount: float
    description: Optional[str] = None
    date: Date = Field(index=True)
    transaction_type: str = Field(default="expense", index=True)  # "expense" | "income"
    created_at: datetime = Field(default_factory=utcnow)

    category: Optional[BudgetCategory] = Relationship(back_populates="transactions")


# =========================
# Events
# =========================
class Event(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    title: str
    description: Optional[str] = None
    start_date: Date = Field(index=True)
    start_time: Optional[str] = None
    end_date: Optional[Date] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None
    is_public: bool = False
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: datetime = Field(default_factory=utcnow)


# =========================
# Wellness
# =========================
class WellnessLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    date: Date = Field(index=True)
    mood: Optional[int] = None  # 1-5 scale
    sleep_hours: Optional[float] = None
    water_glasses: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


# =========================
# Flashcards
# =========================
class FlashcardDeck(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    is_public: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    cards: List["Flashcard"] = Relationship(
        back_populates="deck", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class Flashcard(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    deck_id: int = Field(foreign_key="flashcarddeck.id", index=True)
    front: str
    back: str
    difficulty: int = 3  # 1-5 scale
    last_reviewed: Optional[datetime] = None
    next_review: Optional[datetime] = None
    review_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    deck: Optional[FlashcardDeck] = Relationship(back_populates="cards")


class QuizResult(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    deck_id: int = Field(foreign_key="flashcarddeck.id", index=True)
    score: int
    total_questions: int
    time_spent: Optional[int] = None  # seconds
    completed_at: datetime = Field(default_factory=utcnow)


# =========================
# Study plans
# =========================
class StudyGoal(SQLModel, table=True):
    """Study target; column 'goal_type' is exposed as 'type' by the API."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    title: str
    description: Optional[str] = None
    goal_type: str  # "daily" | "weekly" | "monthly"
    target_value: int
    target_unit: str  # "cards" | "minutes" | "sessions"
    current_value: int = 0
    is_active: bool = True
    deadline: Optional[Date] = None
    created_at: datetime = Field(default_factory=utcnow)


class StudySession(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    deck_id: Optional[int] = Field(default=None, foreign_key="flashcarddeck.id")
    duration: int  # minutes
    cards_reviewed: int = 0
    session_type: str = "flashcards"  # "flashcards" | "quiz"
    started_at: datetime = Field(default_factory=utcnow, index=True)
    completed_at: Optional[datetime] = None


class StudySchedule(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


# =========================
# Notifications
# =========================
class Notification(SQLModel, table=True):
    """In-app notification for one user.

    Note:
    - Database column is 'notification_type'; API schemas expose it as 'type'.
    - Rows past 'expires_at' are no longer listed and can be purged.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    title: str
    message: str
    notification_type: str = "info"  # "info" | "warning" | "success" | "error"
    is_read: bool = Field(default=False, index=True)
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    expires_at: Optional[datetime] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
