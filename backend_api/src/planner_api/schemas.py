import re
from datetime import date as Date, datetime
from typing import Any, ClassVar, Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")
_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _check_time(v: Optional[str]) -> Optional[str]:
    """Validate HH:MM and normalize to zero-padded form so strings sort by time."""
    if v is None:
        return v
    m = _TIME_RE.match(v.strip())
    if not m:
        raise ValueError("Invalid time format (HH:MM)")
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def _check_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not v.strip():
        raise ValueError("Title is required")
    return v.strip()


def _minutes(v: str) -> int:
    hours, mins = v.split(":")
    return int(hours) * 60 + int(mins)


class SuccessResponse(BaseModel):
    success: bool = True


class PartialUpdate(BaseModel):
    """Base for PUT payloads. Only fields the client sent are applied.

    An explicit null clears a field listed in ``nullable``; for any other
    field it is ignored.
    """
    nullable: ClassVar[FrozenSet[str]] = frozenset()

    def changes(self) -> Dict[str, Any]:
        return {
            k: v
            for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k in self.nullable
        }


# =========================
# Auth & users
# =========================
class TokenResponse(BaseModel):
    """Bearer token returned by signup and login."""
    token: str = Field(..., description="Signed bearer token; send as 'Authorization: Bearer <token>'.")


class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    name: Optional[str] = Field(None, max_length=255)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain at least one number")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str]
    avatar: Optional[str]
    created_at: datetime


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    avatar: Optional[str] = None


class PreferencesRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    theme: str
    currency: str
    notifications: bool
    email_notifications: bool
    email_weekly_summary: bool
    email_reminders: bool
    email_achievements: bool
    font_size: str


class PreferencesUpdate(BaseModel):
    theme: Optional[Literal["light", "dark", "system"]] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notifications: Optional[bool] = None
    email_notifications: Optional[bool] = None
    email_weekly_summary: Optional[bool] = None
    email_reminders: Optional[bool] = None
    email_achievements: Optional[bool] = None
    font_size: Optional[Literal["small", "medium", "large"]] = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


# =========================
# Routines
# =========================
class RoutineCreate(BaseModel):
    """Create routine payload."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    day_of_week: int = Field(..., ge=0, le=6, description="0-6, Sunday=0.")
    start_time: str = Field(..., description="HH:MM, 24-hour.")
    end_time: str = Field(..., description="HH:MM, 24-hour.")
    is_recurring: bool = True

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)

    @model_validator(mode="after")
    def check_order(self) -> "RoutineCreate":
        if _minutes(self.start_time) >= _minutes(self.end_time):
            raise ValueError("end_time must be after start_time")
        return self


class RoutineUpdate(PartialUpdate):
    """Update routine payload (partial allowed)."""
    nullable: ClassVar[FrozenSet[str]] = frozenset({"description", "category"})

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_recurring: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return _check_title(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_time(v)

    @model_validator(mode="after")
    def check_order(self) -> "RoutineUpdate":
        if self.start_time and self.end_time and _minutes(self.start_time) >= _minutes(self.end_time):
            raise ValueError("end_time must be after start_time")
        return self


class RoutineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    category: Optional[str]
    day_of_week: int
    start_time: str
    end_time: str
    is_recurring: bool
    created_at: datetime
    updated_at: datetime


class RoutineSummary(BaseModel):
    total_routines: int
    recurring: int
    active_days: int
    weekly_hours: int


class PositionedRoutineRead(BaseModel):
    """Block geometry for one routine in one slot."""
    routine_id: int
    title: Optional[str]
    category: Optional[str]
    start_time: str
    end_time: str
    is_recurring: bool
    height_px: float
    top_offset_px: float
    left_offset_px: float
    width_px: float
    overlap_count: int
    position: int
    is_hidden: bool
    should_show_more: bool
    more_count: int
    more_target_id: Optional[int]
    represented_by: Optional[int]


class SlotLayoutRead(BaseModel):
    slot_start: str
    slot_end: str
    routines: List[PositionedRoutineRead]
    dropped_ids: List[int]


class DayLayoutRead(BaseModel):
    day_index: int
    name: str
    slots: List[SlotLayoutRead]


class WeekLayoutRead(BaseModel):
    start_hour: int
    end_hour: int
    days: List[DayLayoutRead]
    navigation: Dict[str, int] = Field(..., description="'<day>:<start_minutes>' -> routine id.")
    excluded_ids: List[int]


class NeighborRead(BaseModel):
    routine_id: int
    key: str
    neighbor_id: Optional[int]


# =========================
# Budgets
# =========================
class BudgetCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(None, description="Hex color, e.g. #FF0000.")

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _HEX_COLOR_RE.match(v):
            raise ValueError("color must be a hex color like #RRGGBB")
        return v


class BudgetCategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: Optional[str]


class BudgetCreate(BaseModel):
    """Create budget payload."""
    category_id: int = Field(..., description="Existing category ID.")
    amount: float = Field(..., ge=0, description="Budget limit for the category in the month.")
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)


class BudgetUpdate(BaseModel):
    """Update budget payload (partial allowed)."""
    category_id: Optional[int] = None
    amount: Optional[float] = Field(None, ge=0)
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=1900, le=9999)


class BudgetRead(BaseModel):
    """Budget read schema including computed spend."""
    id: int
    category_id: int
    category_name: str
    color: Optional[str]
    amount: float
    month: int
    year: int
    spent: float
    remaining: float
    percentage: float


class TransactionCreate(BaseModel):
    category_id: int = Field(..., description="Existing category ID.")
    amount: float = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=255)
    date: Date = Field(..., description="Transaction date in ISO format (YYYY-MM-DD).")
    type: Literal["expense", "income"] = "expense"


class TransactionRead(BaseModel):
    id: int
    category_id: int
    category_name: Optional[str]
    amount: float
    description: Optional[str]
    date: Date
    type: str
    created_at: datetime


# =========================
# Events
# =========================
class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Date
    start_time: Optional[str] = None
    end_date: Optional[Date] = None
    end_time: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    is_public: bool = False
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_time(v)

    @model_validator(mode="after")
    def check_dates(self) -> "EventCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EventUpdate(PartialUpdate):
    nullable: ClassVar[FrozenSet[str]] = frozenset(
        {"description", "start_time", "end_date", "end_time", "location", "category", "latitude", "longitude"}
    )

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[Date] = None
    start_time: Optional[str] = None
    end_date: Optional[Date] = None
    end_time: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    is_public: Optional[bool] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_time(v)


class EventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    start_date: Date
    start_time: Optional[str]
    end_date: Optional[Date]
    end_time: Optional[str]
    location: Optional[str]
    category: Optional[str]
    is_public: bool
    latitude: Optional[float]
    longitude: Optional[float]


# =========================
# Wellness
# =========================
class WellnessLogCreate(BaseModel):
    date: Date
    mood: Optional[int] = Field(None, ge=1, le=5)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    water_glasses: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class WellnessLogUpdate(PartialUpdate):
    nullable: ClassVar[FrozenSet[str]] = frozenset({"mood", "sleep_hours", "water_glasses", "notes"})

    mood: Optional[int] = Field(None, ge=1, le=5)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    water_glasses: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class WellnessLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: Date
    mood: Optional[int]
    sleep_hours: Optional[float]
    water_glasses: Optional[int]
    notes: Optional[str]


# =========================
# Flashcards
# =========================
class DeckCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    is_public: bool = False


class DeckRead(BaseModel):
    id: int
    title: str
    description: Optional[str]
    category: Optional[str]
    is_public: bool
    is_owner: bool
    card_count: int
    created_at: datetime


class FlashcardCreate(BaseModel):
    deck_id: int
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)
    difficulty: int = Field(3, ge=1, le=5)


class FlashcardUpdate(BaseModel):
    front: Optional[str] = Field(None, min_length=1)
    back: Optional[str] = Field(None, min_length=1)
    difficulty: Optional[int] = Field(None, ge=1, le=5)
    last_reviewed: Optional[datetime] = None
    next_review: Optional[datetime] = None
    review_count: Optional[int] = Field(None, ge=0)


class FlashcardRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    deck_id: int
    front: str
    back: str
    difficulty: int
    last_reviewed: Optional[datetime]
    next_review: Optional[datetime]
    review_count: int
    created_at: datetime


class QuizResultCreate(BaseModel):
    deck_id: int
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0)
    time_spent: Optional[int] = Field(None, ge=0, description="Seconds.")

    @model_validator(mode="after")
    def check_score(self) -> "QuizResultCreate":
        if self.score > self.total_questions:
            raise ValueError("score cannot exceed total_questions")
        return self


class QuizResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    deck_id: int
    score: int
    total_questions: int
    time_spent: Optional[int]
    completed_at: datetime


class FlashcardStats(BaseModel):
    total_decks: int
    decks_mastered: int
    cards_reviewed: int
    quiz_count: int
    overall_mastery_percent: float


class DeckStats(BaseModel):
    card_count: int
    cards_reviewed: int
    quiz_count: int
    average_score: float
    last_completed_at: Optional[datetime]


class RecentFlashcard(BaseModel):
    id: int
    front: str
    deck_title: str


# =========================
# Study plans
# =========================
class StudyGoalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: Literal["daily", "weekly", "monthly"]
    target_value: int = Field(..., ge=1)
    target_unit: Literal["cards", "minutes", "sessions"]
    deadline: Optional[Date] = None


class StudyGoalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    target_value: Optional[int] = Field(None, ge=1)
    target_unit: Optional[Literal["cards", "minutes", "sessions"]] = None
    current_value: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    deadline: Optional[Date] = None


class StudyGoalRead(BaseModel):
    id: int
    title: str
    description: Optional[str]
    type: str
    target_value: int
    target_unit: str
    current_value: int
    is_active: bool
    deadline: Optional[Date]


class StudyGoalProgress(StudyGoalRead):
    progress_percent: float
    is_completed: bool


class StudySessionCreate(BaseModel):
    deck_id: Optional[int] = None
    duration: int = Field(..., ge=1, description="Minutes.")
    cards_reviewed: int = Field(0, ge=0)
    session_type: Literal["flashcards", "quiz"] = "flashcards"


class StudySessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    deck_id: Optional[int]
    duration: int
    cards_reviewed: int
    session_type: str
    started_at: datetime
    completed_at: Optional[datetime]


class StudyScheduleCreate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)

    @model_validator(mode="after")
    def check_order(self) -> "StudyScheduleCreate":
        if _minutes(self.start_time) >= _minutes(self.end_time):
            raise ValueError("end_time must be after start_time")
        return self


class StudyScheduleUpdate(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_time(v)


class StudyScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool


class StudyTotals(BaseModel):
    total_minutes: int
    total_cards: int
    session_count: int


class StudyPlanStats(BaseModel):
    daily: StudyTotals
    weekly: StudyTotals
    goals: List[StudyGoalProgress]


# =========================
# Dashboard
# =========================
class BudgetSummary(BaseModel):
    month: int
    year: int
    total_budget: float
    total_spent: float
    percentage: float


class DashboardSummary(BaseModel):
    """Dashboard summary for the week and month containing ``date``."""
    date: Date
    budget_summary: BudgetSummary
    upcoming_events: List[EventRead]
    recent_flashcards: List[RecentFlashcard]
    wellness_summary: List[WellnessLogRead]
    routine_summary: RoutineSummary


# =========================
# Notifications
# =========================
class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    type: Literal["info", "warning", "success", "error"] = "info"
    action_url: Optional[str] = Field(None, max_length=500)
    action_text: Optional[str] = Field(None, max_length=100)
    expires_at: Optional[datetime] = Field(None, description="Defaults to 30 days after creation.")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _check_title(v)


class NotificationRead(BaseModel):
    id: int
    title: str
    message: str
    type: str
    is_read: bool
    action_url: Optional[str]
    action_text: Optional[str]
    expires_at: Optional[datetime]
    created_at: datetime


class UnreadCount(BaseModel):
    count: int


class PurgeResult(BaseModel):
    removed: int
