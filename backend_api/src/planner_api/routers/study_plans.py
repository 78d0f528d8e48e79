from datetime import date as Date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, col, select

from ..db import get_session
from ..layout import parse_time_to_minutes
from ..models import FlashcardDeck, StudyGoal, StudySchedule, StudySession, User, utcnow
from ..reports import study_plan_stats
from ..schemas import (
    StudyGoalCreate,
    StudyGoalRead,
    StudyGoalUpdate,
    StudyPlanStats,
    StudyScheduleCreate,
    StudyScheduleRead,
    StudyScheduleUpdate,
    StudySessionCreate,
    StudySessionRead,
    SuccessResponse,
)
from ..security import get_current_user

study_plans_router = APIRouter(prefix="/study-plans", tags=["study-plans"])


def _goal_read(goal: StudyGoal) -> StudyGoalRead:
    # Map underlying model 'goal_type' to API field 'type'
    return StudyGoalRead(
        id=goal.id,
        title=goal.title,
        description=goal.description,
        type=goal.goal_type,
        target_value=goal.target_value,
        target_unit=goal.target_unit,
        current_value=goal.current_value,
        is_active=goal.is_active,
        deadline=goal.deadline,
    )


def _owned(session: Session, model, user_id: int, obj_id: int, label: str):
    obj = session.get(model, obj_id)
    if not obj or obj.user_id != user_id:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return obj


# =========================
# Goals
# =========================
# PUBLIC_INTERFACE
@study_plans_router.get("/goals", response_model=List[StudyGoalRead], summary="List study goals")
def list_goals(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
) -> List[StudyGoalRead]:
    stmt = (
        select(StudyGoal)
        .where(StudyGoal.user_id == user.id)
        .order_by(col(StudyGoal.created_at).desc(), col(StudyGoal.id).desc())
    )
    return [_goal_read(g) for g in session.exec(stmt)]


# PUBLIC_INTERFACE
@study_plans_router.post(
    "/goals", response_model=StudyGoalRead, status_code=status.HTTP_201_CREATED, summary="Create study goal"
)
def create_goal(
    payload: StudyGoalCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> StudyGoalRead:
    goal = StudyGoal(
        user_id=user.id,
        title=payload.title,
        description=payload.description,
        goal_type=payload.type,
        target_value=payload.target_value,
        target_unit=payload.target_unit,
        deadline=payload.deadline,
    )
    session.add(goal)
    session.commit()
    session.refresh(goal)
    return _goal_read(goal)


# PUBLIC_INTERFACE
@study_plans_router.put("/goals/{goal_id}", response_model=StudyGoalRead, summary="Update study goal")
def update_goal(
    goal_id: int,
    payload: StudyGoalUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> StudyGoalRead:
    goal = _owned(session, StudyGoal, user.id, goal_id, "Study goal")
    for name, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(goal, name, value)
    session.add(goal)
    session.commit()
    session.refresh(goal)
    return _goal_read(goal)


# PUBLIC_INTERFACE
@study_plans_router.delete("/goals/{goal_id}", response_model=SuccessResponse, summary="Delete study goal")
def delete_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    session.delete(_owned(session, StudyGoal, user.id, goal_id, "Study goal"))
    session.commit()
    return SuccessResponse()


# =========================
# Sessions
# =========================
# PUBLIC_INTERFACE
@study_plans_router.get("/sessions", response_model=List[StudySessionRead], summary="List study sessions")
def list_sessions(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[StudySessionRead]:
    stmt = (
        select(StudySession)
        .where(StudySession.user_id == user.id)
        .order_by(col(StudySession.started_at).desc(), col(StudySession.id).desc())
        .offset(offset)
        .limit(limit)
    )
    return [StudySessionRead.model_validate(s) for s in session.exec(stmt)]


# PUBLIC_INTERFACE
@study_plans_router.post(
    "/sessions",
    response_model=StudySessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record study session",
)
def create_session(
    payload: StudySessionCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> StudySessionRead:
    if payload.deck_id is not None:
        deck = session.get(FlashcardDeck, payload.deck_id)
        if not deck or (deck.user_id != user.id and not deck.is_public):
            raise HTTPException(status_code=404, detail="Deck not found")
    record = StudySession(user_id=user.id, completed_at=utcnow(), **payload.model_dump())
    session.add(record)
    session.commit()
    session.refresh(record)
    return StudySessionRead.model_validate(record)


# =========================
# Schedules
# =========================
# PUBLIC_INTERFACE
@study_plans_router.get("/schedules", response_model=List[StudyScheduleRead], summary="List study schedules")
def list_schedules(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
) -> List[StudyScheduleRead]:
    stmt = (
        select(StudySchedule)
        .where(StudySchedule.user_id == user.id)
        .order_by(StudySchedule.day_of_week, StudySchedule.start_time, StudySchedule.id)
    )
    return [StudyScheduleRead.model_validate(s) for s in session.exec(stmt)]


# PUBLIC_INTERFACE
@study_plans_router.post(
    "/schedules",
    response_model=StudyScheduleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create study schedule",
)
def create_schedule(
    payload: StudyScheduleCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> StudyScheduleRead:
    obj = StudySchedule(user_id=user.id, **payload.model_dump())
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return StudyScheduleRead.model_validate(obj)


# PUBLIC_INTERFACE
@study_plans_router.put("/schedules/{schedule_id}", response_model=StudyScheduleRead, summary="Update study schedule")
def update_schedule(
    schedule_id: int,
    payload: StudyScheduleUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> StudyScheduleRead:
    obj = _owned(session, StudySchedule, user.id, schedule_id, "Study schedule")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    start = changes.get("start_time", obj.start_time)
    end = changes.get("end_time", obj.end_time)
    if parse_time_to_minutes(start) >= parse_time_to_minutes(end):
        raise HTTPException(status_code=422, detail="end_time must be after start_time")
    for name, value in changes.items():
        setattr(obj, name, value)
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return StudyScheduleRead.model_validate(obj)


# PUBLIC_INTERFACE
@study_plans_router.delete("/schedules/{schedule_id}", response_model=SuccessResponse, summary="Delete study schedule")
def delete_schedule(
    schedule_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    session.delete(_owned(session, StudySchedule, user.id, schedule_id, "Study schedule"))
    session.commit()
    return SuccessResponse()


# =========================
# Statistics
# =========================
# PUBLIC_INTERFACE
@study_plans_router.get(
    "/stats",
    response_model=StudyPlanStats,
    summary="Study statistics",
    description="Daily and weekly (Sunday-Saturday) session totals plus progress of active goals.",
)
def get_stats(
    on: Optional[Date] = Query(None, description="Reference day, defaults to today"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> StudyPlanStats:
    return study_plan_stats(session, user.id, on or Date.today())
