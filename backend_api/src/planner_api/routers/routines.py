import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, select

from .. import config
from ..db import get_session
from ..layout import (
    InvalidTimeError,
    LayoutOptions,
    NavigationIndex,
    WeekLayout,
    default_cache,
    format_minutes,
    layout_week,
    parse_time_to_minutes,
)
from ..models import Routine, User, utcnow
from ..reports import routine_summary
from ..schemas import (
    DayLayoutRead,
    NeighborRead,
    PositionedRoutineRead,
    RoutineCreate,
    RoutineRead,
    RoutineSummary,
    RoutineUpdate,
    SlotLayoutRead,
    SuccessResponse,
    WeekLayoutRead,
)
from ..security import get_current_user

logger = logging.getLogger(__name__)

routines_router = APIRouter(prefix="/routines", tags=["routines"])


def _user_routines(session: Session, user_id: int) -> List[Routine]:
    stmt = (
        select(Routine)
        .where(Routine.user_id == user_id)
        .order_by(Routine.day_of_week, Routine.start_time, Routine.id)
    )
    return list(session.exec(stmt).all())


def _get_owned(session: Session, user_id: int, routine_id: int) -> Routine:
    obj = session.get(Routine, routine_id)
    if not obj or obj.user_id != user_id:
        raise HTTPException(status_code=404, detail="Routine not found")
    return obj


def _week_to_read(week: WeekLayout, routines: List[Routine]) -> WeekLayoutRead:
    # Cached slots may hold rows from an earlier session; read fields from this request's rows.
    by_id = {r.id: r for r in routines}
    days = []
    for day in week.days:
        slots = []
        for slot in day.slots:
            blocks = [
                PositionedRoutineRead(
                    routine_id=p.routine_id,
                    title=by_id[p.routine_id].title,
                    category=by_id[p.routine_id].category,
                    start_time=by_id[p.routine_id].start_time,
                    end_time=by_id[p.routine_id].end_time,
                    is_recurring=by_id[p.routine_id].is_recurring,
                    height_px=p.height_px,
                    top_offset_px=p.top_offset_px,
                    left_offset_px=p.left_offset_px,
                    width_px=p.width_px,
                    overlap_count=p.overlap_count,
                    position=p.position,
                    is_hidden=p.is_hidden,
                    should_show_more=p.should_show_more,
                    more_count=p.more_count,
                    more_target_id=p.more_target_id,
                    represented_by=p.represented_by,
                )
                for p in slot.positioned
            ]
            slots.append(
                SlotLayoutRead(
                    slot_start=format_minutes(slot.slot_start),
                    slot_end=format_minutes(slot.slot_end),
                    routines=blocks,
                    dropped_ids=list(slot.dropped_ids),
                )
            )
        days.append(DayLayoutRead(day_index=day.day_index, name=day.name, slots=slots))
    return WeekLayoutRead(
        start_hour=week.start_hour,
        end_hour=week.end_hour,
        days=days,
        navigation=week.navigation.as_dict(),
        excluded_ids=list(week.excluded_ids),
    )


# PUBLIC_INTERFACE
@routines_router.get(
    "",
    response_model=List[RoutineRead],
    summary="List routines",
    description="The user's routines ordered by day of week and start time.",
)
def list_routines(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
) -> List[RoutineRead]:
    return [RoutineRead.model_validate(r) for r in _user_routines(session, user.id)]


# PUBLIC_INTERFACE
@routines_router.post(
    "",
    response_model=RoutineRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create routine",
)
def create_routine(
    payload: RoutineCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> RoutineRead:
    """Create a routine for the current user."""
    obj = Routine(user_id=user.id, **payload.model_dump())
    session.add(obj)
    session.commit()
    session.refresh(obj)
    logger.info("Created routine %s for user %s", obj.id, user.id)
    return RoutineRead.model_validate(obj)


# PUBLIC_INTERFACE
@routines_router.get(
    "/layout",
    response_model=WeekLayoutRead,
    summary="Weekly grid layout",
    description=(
        "Positions every routine inside the hourly slots of the weekly grid. Overlapping routines "
        "share the slot width; beyond the visible column cap they collapse into a '+N more' marker."
    ),
)
def get_layout(
    start_hour: int = Query(config.GRID_START_HOUR, ge=0, le=23),
    end_hour: int = Query(config.GRID_END_HOUR, ge=1, le=24),
    column_width_px: float = Query(config.DEFAULT_COLUMN_WIDTH_PX, gt=0, le=4000),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> WeekLayoutRead:
    if end_hour <= start_hour:
        raise HTTPException(status_code=400, detail="end_hour must be greater than start_hour")
    routines = _user_routines(session, user.id)
    week = layout_week(
        routines,
        start_hour=start_hour,
        end_hour=end_hour,
        options=LayoutOptions(column_width_px=column_width_px),
        cache=default_cache,
    )
    return _week_to_read(week, routines)


# PUBLIC_INTERFACE
@routines_router.get("/summary", response_model=RoutineSummary, summary="Weekly routine summary")
def get_summary(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
) -> RoutineSummary:
    """Total, recurring, active days and weekly hours."""
    return routine_summary(_user_routines(session, user.id))


# PUBLIC_INTERFACE
@routines_router.get(
    "/{routine_id}/neighbor",
    response_model=NeighborRead,
    summary="Keyboard navigation target",
    description="Routine to focus after pressing an arrow key (up/down/left/right) on a routine block.",
)
def get_neighbor(
    routine_id: int,
    key: str = Query(..., description="up, down, left or right (ArrowUp etc. also accepted)."),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> NeighborRead:
    _get_owned(session, user.id, routine_id)
    index = NavigationIndex.build(_user_routines(session, user.id))
    if routine_id not in index:
        raise HTTPException(status_code=404, detail="Routine is not on the weekly grid")
    try:
        target = index.neighbor(routine_id, key)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return NeighborRead(routine_id=routine_id, key=key, neighbor_id=target)


# PUBLIC_INTERFACE
@routines_router.put("/{routine_id}", response_model=RoutineRead, summary="Update routine")
def update_routine(
    routine_id: int,
    payload: RoutineUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> RoutineRead:
    """Update a routine; the resulting start must stay before the end."""
    obj = _get_owned(session, user.id, routine_id)
    changes = payload.changes()

    start = changes.get("start_time", obj.start_time)
    end = changes.get("end_time", obj.end_time)
    try:
        ordered = parse_time_to_minutes(start) < parse_time_to_minutes(end)
    except InvalidTimeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if not ordered:
        raise HTTPException(status_code=422, detail="end_time must be after start_time")

    for name, value in changes.items():
        setattr(obj, name, value)
    obj.updated_at = utcnow()
    session.add(obj)
    session.commit()
    session.refresh(obj)
    logger.info("Updated routine %s for user %s", obj.id, user.id)
    return RoutineRead.model_validate(obj)


# PUBLIC_INTERFACE
@routines_router.delete("/{routine_id}", response_model=SuccessResponse, summary="Delete routine")
def delete_routine(
    routine_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    obj = _get_owned(session, user.id, routine_id)
    session.delete(obj)
    session.commit()
    logger.info("Deleted routine %s for user %s", routine_id, user.id)
    return SuccessResponse()
