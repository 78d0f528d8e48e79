from datetime import date as Date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, and_, or_, select

from ..db import get_session
from ..models import Event, User
from ..schemas import EventCreate, EventRead, EventUpdate, SuccessResponse
from ..security import get_current_user

events_router = APIRouter(prefix="/events", tags=["events"])


def _get_owned(session: Session, user_id: int, event_id: int) -> Event:
    obj = session.get(Event, event_id)
    if not obj or obj.user_id != user_id:
        raise HTTPException(status_code=404, detail="Event not found")
    return obj


# PUBLIC_INTERFACE
@events_router.get(
    "",
    response_model=List[EventRead],
    summary="List events",
    description="The user's events plus, optionally, public community events; filter by date range.",
)
def list_events(
    start_date: Optional[Date] = Query(None, description="Events starting on or after this date"),
    end_date: Optional[Date] = Query(None, description="Events starting on or before this date"),
    include_public: bool = Query(True),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[EventRead]:
    owner = Event.user_id == user.id
    if include_public:
        owner = or_(owner, and_(Event.is_public == True, Event.user_id == None))  # noqa: E711,E712
    stmt = select(Event).where(owner)
    if start_date:
        stmt = stmt.where(Event.start_date >= start_date)
    if end_date:
        stmt = stmt.where(Event.start_date <= end_date)
    stmt = stmt.order_by(Event.start_date, Event.start_time, Event.id)
    return [EventRead.model_validate(e) for e in session.exec(stmt)]


# PUBLIC_INTERFACE
@events_router.post("", response_model=EventRead, status_code=status.HTTP_201_CREATED, summary="Create event")
def create_event(
    payload: EventCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> EventRead:
    obj = Event(user_id=user.id, **payload.model_dump())
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return EventRead.model_validate(obj)


# PUBLIC_INTERFACE
@events_router.put("/{event_id}", response_model=EventRead, summary="Update event")
def update_event(
    event_id: int,
    payload: EventUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> EventRead:
    obj = _get_owned(session, user.id, event_id)
    changes = payload.changes()
    start = changes.get("start_date", obj.start_date)
    end = changes.get("end_date", obj.end_date)
    if end is not None and end < start:
        raise HTTPException(status_code=422, detail="end_date must not be before start_date")
    for name, value in changes.items():
        setattr(obj, name, value)
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return EventRead.model_validate(obj)


# PUBLIC_INTERFACE
@events_router.delete("/{event_id}", response_model=SuccessResponse, summary="Delete event")
def delete_event(
    event_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    obj = _get_owned(session, user.id, event_id)
    session.delete(obj)
    session.commit()
    return SuccessResponse()
