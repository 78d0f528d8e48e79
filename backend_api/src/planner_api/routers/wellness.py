from datetime import date as Date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, col, select

from ..db import get_session
from ..models import User, WellnessLog
from ..schemas import WellnessLogCreate, WellnessLogRead, WellnessLogUpdate
from ..security import get_current_user

wellness_router = APIRouter(prefix="/wellness", tags=["wellness"])


# PUBLIC_INTERFACE
@wellness_router.get(
    "/logs",
    response_model=List[WellnessLogRead],
    summary="List wellness logs",
    description="Newest first; optional inclusive date range.",
)
def list_logs(
    start_date: Optional[Date] = Query(None),
    end_date: Optional[Date] = Query(None),
    limit: int = Query(30, ge=1, le=366),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[WellnessLogRead]:
    stmt = select(WellnessLog).where(WellnessLog.user_id == user.id)
    if start_date:
        stmt = stmt.where(WellnessLog.date >= start_date)
    if end_date:
        stmt = stmt.where(WellnessLog.date <= end_date)
    stmt = stmt.order_by(col(WellnessLog.date).desc(), col(WellnessLog.id).desc()).limit(limit)
    return [WellnessLogRead.model_validate(w) for w in session.exec(stmt)]


# PUBLIC_INTERFACE
@wellness_router.post(
    "/logs",
    response_model=WellnessLogRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create wellness log",
)
def create_log(
    payload: WellnessLogCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> WellnessLogRead:
    obj = WellnessLog(user_id=user.id, **payload.model_dump())
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return WellnessLogRead.model_validate(obj)


# PUBLIC_INTERFACE
@wellness_router.put("/logs/{log_id}", response_model=WellnessLogRead, summary="Update wellness log")
def update_log(
    log_id: int,
    payload: WellnessLogUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> WellnessLogRead:
    obj = session.get(WellnessLog, log_id)
    if not obj or obj.user_id != user.id:
        raise HTTPException(status_code=404, detail="Wellness log not found")
    for name, value in payload.changes().items():
        setattr(obj, name, value)
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return WellnessLogRead.model_validate(obj)
