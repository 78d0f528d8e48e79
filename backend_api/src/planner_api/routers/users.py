from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from ..db import get_session
from ..models import User, UserPreferences, utcnow
from ..schemas import PreferencesRead, PreferencesUpdate, ProfileUpdate, UserRead
from ..security import get_current_user

users_router = APIRouter(prefix="/user", tags=["user"])


def _get_or_create_preferences(session: Session, user_id: int) -> UserPreferences:
    prefs = session.exec(select(UserPreferences).where(UserPreferences.user_id == user_id)).first()
    if not prefs:
        prefs = UserPreferences(user_id=user_id)
        session.add(prefs)
        session.commit()
        session.refresh(prefs)
    return prefs


# PUBLIC_INTERFACE
@users_router.get("/preferences", response_model=PreferencesRead, summary="Get preferences")
def get_preferences(
    user: User = Depends(get_current_user), session: Session = Depends(get_session)
) -> PreferencesRead:
    """Return preferences, creating defaults on first access."""
    return PreferencesRead.model_validate(_get_or_create_preferences(session, user.id))


# PUBLIC_INTERFACE
@users_router.put("/preferences", response_model=PreferencesRead, summary="Update preferences")
def update_preferences(
    payload: PreferencesUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> PreferencesRead:
    """Apply the provided preference fields."""
    prefs = _get_or_create_preferences(session, user.id)
    for name, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(prefs, name, value)
    prefs.updated_at = utcnow()
    session.add(prefs)
    session.commit()
    session.refresh(prefs)
    return PreferencesRead.model_validate(prefs)


# PUBLIC_INTERFACE
@users_router.get("/profile", response_model=UserRead, summary="Get profile")
def get_profile(user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(user)


# PUBLIC_INTERFACE
@users_router.put("/profile", response_model=UserRead, summary="Update profile")
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> UserRead:
    """Update name and avatar."""
    if payload.name is not None:
        user.name = payload.name
    if payload.avatar is not None:
        user.avatar = payload.avatar
    session.add(user)
    session.commit()
    session.refresh(user)
    return UserRead.model_validate(user)
