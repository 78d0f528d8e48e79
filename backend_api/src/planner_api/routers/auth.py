import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from ..db import get_session
from ..models import User
from ..schemas import LoginRequest, SignupRequest, TokenResponse, UserRead
from ..security import create_token, get_current_user, hash_password, verify_password

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])


# PUBLIC_INTERFACE
@auth_router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign up",
    description="Create an account and return a bearer token.",
)
def signup(payload: SignupRequest, session: Session = Depends(get_session)) -> TokenResponse:
    """Register a new user; emails are unique."""
    existing = session.exec(select(User).where(User.email == payload.email)).first()
    if existing:
        logger.warning("Signup attempt with existing email")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")

    user = User(email=payload.email, password_hash=hash_password(payload.password), name=payload.name)
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("User signup successful: user_id=%s", user.id)
    return TokenResponse(token=create_token(user))


# PUBLIC_INTERFACE
@auth_router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login",
    description="Check credentials and return a bearer token.",
)
def login(payload: LoginRequest, session: Session = Depends(get_session)) -> TokenResponse:
    """Exchange email and password for a token."""
    user = session.exec(select(User).where(User.email == payload.email)).first()
    if not user or not verify_password(payload.password, user.password_hash):
        # Do not log credentials.
        logger.warning("Login failed for %s", "known user" if user else "unknown email")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    logger.info("User login successful: user_id=%s", user.id)
    return TokenResponse(token=create_token(user))


# PUBLIC_INTERFACE
@auth_router.get("/me", response_model=UserRead, summary="Current user")
def me(user: User = Depends(get_current_user)) -> UserRead:
    """Return the authenticated user."""
    return UserRead.model_validate(user)
