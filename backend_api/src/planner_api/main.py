import logging
from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRouter
from sqlmodel import Session

from . import config
from .db import create_db_and_tables, engine
from .routers.auth import auth_router
from .routers.budgets import budgets_router
from .routers.dashboard import dashboard_router
from .routers.events import events_router
from .routers.flashcards import flashcards_router
from .routers.notifications import notifications_router
from .routers.routines import routines_router
from .routers.study_plans import study_plans_router
from .routers.users import users_router
from .routers.wellness import wellness_router
from .seed import ensure_demo_user, seed_router, seed_user

if not logging.getLogger().handlers:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

logger = logging.getLogger(__name__)

# Application metadata and initialization with CORS.
app = FastAPI(
    title="Personal Planner API",
    description=(
        "REST API for weekly routines and their calendar layout, budgets, events, "
        "wellness logs, flashcards, study plans and dashboard summaries."
    ),
    version="0.1.0",
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Root health check
# PUBLIC_INTERFACE
@app.get("/", tags=["health"], summary="Health check")
def health_check() -> Dict[str, str]:
    """Return health message."""
    return {"message": "Healthy"}


# Mount routers under /api
api_router = APIRouter(prefix="/api")
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(routines_router)
api_router.include_router(budgets_router)
api_router.include_router(events_router)
api_router.include_router(wellness_router)
api_router.include_router(flashcards_router)
api_router.include_router(study_plans_router)
api_router.include_router(notifications_router)
api_router.include_router(dashboard_router)
api_router.include_router(seed_router)
app.include_router(api_router)


# Startup event: create tables and seed the demo account once.
@app.on_event("startup")
def on_startup() -> None:
    """Initialize database and ensure demo data is present."""
    create_db_and_tables()
    if not config.SEED_DEMO:
        return
    with Session(engine) as session:
        user = ensure_demo_user(session)
        seed_user(session, user)
    logger.info("Demo data ready for %s", config.DEMO_EMAIL)


# PUBLIC_INTERFACE
def serve() -> None:
    """Run the API with uvicorn using PLANNER_HOST / PLANNER_PORT."""
    import uvicorn

    uvicorn.run("planner_api.main:app", host=config.HOST, port=config.PORT)
