import os
from typing import List


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# Database (SQLite file by default)
DATABASE_URL = os.getenv("PLANNER_DATABASE_URL", "sqlite:///./planner.db")

# Token signing. Override in any shared deployment.
SECRET_KEY = os.getenv("PLANNER_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_TTL_DAYS = _env_int("PLANNER_TOKEN_TTL_DAYS", 7)

CORS_ORIGINS = _env_list("PLANNER_CORS_ORIGINS", "*")
LOG_LEVEL = os.getenv("PLANNER_LOG_LEVEL", "INFO").upper()
SEED_DEMO = _env_bool("PLANNER_SEED_DEMO", True)
DEMO_EMAIL = os.getenv("PLANNER_DEMO_EMAIL", "demo@example.com")
DEMO_PASSWORD = os.getenv("PLANNER_DEMO_PASSWORD", "DemoPass123")

HOST = os.getenv("PLANNER_HOST", "127.0.0.1")
PORT = _env_int("PLANNER_PORT", 8000)

# Weekly grid geometry
ROW_HEIGHT_PX = _env_int("PLANNER_ROW_HEIGHT_PX", 76)
MIN_BLOCK_HEIGHT_PX = _env_int("PLANNER_MIN_BLOCK_HEIGHT_PX", 32)
MAX_VISIBLE_ROUTINES = _env_int("PLANNER_MAX_VISIBLE_ROUTINES", 3)
CELL_PADDING_PX = _env_int("PLANNER_CELL_PADDING_PX", 8)
COLUMN_GAP_PX = _env_int("PLANNER_COLUMN_GAP_PX", 4)
MIN_BLOCK_WIDTH_PX = _env_int("PLANNER_MIN_BLOCK_WIDTH_PX", 24)
DEFAULT_COLUMN_WIDTH_PX = _env_int("PLANNER_COLUMN_WIDTH_PX", 160)
GRID_START_HOUR = _env_int("PLANNER_GRID_START_HOUR", 6)
GRID_END_HOUR = _env_int("PLANNER_GRID_END_HOUR", 24)
LAYOUT_CACHE_SIZE = _env_int("PLANNER_LAYOUT_CACHE_SIZE", 256)

# Default lifetime of a notification created without an explicit expiry.
NOTIFICATION_TTL_DAYS = _env_int("PLANNER_NOTIFICATION_TTL_DAYS", 30)
