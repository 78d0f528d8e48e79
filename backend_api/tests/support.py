"""Shared fixtures: an in-memory database and an API client bound to it."""
import unittest
from typing import Dict

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from planner_api import models  # noqa: F401
from planner_api.db import get_session
from planner_api.main import app

PASSWORD = "Secret123"


def memory_engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    return engine


class DatabaseTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = memory_engine()
        self.session = Session(self.engine)

    def tearDown(self):
        self.session.close()
        self.engine.dispose()

    def add(self, *objs):
        for obj in objs:
            self.session.add(obj)
        self.session.commit()
        for obj in objs:
            self.session.refresh(obj)
        return objs[0] if len(objs) == 1 else objs


class ApiTestCase(unittest.TestCase):
    """TestClient without the lifespan context, so startup seeding never runs."""

    def setUp(self):
        self.engine = memory_engine()

        def session_override():
            with Session(self.engine) as session:
                yield session

        app.dependency_overrides[get_session] = session_override
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.engine.dispose()

    def signup(self, email: str = "alice@planner.io", password: str = PASSWORD) -> Dict[str, str]:
        resp = self.client.post("/api/auth/signup", json={"email": email, "password": password})
        self.assertEqual(resp.status_code, 201, resp.text)
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    def user_id(self, headers: Dict[str, str]) -> int:
        return self.client.get("/api/auth/me", headers=headers).json()["id"]
