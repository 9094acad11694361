"""Shared fixtures for the API tests.

The app reads its settings at import time, so the database URL is pointed at
a throwaway SQLite file before anything from ``boardhub`` is imported.
"""

import asyncio
import os
import tempfile
from dataclasses import dataclass
from uuid import UUID, uuid4

_db_dir = tempfile.mkdtemp(prefix="boardhub-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'boardhub.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

import boardhub.models  # noqa: F401
from boardhub.api.v1.auth import create_access_token
from boardhub.db.base import Base
from boardhub.db.session import async_session_factory, engine
from boardhub.main import app

API = "/api/v1"


@dataclass
class User:
    id: UUID
    email: str
    full_name: str | None = None

    @property
    def token(self) -> str:
        return create_access_token(self.id, self.email, self.full_name)

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def database():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture
def run_db():
    """Run ``fn(session)`` against the test database and return its result."""

    def _run(fn):
        async def _go():
            async with async_session_factory() as db:
                return await fn(db)

        return asyncio.run(_go())

    return _run


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def alice() -> User:
    return User(id=uuid4(), email="alice@example.com", full_name="Alice Archer")


@pytest.fixture
def bob() -> User:
    return User(id=uuid4(), email="bob@example.com", full_name="Bob Baker")


@pytest.fixture
def carol() -> User:
    return User(id=uuid4(), email="carol@example.com")


class BoardApi:
    """Thin helpers for setting up boards through the HTTP API."""

    def __init__(self, client: TestClient):
        self.client = client

    def create_workspace(self, user: User, name: str = "Team") -> dict:
        response = self.client.post(f"{API}/workspaces", json={"name": name}, headers=user.headers)
        assert response.status_code == 201, response.text
        return response.json()

    def create_board(self, user: User, name: str = "Roadmap", workspace_id: str | None = None) -> dict:
        if workspace_id is None:
            workspace_id = self.create_workspace(user)["id"]
        response = self.client.post(
            f"{API}/workspaces/{workspace_id}/boards",
            json={"name": name},
            headers=user.headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    def create_list(self, user: User, board_id: str, name: str = "Todo") -> dict:
        response = self.client.post(
            f"{API}/boards/{board_id}/lists", json={"name": name}, headers=user.headers
        )
        assert response.status_code == 201, response.text
        return response.json()

    def create_task(self, user: User, board_id: str, list_id: str, title: str = "Write docs") -> dict:
        response = self.client.post(
            f"{API}/boards/{board_id}/tasks",
            json={"list_id": list_id, "title": title},
            headers=user.headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    def create_comment(
        self,
        user: User,
        board_id: str,
        task_id: str,
        content: str,
        parent_comment_id: str | None = None,
    ) -> dict:
        response = self.client.post(
            f"{API}/boards/{board_id}/tasks/{task_id}/comments",
            json={"content": content, "parent_comment_id": parent_comment_id},
            headers=user.headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    def invite(self, owner: User, board_id: str, email: str, role: str = "member"):
        return self.client.post(
            f"{API}/boards/{board_id}/invitations",
            json={"email": email, "role": role},
            headers=owner.headers,
        )

    def pending_invitations(self, user: User) -> list[dict]:
        response = self.client.get(f"{API}/home", headers=user.headers)
        assert response.status_code == 200, response.text
        return response.json()["pending_invitations"]

    def add_member(self, owner: User, board_id: str, user: User, role: str = "member") -> None:
        response = self.invite(owner, board_id, user.email, role)
        assert response.status_code == 200, response.text
        invitation = next(
            i for i in self.pending_invitations(user) if i["board_id"] == board_id
        )
        response = self.client.post(
            f"{API}/invitations/{invitation['id']}/accept", headers=user.headers
        )
        assert response.status_code == 200, response.text

    def board_view(self, user: User, board_id: str, **params) -> dict:
        response = self.client.get(f"{API}/boards/{board_id}", params=params, headers=user.headers)
        assert response.status_code == 200, response.text
        return response.json()

    def inbox(self, user: User) -> list[dict]:
        response = self.client.get(f"{API}/notifications", headers=user.headers)
        assert response.status_code == 200, response.text
        return response.json()


@pytest.fixture
def api(client: TestClient) -> BoardApi:
    return BoardApi(client)
