import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, List, Sequence

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import text

# Ensure project root on path before importing app modules
project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Configure the app to use a local SQLite database during tests
_test_db_path = project_root / "test.db"
os.environ["APP_DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_db_path.as_posix()}"
os.environ["APP_DEBUG"] = "false"
os.environ.pop("APP_FIREBASE_SERVICE_ACCOUNT_KEY", None)
os.environ.pop("APP_FIREBASE_CREDENTIALS_FILE", None)

# Start each test session from a clean database file
if _test_db_path.exists():
    _test_db_path.unlink()


async def _clear_database(session) -> None:
    """Remove all data from the database between tests."""
    from app.models import Base

    await session.execute(text("PRAGMA foreign_keys=OFF"))
    for table in reversed(Base.metadata.sorted_tables):
        await session.execute(table.delete())
    await session.commit()
    await session.execute(text("PRAGMA foreign_keys=ON"))


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create all tables for the duration of the test session."""
    from app.database import create_tables, drop_tables

    asyncio.run(create_tables())
    yield
    asyncio.run(drop_tables())
    if _test_db_path.exists():
        _test_db_path.unlink()


@pytest_asyncio.fixture
async def test_session(setup_database):
    """Provide an async database session to tests that need direct access."""
    from app.database import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture(autouse=True)
async def clean_database_after_test(setup_database):
    """Clean up any data created via API calls after each test."""
    yield
    from app.database import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        await _clear_database(session)


class FakePushTransport:
    """In-memory push provider.

    Tokens listed in `invalid_tokens` are reported as unregistered, tokens in
    `failing_tokens` as a generic delivery failure; every other token succeeds.
    """

    def __init__(self, invalid_tokens=(), failing_tokens=(), error=None):
        self.invalid_tokens = set(invalid_tokens)
        self.failing_tokens = set(failing_tokens)
        self.error = error
        self.calls: List[Dict] = []

    async def send_multicast(self, tokens: Sequence[str], title: str, body: str, data: Dict[str, str]):
        from app.services.push_transport import PushFailure, PushResult

        self.calls.append(
            {"tokens": list(tokens), "title": title, "body": body, "data": dict(data)})
        if self.error is not None:
            raise self.error

        results = []
        for token in tokens:
            if token in self.invalid_tokens:
                results.append(PushResult(
                    token=token, success=False, failure=PushFailure.INVALID_TOKEN,
                    detail="Requested entity was not found."))
            elif token in self.failing_tokens:
                results.append(PushResult(
                    token=token, success=False, failure=PushFailure.TRANSPORT,
                    detail="Internal error"))
            else:
                results.append(PushResult(token=token, success=True))
        return results


@pytest.fixture
def push_transport():
    return FakePushTransport()


@pytest_asyncio.fixture
async def client(push_transport):
    """API client whose notifications go to the in-memory push transport."""
    from app.main import app
    from app.services.notification_service import (
        NotificationDispatcher,
        get_notification_dispatcher,
    )

    app.dependency_overrides[get_notification_dispatcher] = lambda: NotificationDispatcher(
        push_transport)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


async def signup_user(client, username: str, password: str = "secret123") -> Dict:
    """Sign up through the API; returns the user payload plus auth headers."""
    response = await client.post("/api/auth/signup", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": password,
    })
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return {
        "id": data["user"]["id"],
        "username": data["user"]["username"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }


async def create_post(client, user: Dict, content: str = "Hello feed") -> Dict:
    response = await client.post("/api/posts", json={"content": content}, headers=user["headers"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def register_token(client, user: Dict, token: str) -> None:
    response = await client.post(
        "/api/notifications/register-token", json={"token": token}, headers=user["headers"])
    assert response.status_code == 200, response.text
