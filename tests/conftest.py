# tests/conftest.py
import uuid
from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from evalhub.db.engine import get_session, get_sessionmaker
from evalhub.db.models import Base, MemberOfWorkspace, Project, User, Workspace
from evalhub.main import create_app
from evalhub.security.auth import get_current_user
from evalhub.security.models import AuthenticatedUser

MEMBER_EMAIL = "alice@example.com"


@dataclass
class SeededProjects:
    user: User
    project: Project
    other_project: Project


@pytest.fixture()
async def test_engine(tmp_path):
    # file-backed so concurrent sessions get separate connections
    url = f"sqlite+aiosqlite:///{tmp_path / 'evalhub-test.db'}"
    engine = create_async_engine(url, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def test_sessionmaker(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        expire_on_commit=False,
        class_=AsyncSession,
    )


@pytest.fixture
async def test_session(test_sessionmaker):
    async with test_sessionmaker() as session:
        yield session


@pytest.fixture
async def seeded(test_session) -> SeededProjects:
    """Alice belongs to `project`'s workspace but not to `other_project`'s."""
    alice = User(name="Alice", email=MEMBER_EMAIL)
    ws = Workspace(name="Acme")
    other_ws = Workspace(name="Elsewhere")
    test_session.add_all([alice, ws, other_ws])
    await test_session.flush()

    project = Project(name="Chatbot", workspace_id=ws.id)
    other_project = Project(name="Hidden", workspace_id=other_ws.id)
    test_session.add_all(
        [
            project,
            other_project,
            MemberOfWorkspace(workspace_id=ws.id, user_id=alice.id, member_role="owner"),
        ]
    )
    await test_session.commit()

    return SeededProjects(user=alice, project=project, other_project=other_project)


@pytest.fixture
def current_user() -> AuthenticatedUser:
    return AuthenticatedUser(sub=str(uuid.uuid4()), email=MEMBER_EMAIL, username="alice")


@pytest.fixture
async def client(test_sessionmaker, current_user):
    async def override_get_session():
        async with test_sessionmaker() as session:
            yield session

    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_sessionmaker] = lambda: test_sessionmaker
    app.dependency_overrides[get_current_user] = lambda: current_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
