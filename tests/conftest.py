import os

os.environ["COUNCILHUB_ENVIRONMENT"] = "pytest"

from typing import Any, AsyncGenerator, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from councilhub.auth import security  # noqa: E402
from councilhub.db.dependencies import get_db_session  # noqa: E402
from councilhub.db.meta import meta  # noqa: E402
from councilhub.db.models import load_all_models  # noqa: E402
from councilhub.integrations.endpoints import get_http_client  # noqa: E402
from councilhub.mail.base import EmailMessage, MailResult  # noqa: E402
from councilhub.mail.dependencies import get_mailer, get_notification_mailer  # noqa: E402
from councilhub.members.enums import MemberStatus, Role  # noqa: E402
from councilhub.members.models import User  # noqa: E402
from councilhub.web.application import get_app  # noqa: E402

PASSWORD = "Sup3rSecretPass"
PASSWORD_HASH = security.get_password_hash(PASSWORD)


class FakeMailer:
    """Records messages instead of sending them."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[EmailMessage] = []

    async def send(self, message: EmailMessage) -> MailResult:
        if self.fail:
            return MailResult(sent=False, error="mail server unavailable")
        self.sent.append(message)
        return MailResult(sent=True, message_id=f"msg-{len(self.sent)}")

    def to(self, address: str) -> List[EmailMessage]:
        return [m for m in self.sent if m.to == address]


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """
    Backend for anyio pytest plugin.

    :return: backend name.
    """
    return "asyncio"


@pytest.fixture
async def _engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Create an in-memory database with every table.

    pysqlite handles transactions itself and breaks SAVEPOINT, so the
    driver is put in autocommit mode and BEGIN is emitted explicitly.
    """
    load_all_models()
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _no_driver_transactions(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(meta.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def dbsession(_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    Get session to database.

    Nothing is committed; the database is dropped with the engine.
    """
    session_maker = async_sessionmaker(_engine, expire_on_commit=False)
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def notification_mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def fastapi_app(
    dbsession: AsyncSession,
    mailer: FakeMailer,
    notification_mailer: FakeMailer,
) -> FastAPI:
    """
    Fixture for creating FastAPI app.

    :return: fastapi app with mocked dependencies.
    """
    application = get_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        yield dbsession

    application.dependency_overrides[get_db_session] = _session
    application.dependency_overrides[get_mailer] = lambda: mailer
    application.dependency_overrides[get_notification_mailer] = lambda: notification_mailer
    application.dependency_overrides[get_http_client] = lambda: None
    return application


@pytest.fixture
async def client(fastapi_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Fixture that creates client for requesting server.

    :param fastapi_app: the application.
    :yield: client for the app.
    """
    async with AsyncClient(
        transport=ASGITransport(app=fastapi_app), base_url="http://test"
    ) as ac:
        yield ac


async def make_user(
    session: AsyncSession,
    email: str,
    *,
    role: Role = Role.EDITOR,
    verified: bool = True,
    token: Optional[str] = None,
    approved: bool = True,
    active: Optional[bool] = None,
    name: Optional[str] = None,
) -> User:
    user = User(
        email=email,
        name=name or email.split("@")[0].title(),
        password_hash=PASSWORD_HASH,
        role=role,
        member_status=MemberStatus.MEMBER,
        email_verified=verified,
        email_verification_token=token,
        approved=approved,
        active=approved if active is None else active,
        refresh_token_param=1,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    token = security.create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def super_admin(dbsession: AsyncSession) -> User:
    return await make_user(dbsession, "root@council.example", role=Role.SUPER_ADMIN)


@pytest.fixture
async def admin(dbsession: AsyncSession) -> User:
    return await make_user(dbsession, "admin@council.example", role=Role.ADMIN)


@pytest.fixture
async def editor(dbsession: AsyncSession) -> User:
    return await make_user(dbsession, "editor@council.example", role=Role.EDITOR)
