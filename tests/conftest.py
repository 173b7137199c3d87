import asyncio
import itertools

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from carespot.api.deps import get_notifier
from carespot.core.config import settings
from carespot.core.redis import redis_client
from carespot.db.models import User
from carespot.db.session import get_session
from carespot.main import app
from carespot.schemas.hospital import HospitalCreate, VerificationStatus
from carespot.schemas.user import AdminLevel, Role, UserCreate
from carespot.services.auth_service import AuthService
from carespot.services.hospital_service import HospitalService
from carespot.services.notification_service import NotificationSender
from carespot.services.user_service import UserService

# minimum bcrypt cost keeps the suite fast
settings.BCRYPT_ROUNDS = 4


class RecordingNotifier(NotificationSender):
    """Keeps every delivered message; templates in ``failing`` report failure."""

    def __init__(self):
        self.sent = []
        self.failing = set()
        self.delay = 0.0

    async def send(self, to, template_id, data):
        if self.delay:
            await asyncio.sleep(self.delay)
        if template_id in self.failing:
            return False
        self.sent.append((to, template_id, data))
        return True

    def templates(self):
        return [template_id for _, template_id, _ in self.sent]


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'carespot.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(autouse=True)
async def token_registry():
    original = redis_client.redis
    redis_client.redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield redis_client.redis
    await redis_client.redis.aclose()
    redis_client.redis = original


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(session_factory, notifier):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def hospital_payload():
    counter = itertools.count(1)

    def _payload(**overrides):
        n = next(counter)
        payload = {
            "hospital_name": f"City Care Hospital {n}",
            "registration_number": f"REG-{n:03d}",
            "hospital_type": "general",
            "location": {
                "address": f"{n} MG Road",
                "city": "Kochi",
                "state": "Kerala",
                "pincode": "682001",
            },
            "contact_info": {"phone": "4842123456", "email": f"contact{n}@hospital.com"},
            "departments": ["Emergency", "Cardiology"],
            "facilities": ["ICU"],
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def create_user(session):
    counter = itertools.count(1)

    async def _create(role=Role.PATIENT, hospital_id=None, admin_level=None, email=None, password="password123"):
        n = next(counter)
        created = await UserService(session).create_identity(UserCreate(
            name=f"{role.value.title()} {n}",
            email=email or f"{role.value}{n}@example.com",
            phone=f"98765{n:05d}",
            password=password,
            role=role,
            hospital_id=hospital_id,
            admin_level=admin_level,
        ))
        return await session.get(User, created.id)

    return _create


@pytest_asyncio.fixture
async def admin(create_user):
    return await create_user(Role.ADMIN, admin_level=AdminLevel.SUPER_ADMIN)


@pytest.fixture
def create_hospital(session, hospital_payload, admin):
    async def _create(status=VerificationStatus.PENDING, **overrides):
        service = HospitalService(session)
        hospital = await service.register_hospital(HospitalCreate(**hospital_payload(**overrides)))
        if status != VerificationStatus.PENDING:
            reason = "Incomplete documents" if status == VerificationStatus.REJECTED else None
            hospital, _ = await service.set_verification(hospital.id, status, admin, rejection_reason=reason)
        return hospital

    return _create


@pytest.fixture
def auth_headers(session):
    async def _headers(user: User):
        token = await AuthService(session).issue_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def reload(session_factory):
    """Read a row through a new session, bypassing any cached instance."""

    async def _reload(model, row_id):
        async with session_factory() as fresh:
            return await fresh.get(model, row_id)

    return _reload
