from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("FEDERATED_CLIENT_ID", "test-client.apps.googleusercontent.com")
os.environ.setdefault("ADMIN_EMAIL", "admin@englishmaster.in")
os.environ.setdefault("ADMIN_PHONE", "+919800000000")

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from academy.config import get_settings
from academy.database import Base, get_db
from academy.main import app
from academy.models import Course, User, UserRole
from academy.security import create_access_token, get_password_hash
from academy.services import NotificationDispatcher, SimulatedGateway, get_notification_dispatcher, get_payment_gateway
from academy.storage import get_optional_storage

BASE_TIME = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
NOTIFICATIONS_URL = "http://notifications.test"


class FakeStorage:
	def __init__(self, fail: bool = False) -> None:
		self.fail = fail
		self.objects: dict[str, bytes] = {}

	def upload_bytes(self, object_name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
		if self.fail:
			raise RuntimeError("storage is down")
		self.objects[object_name] = data
		return object_name

	def presigned_download_url(self, object_name: str, expires=None) -> str:
		return f"https://storage.test/invoices/{object_name}?signed=1"


@dataclass
class NotificationRecorder:
	"""MockTransport handler that records every call to the notifications service."""

	fail_paths: set[str] = field(default_factory=set)
	calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

	def __call__(self, request: httpx.Request) -> httpx.Response:
		payload = json.loads(request.content)
		self.calls.append((request.url.path, payload))
		if request.url.path in self.fail_paths:
			return httpx.Response(500, json={"success": False, "error": "provider down"})
		return httpx.Response(200, json={"success": True, "messageId": f"msg-{len(self.calls)}"})

	def recipients(self) -> list[str]:
		return [payload["to"] for _, payload in self.calls]


def make_dispatcher(handler: Callable[[httpx.Request], httpx.Response], **overrides: Any) -> NotificationDispatcher:
	settings = get_settings().model_copy(
		update={"notifications_service_url": NOTIFICATIONS_URL, **overrides}
	)
	return NotificationDispatcher(settings, transport=httpx.MockTransport(handler))


@pytest.fixture
async def session_factory(tmp_path):
	engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)
	factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)
	yield factory
	await engine.dispose()


@pytest.fixture
async def db(session_factory):
	async with session_factory() as session:
		yield session


@pytest.fixture
def storage() -> FakeStorage:
	return FakeStorage()


@pytest.fixture
def gateway() -> SimulatedGateway:
	return SimulatedGateway("gateway-test-secret")


@pytest.fixture
def notifications() -> NotificationRecorder:
	return NotificationRecorder()


@pytest.fixture
async def client(session_factory, storage, gateway, notifications):
	async def override_get_db():
		async with session_factory() as session:
			yield session

	app.dependency_overrides[get_db] = override_get_db
	app.dependency_overrides[get_optional_storage] = lambda: storage
	app.dependency_overrides[get_payment_gateway] = lambda: gateway
	app.dependency_overrides[get_notification_dispatcher] = lambda: make_dispatcher(notifications)

	transport = httpx.ASGITransport(app=app)
	async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
		yield http_client
	app.dependency_overrides.clear()


async def create_user(
	db: AsyncSession,
	email: str,
	*,
	name: str = "Priya Sharma",
	role: UserRole = UserRole.USER,
	password: str = "correct-horse-battery",
) -> User:
	user = User(
		email=email,
		display_name=name,
		phone_number="+919876543210",
		hashed_password=get_password_hash(password),
		role=role.value,
	)
	db.add(user)
	await db.commit()
	await db.refresh(user)
	return user


async def create_course(db: AsyncSession, name: str, **fields: Any) -> Course:
	values: dict[str, Any] = {
		"description": f"{name} course",
		"price": 1000,
		"duration": "8 weeks",
		"level": "Beginner",
		"instructor_name": "Anita Rao",
		"lessons": 12,
		"created_at": BASE_TIME,
		"updated_at": BASE_TIME,
	}
	values.update(fields)
	course = Course(name=name, **values)
	db.add(course)
	await db.commit()
	await db.refresh(course)
	return course


def auth_headers(user: User) -> dict[str, str]:
	return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
async def student(db) -> User:
	return await create_user(db, "priya@englishmaster.in")


@pytest.fixture
async def admin(db) -> User:
	return await create_user(db, "admin@englishmaster.in", name="Site Admin", role=UserRole.ADMIN)


@pytest.fixture
async def course(db) -> Course:
	return await create_course(
		db,
		"Grammar Basics",
		meet_link="https://meet.example.in/grammar",
	)


def later(minutes: int) -> datetime:
	return BASE_TIME + timedelta(minutes=minutes)
