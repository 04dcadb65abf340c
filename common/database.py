"""Движки и сессии базы данных."""
from collections.abc import AsyncIterator
from typing import Any, Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
	"""Базовый класс для всех моделей SQLAlchemy."""
	pass


def resolve_async_url(database_url: str, database_url_async: str | None) -> str:
	"""
	Преобразует синхронный URL базы данных в асинхронный.

	Args:
		database_url: Синхронный URL базы данных
		database_url_async: Опциональный асинхронный URL (если задан, используется он)

	Returns:
		Асинхронный URL базы данных

	Raises:
		ValueError: Если не удалось определить async URL
	"""
	if database_url_async:
		return database_url_async
	if "+asyncpg" in database_url or "+aiosqlite" in database_url:
		return database_url
	replacements = [
		("+psycopg2", "+asyncpg"),
		("+psycopg", "+asyncpg"),
		("postgresql://", "postgresql+asyncpg://"),
		("postgres://", "postgresql+asyncpg://"),
		("sqlite://", "sqlite+aiosqlite://"),
	]
	for needle, replacement in replacements:
		if needle in database_url:
			return database_url.replace(needle, replacement, 1)
	raise ValueError(
		"Не удалось определить async URL: задайте database_url_async или используйте PostgreSQL"
	)


def _pool_options(url: str, settings: Any) -> dict[str, Any]:
	# SQLite uses its own pool classes without size/overflow knobs
	if url.startswith("sqlite"):
		return {}
	return {
		"pool_pre_ping": True,
		"pool_size": settings.db_pool_size,
		"max_overflow": settings.db_max_overflow,
		"pool_timeout": settings.db_pool_timeout,
		"pool_recycle": settings.db_pool_recycle,
	}


def _sync_url(database_url: str) -> str:
	if "+aiosqlite" in database_url:
		return database_url.replace("+aiosqlite", "", 1)
	if "+asyncpg" in database_url:
		return database_url.replace("+asyncpg", "+psycopg", 1)
	return database_url


def create_database_engines(
	get_settings: Callable,
) -> tuple[Engine, AsyncEngine, async_sessionmaker[AsyncSession]]:
	"""
	Создает синхронный и асинхронный движки базы данных, а также sessionmaker.

	Синхронный движок нужен только миграциям Alembic, запросы приложения
	идут через асинхронные сессии.

	Returns:
		Кортеж (sync_engine, async_engine, SessionLocal)
	"""
	settings = get_settings()

	sync_url = _sync_url(settings.database_url)
	async_url = resolve_async_url(settings.database_url, settings.database_url_async)

	sync_engine = create_engine(sync_url, **_pool_options(sync_url, settings))
	async_engine = create_async_engine(async_url, **_pool_options(async_url, settings))

	SessionLocal = async_sessionmaker(
		async_engine,
		expire_on_commit=False,
		autoflush=False,
		class_=AsyncSession,
	)

	return sync_engine, async_engine, SessionLocal


def make_get_db(SessionLocal: async_sessionmaker[AsyncSession]) -> Callable:
	"""Создает зависимость FastAPI, выдающую асинхронную сессию на запрос."""

	async def get_db() -> AsyncIterator[AsyncSession]:
		async with SessionLocal() as session:
			yield session

	return get_db
