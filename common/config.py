"""Общие настройки приложения, читаются из окружения и .env."""
import logging
from functools import lru_cache
from typing import Callable, TypeVar

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseServiceSettings(BaseSettings):
	"""Подключение к базе, подпись токенов, уровень логов и метрики."""

	app_name: str
	database_url: str
	database_url_async: str | None = None
	jwt_secret: str
	jwt_algorithm: str = "HS256"
	metrics_enabled: bool = True
	log_level: str = "INFO"

	# пул соединений (для SQLite не используется)
	db_pool_size: int = 10
	db_max_overflow: int = 20
	db_pool_timeout: int = 30
	db_pool_recycle: int = 1800

	model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

	@field_validator("jwt_secret")
	@classmethod
	def _secret_not_blank(cls, value: str) -> str:
		if not value.strip():
			raise ValueError("jwt_secret must not be empty")
		return value

	@field_validator("log_level")
	@classmethod
	def _known_log_level(cls, value: str) -> str:
		level = value.strip().upper()
		if not isinstance(logging.getLevelName(level), int):
			raise ValueError(f"Unknown log level: {value}")
		return level


SettingsT = TypeVar("SettingsT", bound=BaseServiceSettings)


def make_get_settings(settings_class: type[SettingsT]) -> Callable[[], SettingsT]:
	"""Возвращает get_settings, который создаёт настройки один раз на процесс."""

	@lru_cache
	def get_settings() -> SettingsT:
		return settings_class()

	return get_settings
