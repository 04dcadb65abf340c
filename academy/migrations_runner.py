from __future__ import annotations

from logging import getLogger
from pathlib import Path

from alembic import command
from alembic.config import Config

from .config import get_settings


logger = getLogger(__name__)


def _get_alembic_config() -> Config:
	base_dir = Path(__file__).resolve().parent

	alembic_cfg = Config()
	alembic_cfg.set_main_option("script_location", str(base_dir / "migrations"))
	# alembic runs on the sync engine URL
	alembic_cfg.set_main_option("sqlalchemy.url", get_settings().database_url.replace("%", "%%"))
	return alembic_cfg


def run_migrations() -> None:
	cfg = _get_alembic_config()
	command.upgrade(cfg, "head")
	logger.info("Enrollment service migrations applied")
