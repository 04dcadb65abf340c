import logging

import httpx
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from common import configure_logging, configure_observability

from .config import get_settings
from .database import get_db
from .migrations_runner import run_migrations
from .routers import admin_router, auth_router, courses_router, enrollments_router, payments_router


settings = get_settings()
configure_logging(settings.log_level)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
async def run_startup_tasks() -> None:
	if settings.run_migrations_on_startup:
		await run_in_threadpool(run_migrations)
	else:
		LOGGER.info("Skipping migrations on startup")


async def _check_notifications(_: AsyncSession | None) -> None:
	if not settings.notifications_service_url:
		return
	url = settings.notifications_service_url.rstrip("/") + "/healthz"
	headers: dict[str, str] = {}
	if settings.notifications_internal_token:
		headers["X-Internal-Token"] = settings.notifications_internal_token
	async with httpx.AsyncClient(timeout=2.0) as client:
		response = await client.get(url, headers=headers)
		response.raise_for_status()


configure_observability(
	app,
	settings=settings,
	get_db=get_db,
	extra_checks={"notifications_service": _check_notifications},
)

app.include_router(auth_router)
app.include_router(courses_router)
app.include_router(enrollments_router)
app.include_router(payments_router)
app.include_router(admin_router)
