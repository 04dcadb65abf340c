from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

LOGGER = logging.getLogger(__name__)

HealthCheck = Callable[[AsyncSession | None], Awaitable[None] | None]


def configure_logging(level: str) -> None:
	"""Configure the root logger once; uvicorn keeps its own handlers."""
	logging.basicConfig(
		level=level.upper(),
		format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
	)


async def _run_check(name: str, check: HealthCheck, db: AsyncSession | None) -> None:
	try:
		result = check(db)
		if inspect.isawaitable(result):
			await result
	except Exception as exc:
		LOGGER.warning("Health check %s failed: %s", name, exc)
		raise HTTPException(
			status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
			detail={"status": "error", "check": name, "error": str(exc)},
		) from exc


async def ping_database(db: AsyncSession | None) -> None:
	if db is None:
		return
	await db.execute(text("SELECT 1"))


def configure_observability(
	app: FastAPI,
	*,
	settings: Any,
	get_db: Optional[Callable[..., Any]] = None,
	extra_checks: Mapping[str, HealthCheck] | None = None,
) -> None:
	"""Attach /healthz and /metrics; the database is checked first when get_db is given."""
	metrics_enabled = getattr(settings, "metrics_enabled", False)
	if metrics_enabled:
		app.state.instrumentator = Instrumentator().instrument(app)

	checks: dict[str, HealthCheck] = {}
	if get_db:
		checks["database"] = ping_database
	checks.update(extra_checks or {})

	async def _no_db() -> None:
		return None

	@app.get("/healthz")
	async def healthz(db: AsyncSession | None = Depends(get_db or _no_db)) -> JSONResponse:
		results: dict[str, str] = {} if get_db else {"database": "skipped"}
		for name, check in checks.items():
			await _run_check(name, check, db)
			results[name] = "ok"
		return JSONResponse({"status": "ok", "checks": results})

	@app.get("/metrics")
	def metrics() -> Response:
		if not metrics_enabled:
			return JSONResponse({"detail": "Metrics disabled"}, status_code=404)
		return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
