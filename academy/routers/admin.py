from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_admin_console
from ..schemas import (
	AdminEnrollmentPage,
	AdminEnrollmentQuery,
	AdminStats,
	DispatchSummaryOut,
	EnrolledCourseOut,
	EnrollmentOut,
	EnrollmentWithCourse,
)
from ..security import SessionContext, require_admin
from ..services import AdminConsole, AdminConsoleError


router = APIRouter(prefix="/api/admin", tags=["admin"])


def _handle_error(exc: AdminConsoleError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.get("/enrollments", response_model=AdminEnrollmentPage)
async def list_enrollments(
	query: Annotated[AdminEnrollmentQuery, Query()],
	_: SessionContext = Depends(require_admin),
	console: AdminConsole = Depends(get_admin_console),
) -> AdminEnrollmentPage:
	try:
		listing = await console.list_enrollments(query)
	except AdminConsoleError as exc:
		raise _handle_error(exc)
	return AdminEnrollmentPage(
		items=[
			EnrollmentWithCourse(
				**EnrollmentOut.model_validate(enrollment).model_dump(),
				course=EnrolledCourseOut.model_validate(course) if course else None,
			)
			for enrollment, course in listing.rows
		],
		next_cursor=listing.next_cursor,
	)


@router.get("/stats", response_model=AdminStats)
async def stats(
	_: SessionContext = Depends(require_admin),
	console: AdminConsole = Depends(get_admin_console),
) -> AdminStats:
	return await console.stats()


@router.post("/enrollments/{enrollment_id}/notifications", response_model=DispatchSummaryOut)
async def resend_notifications(
	enrollment_id: str,
	_: SessionContext = Depends(require_admin),
	console: AdminConsole = Depends(get_admin_console),
) -> DispatchSummaryOut:
	try:
		summary = await console.resend_notifications(enrollment_id)
	except AdminConsoleError as exc:
		raise _handle_error(exc)
	if summary.all_failed:
		raise HTTPException(
			status_code=status.HTTP_502_BAD_GATEWAY,
			detail={"message": "Failed to send notifications", "failed_channels": summary.failed_channels},
		)
	return DispatchSummaryOut.model_validate(summary)
