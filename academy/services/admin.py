from __future__ import annotations

import logging
from datetime import datetime
from dataclasses import dataclass

from fastapi import status
from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Course, Enrollment, PaymentStatusEnum
from ..schemas import AdminEnrollmentQuery, AdminStats
from .catalog import CatalogService
from .cursors import InvalidCursorError, decode_cursor, encode_cursor, like_pattern
from .notifications import DispatchSummary, NotificationDispatcher

LOGGER = logging.getLogger(__name__)


class AdminConsoleError(Exception):
	def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


@dataclass
class EnrollmentListing:
	rows: list[tuple[Enrollment, Course | None]]
	next_cursor: str | None = None


class AdminConsole:
	"""Read-only views over all enrollments plus manual notification re-send."""

	def __init__(self, db: AsyncSession, *, notifications: NotificationDispatcher | None = None):
		self.db = db
		self.catalog = CatalogService(db)
		self.notifications = notifications

	async def list_enrollments(self, query: AdminEnrollmentQuery) -> EnrollmentListing:
		stmt = (
			select(Enrollment)
			.order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
			.limit(query.limit + 1)
		)
		if query.search and query.search.strip():
			pattern = like_pattern(query.search.strip())
			stmt = stmt.where(
				or_(
					Enrollment.user_name.ilike(pattern, escape="\\"),
					Enrollment.user_email.ilike(pattern, escape="\\"),
					Enrollment.user_phone.ilike(pattern, escape="\\"),
					Enrollment.course_name.ilike(pattern, escape="\\"),
				)
			)
		if query.cursor:
			try:
				last_enrolled_at, last_id = decode_cursor(query.cursor, datetime, str)
			except InvalidCursorError as exc:
				raise AdminConsoleError(str(exc)) from exc
			stmt = stmt.where(
				or_(
					Enrollment.enrolled_at < last_enrolled_at,
					and_(Enrollment.enrolled_at == last_enrolled_at, Enrollment.id < last_id),
				)
			)

		enrollments = list((await self.db.execute(stmt)).scalars().all())
		next_cursor = None
		if len(enrollments) > query.limit:
			enrollments = enrollments[: query.limit]
			last = enrollments[-1]
			next_cursor = encode_cursor(last.enrolled_at, last.id)

		courses = await self.catalog.get_courses({e.course_id for e in enrollments})
		return EnrollmentListing(
			rows=[(e, courses.get(e.course_id)) for e in enrollments],
			next_cursor=next_cursor,
		)

	async def stats(self) -> AdminStats:
		completed = Enrollment.payment_status == PaymentStatusEnum.COMPLETED.value
		stmt = select(
			func.count(Enrollment.id),
			func.coalesce(func.sum(case((completed, 1), else_=0)), 0),
			func.coalesce(func.sum(case((completed, Enrollment.course_price), else_=0)), 0),
			func.count(func.distinct(Enrollment.course_id)),
		)
		total, completed_count, revenue, distinct_courses = (await self.db.execute(stmt)).one()
		return AdminStats(
			total_enrollments=total,
			completed_enrollments=completed_count,
			total_revenue=revenue,
			distinct_courses=distinct_courses,
		)

	async def resend_notifications(self, enrollment_id: str) -> DispatchSummary:
		if self.notifications is None:
			raise AdminConsoleError("Notifications are not available", status.HTTP_503_SERVICE_UNAVAILABLE)

		enrollment = await self.db.get(Enrollment, enrollment_id)
		if not enrollment:
			raise AdminConsoleError("Enrollment not found", status.HTTP_404_NOT_FOUND)
		if enrollment.payment_status != PaymentStatusEnum.COMPLETED.value:
			raise AdminConsoleError(
				"Notifications can only be sent for completed enrollments", status.HTTP_409_CONFLICT
			)
		course = await self.catalog.find_course(enrollment.course_id)
		if not course:
			raise AdminConsoleError("Course not found", status.HTTP_404_NOT_FOUND)

		LOGGER.info("Re-sending notifications for enrollment %s", enrollment.id)
		return await self.notifications.dispatch_enrollment(enrollment, course)
