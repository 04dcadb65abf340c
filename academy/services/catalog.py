from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from fastapi import status
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Course
from ..schemas import CourseQuery
from .cursors import InvalidCursorError, decode_cursor, encode_cursor, like_pattern

POPULAR_DEFAULT_LIMIT = 4


class CatalogError(Exception):
	def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


@dataclass
class CourseListing:
	items: list[Course]
	next_cursor: str | None = None


class CatalogService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def list_courses(self, query: CourseQuery) -> CourseListing:
		sort_column = Course.enrollment_count if query.sort == "popular" else Course.created_at
		key_type = int if query.sort == "popular" else datetime
		stmt = (
			select(Course)
			.where(Course.is_active == True)  # noqa: E712
			.order_by(sort_column.desc(), Course.id.desc())
			.limit(query.limit + 1)
		)
		if query.level:
			stmt = stmt.where(Course.level == query.level.value)
		if query.search and query.search.strip():
			pattern = like_pattern(query.search.strip())
			stmt = stmt.where(
				or_(
					Course.name.ilike(pattern, escape="\\"),
					Course.description.ilike(pattern, escape="\\"),
				)
			)
		if query.cursor:
			try:
				last_key, last_id = decode_cursor(query.cursor, key_type, int)
			except InvalidCursorError as exc:
				raise CatalogError(str(exc)) from exc
			stmt = stmt.where(
				or_(
					sort_column < last_key,
					and_(sort_column == last_key, Course.id < last_id),
				)
			)

		result = await self.db.execute(stmt)
		courses = list(result.scalars().all())
		next_cursor = None
		if len(courses) > query.limit:
			courses = courses[: query.limit]
			last = courses[-1]
			sort_key = last.enrollment_count if query.sort == "popular" else last.created_at
			next_cursor = encode_cursor(sort_key, last.id)
		return CourseListing(items=courses, next_cursor=next_cursor)

	async def popular_courses(self, limit: int = POPULAR_DEFAULT_LIMIT) -> list[Course]:
		listing = await self.list_courses(CourseQuery(sort="popular", limit=limit))
		return listing.items

	async def find_course(self, course_id: int) -> Course | None:
		"""Any course record, including inactive ones."""
		return await self.db.get(Course, course_id)

	async def get_course(self, course_id: int) -> Course:
		course = await self.db.get(Course, course_id)
		if not course or not course.is_active:
			raise CatalogError("Course not found", status.HTTP_404_NOT_FOUND)
		return course

	async def get_courses(self, course_ids: set[int]) -> dict[int, Course]:
		if not course_ids:
			return {}
		result = await self.db.execute(select(Course).where(Course.id.in_(course_ids)))
		return {course.id: course for course in result.scalars().all()}
