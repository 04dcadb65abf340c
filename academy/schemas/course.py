from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..models import CourseLevel


CourseSort = Literal["newest", "popular"]


class CourseOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: int
	name: str
	description: str
	price: int
	image_url: str
	duration: str
	level: str
	instructor_name: str
	instructor_avatar: str
	lessons: int
	enrollment_count: int
	created_at: datetime
	updated_at: datetime


class EnrolledCourseOut(CourseOut):
	"""Course as seen by an enrolled student, including the meeting link."""

	meet_link: str | None = None


class CourseQuery(BaseModel):
	level: CourseLevel | None = None
	search: str | None = Field(default=None, max_length=255)
	sort: CourseSort = "newest"
	limit: int = Field(default=20, ge=1, le=100)
	cursor: str | None = None


class CoursePage(BaseModel):
	items: list[CourseOut]
	next_cursor: str | None = None
