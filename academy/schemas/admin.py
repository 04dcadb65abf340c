from pydantic import BaseModel, Field

from .enrollment import EnrollmentWithCourse


class AdminEnrollmentQuery(BaseModel):
	search: str | None = Field(default=None, max_length=255)
	limit: int = Field(default=50, ge=1, le=200)
	cursor: str | None = None


class AdminEnrollmentPage(BaseModel):
	items: list[EnrollmentWithCourse]
	next_cursor: str | None = None


class AdminStats(BaseModel):
	total_enrollments: int
	completed_enrollments: int
	total_revenue: int
	distinct_courses: int
