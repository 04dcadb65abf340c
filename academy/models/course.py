from __future__ import annotations

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class CourseLevel(str, PyEnum):
	BEGINNER = "Beginner"
	INTERMEDIATE = "Intermediate"
	ADVANCED = "Advanced"
	ALL_LEVELS = "All Levels"


class Course(Base):
	__tablename__ = "courses"

	id: Mapped[int] = mapped_column(Integer, primary_key=True)
	name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
	description: Mapped[str] = mapped_column(Text, nullable=False, default="")
	price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
	image_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
	duration: Mapped[str] = mapped_column(String(64), nullable=False, default="")
	level: Mapped[str] = mapped_column(String(32), nullable=False, default=CourseLevel.ALL_LEVELS.value, index=True)
	meet_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
	instructor_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
	instructor_avatar: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
	lessons: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
	enrollment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
	is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
	created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
	updated_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
	)
