from __future__ import annotations

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class UserRole(str, PyEnum):
	USER = "user"
	ADMIN = "admin"


class AuthProvider(str, PyEnum):
	PASSWORD = "password"
	GOOGLE = "google"


class User(Base):
	__tablename__ = "users"

	id: Mapped[int] = mapped_column(Integer, primary_key=True)
	email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
	display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
	phone_number: Mapped[str] = mapped_column(String(32), nullable=False, default="")
	hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
	auth_provider: Mapped[str] = mapped_column(String(16), nullable=False, default=AuthProvider.PASSWORD.value)
	role: Mapped[str] = mapped_column(String(16), nullable=False, default=UserRole.USER.value)
	is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
	created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
	updated_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
	)
	last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
