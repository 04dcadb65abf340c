from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class PaymentStatusEnum(str, PyEnum):
	PENDING = "pending"
	COMPLETED = "completed"
	FAILED = "failed"


def _new_enrollment_id() -> str:
	return uuid.uuid4().hex


class Enrollment(Base):
	__tablename__ = "enrollments"

	id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_enrollment_id)
	user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
	# not a foreign key: the course may be edited or removed after enrollment
	course_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

	# point-in-time snapshot, never refreshed
	user_name: Mapped[str] = mapped_column(String(255), nullable=False)
	user_email: Mapped[str] = mapped_column(String(320), nullable=False)
	user_phone: Mapped[str] = mapped_column(String(32), nullable=False)
	course_name: Mapped[str] = mapped_column(String(255), nullable=False)
	course_price: Mapped[int] = mapped_column(Integer, nullable=False)

	order_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
	payment_id: Mapped[str] = mapped_column(String(128), nullable=False, default="")
	payment_status: Mapped[str] = mapped_column(
		String(16), nullable=False, default=PaymentStatusEnum.PENDING.value, index=True
	)
	failure_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
	invoice_path: Mapped[str | None] = mapped_column(String(512), nullable=True)

	enrolled_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
	)
	updated_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
	)
