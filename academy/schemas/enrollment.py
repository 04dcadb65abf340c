from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from .course import EnrolledCourseOut

PHONE_PATTERN = r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$"


class EnrollmentContact(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	email: EmailStr
	phone: str = Field(pattern=PHONE_PATTERN)


class CheckoutRequest(EnrollmentContact):
	course_id: int = Field(gt=0)


class CheckoutPrefill(BaseModel):
	name: str
	email: str
	contact: str


class PaymentOrderOut(BaseModel):
	"""Everything the client-side checkout widget needs to open."""

	key: str
	order_id: str
	amount: int
	currency: str
	name: str
	description: str
	prefill: CheckoutPrefill


class CheckoutResponse(BaseModel):
	enrollment_id: str
	payment_status: str
	order: PaymentOrderOut | None = None


class PaymentSuccessCallback(BaseModel):
	payment_id: str = Field(
		min_length=1, validation_alias=AliasChoices("payment_id", "razorpay_payment_id")
	)
	order_id: str = Field(min_length=1, validation_alias=AliasChoices("order_id", "razorpay_order_id"))
	signature: str = Field(
		min_length=1, validation_alias=AliasChoices("signature", "razorpay_signature")
	)


class PaymentFailureCallback(BaseModel):
	reason: str = Field(default="Payment failed", max_length=512)
	code: str | None = Field(default=None, max_length=64)


class EnrollmentOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	user_id: int
	course_id: int
	user_name: str
	user_email: str
	user_phone: str
	course_name: str
	course_price: int
	order_id: str | None = None
	payment_id: str
	payment_status: str
	failure_reason: str | None = None
	invoice_path: str | None = None
	enrolled_at: datetime


class ChannelOutcomeOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	channel: str
	recipient: str
	status: str
	message_id: str | None = None
	error: str | None = None


class DispatchSummaryOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	outcomes: list[ChannelOutcomeOut]
	all_failed: bool


class EnrollmentConfirmation(BaseModel):
	enrollment: EnrollmentOut
	invoice_path: str | None = None
	notifications: DispatchSummaryOut | None = None


class EnrollmentWithCourse(EnrollmentOut):
	# current course record, looked up at read time
	course: EnrolledCourseOut | None = None


class EnrollmentStatusOut(BaseModel):
	course_id: int
	enrolled: bool
