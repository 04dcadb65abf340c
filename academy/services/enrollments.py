from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from fastapi import status
from sqlalchemy import exists, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models import Course, Enrollment, PaymentStatusEnum
from ..schemas import CheckoutRequest, EnrollmentContact, PaymentSuccessCallback
from ..security import SessionContext
from .catalog import CatalogError, CatalogService
from .invoices import InvoiceAttachment, InvoiceGenerator
from .notifications import DispatchSummary, NotificationDispatcher
from .payments import (
	OrderRequest,
	PaymentGateway,
	PaymentGatewayError,
	PaymentOrder,
	SimulatedGateway,
	build_receipt,
	to_minor_units,
)

LOGGER = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to process enrollment. Please try again later."
VERIFICATION_ERROR = "Payment verification failed. Please contact support."
FREE_PAYMENT_ID = "free"


class EnrollmentServiceError(Exception):
	def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


class EnrollmentTransitionError(Exception):
	"""The enrollment has already left the pending state."""


# Field sets for each kind of write. Nothing else touches an enrollment row.


@dataclass(frozen=True)
class PendingEnrollment:
	user_id: int
	course_id: int
	user_name: str
	user_email: str
	user_phone: str
	course_name: str
	course_price: int

	@classmethod
	def snapshot(cls, session: SessionContext, course: Course, contact: EnrollmentContact) -> "PendingEnrollment":
		return cls(
			user_id=session.user_id,
			course_id=course.id,
			user_name=contact.name.strip(),
			user_email=str(contact.email),
			user_phone=contact.phone.strip(),
			course_name=course.name,
			course_price=course.price,
		)


@dataclass(frozen=True)
class OrderAttachment:
	order_id: str


@dataclass(frozen=True)
class PaymentOutcome:
	status: PaymentStatusEnum
	payment_id: str = ""
	failure_reason: str | None = None

	@classmethod
	def completed(cls, payment_id: str) -> "PaymentOutcome":
		return cls(status=PaymentStatusEnum.COMPLETED, payment_id=payment_id)

	@classmethod
	def failed(cls, reason: str, payment_id: str = "") -> "PaymentOutcome":
		return cls(status=PaymentStatusEnum.FAILED, payment_id=payment_id, failure_reason=reason[:512])


@dataclass
class CheckoutResult:
	enrollment: Enrollment
	order: PaymentOrder | None = None
	description: str = ""


@dataclass
class FinalizedEnrollment:
	enrollment: Enrollment
	invoice_path: str | None = None
	notifications: DispatchSummary | None = None
	follow_up_errors: list[str] = field(default_factory=list)


class EnrollmentRepository:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def create(self, fields: PendingEnrollment) -> Enrollment:
		enrollment = Enrollment(
			user_id=fields.user_id,
			course_id=fields.course_id,
			user_name=fields.user_name,
			user_email=fields.user_email,
			user_phone=fields.user_phone,
			course_name=fields.course_name,
			course_price=fields.course_price,
			payment_id="",
			payment_status=PaymentStatusEnum.PENDING.value,
		)
		self.db.add(enrollment)
		await self.db.commit()
		await self.db.refresh(enrollment)
		return enrollment

	async def get(self, enrollment_id: str) -> Enrollment | None:
		return await self.db.get(Enrollment, enrollment_id, populate_existing=True)

	async def get_by_order(self, order_id: str) -> Enrollment | None:
		stmt = select(Enrollment).where(Enrollment.order_id == order_id)
		return await self.db.scalar(stmt)

	async def attach_order(self, enrollment_id: str, attachment: OrderAttachment) -> Enrollment:
		stmt = (
			update(Enrollment)
			.where(
				Enrollment.id == enrollment_id,
				Enrollment.payment_status == PaymentStatusEnum.PENDING.value,
			)
			.values(order_id=attachment.order_id)
		)
		result = await self.db.execute(stmt)
		if result.rowcount != 1:
			await self.db.rollback()
			raise EnrollmentTransitionError(enrollment_id)
		await self.db.commit()
		return await self.get(enrollment_id)

	async def apply_outcome(self, enrollment_id: str, outcome: PaymentOutcome) -> Enrollment:
		"""Move a pending enrollment to its terminal status.

		The row is matched on ``payment_status == 'pending'`` so two racing
		finalizations cannot both win; the loser gets EnrollmentTransitionError.
		A completion also bumps the course's enrollment counter in the same
		transaction.
		"""
		values: dict[str, object] = {
			"payment_status": outcome.status.value,
			"payment_id": outcome.payment_id,
		}
		if outcome.failure_reason is not None:
			values["failure_reason"] = outcome.failure_reason

		stmt = (
			update(Enrollment)
			.where(
				Enrollment.id == enrollment_id,
				Enrollment.payment_status == PaymentStatusEnum.PENDING.value,
			)
			.values(**values)
			.returning(Enrollment.course_id)
		)
		course_id = (await self.db.execute(stmt)).scalar_one_or_none()
		if course_id is None:
			await self.db.rollback()
			raise EnrollmentTransitionError(enrollment_id)

		if outcome.status is PaymentStatusEnum.COMPLETED:
			await self.db.execute(
				update(Course)
				.where(Course.id == course_id)
				.values(enrollment_count=Course.enrollment_count + 1)
			)
		await self.db.commit()
		return await self.get(enrollment_id)

	async def attach_invoice(self, enrollment_id: str, attachment: InvoiceAttachment) -> None:
		stmt = (
			update(Enrollment)
			.where(
				Enrollment.id == enrollment_id,
				Enrollment.payment_status == PaymentStatusEnum.COMPLETED.value,
			)
			.values(invoice_path=attachment.invoice_path)
		)
		await self.db.execute(stmt)
		await self.db.commit()

	async def has_completed(self, user_id: int, course_id: int) -> bool:
		stmt = select(
			exists().where(
				Enrollment.user_id == user_id,
				Enrollment.course_id == course_id,
				Enrollment.payment_status == PaymentStatusEnum.COMPLETED.value,
			)
		)
		return bool(await self.db.scalar(stmt))

	async def list_completed_for_user(self, user_id: int) -> list[Enrollment]:
		stmt = (
			select(Enrollment)
			.where(
				Enrollment.user_id == user_id,
				Enrollment.payment_status == PaymentStatusEnum.COMPLETED.value,
			)
			.order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
		)
		result = await self.db.execute(stmt)
		return list(result.scalars().all())


class EnrollmentService:
	"""Runs the checkout workflow for one request.

	Order of work: pending record, gateway order, (client widget), signature
	check, terminal status, then invoice and notifications. Invoice and
	notification failures are logged and never undo a completed payment.
	"""

	def __init__(
		self,
		db: AsyncSession,
		*,
		gateway: PaymentGateway,
		invoices: InvoiceGenerator,
		notifications: NotificationDispatcher,
	):
		self.db = db
		self.repository = EnrollmentRepository(db)
		self.catalog = CatalogService(db)
		self.gateway = gateway
		self.invoices = invoices
		self.notifications = notifications

	async def start_checkout(self, session: SessionContext, request: CheckoutRequest) -> CheckoutResult:
		try:
			course = await self.catalog.get_course(request.course_id)
		except CatalogError as exc:
			raise EnrollmentServiceError(exc.message, exc.status_code) from exc

		course_id = course.id
		if await self.repository.has_completed(session.user_id, course_id):
			raise EnrollmentServiceError("Already enrolled in this course", status.HTTP_409_CONFLICT)

		try:
			enrollment = await self.repository.create(PendingEnrollment.snapshot(session, course, request))
		except SQLAlchemyError as exc:
			await self.db.rollback()
			LOGGER.exception("Could not create enrollment for user %s, course %s", session.user_id, course_id)
			raise EnrollmentServiceError(GENERIC_ERROR, status.HTTP_503_SERVICE_UNAVAILABLE) from exc
		enrollment_id = enrollment.id

		description = f"Enrollment for {course.name}"
		if course.price == 0:
			finalized = await self._complete(enrollment, FREE_PAYMENT_ID)
			return CheckoutResult(enrollment=finalized.enrollment, description=description)

		settings = get_settings()
		order_request = OrderRequest(
			amount=to_minor_units(course.price),
			currency=settings.currency,
			receipt=build_receipt(session.user_id, course.id),
			notes={
				"userId": str(session.user_id),
				"courseId": str(course.id),
				"courseName": course.name,
				"enrollmentId": enrollment.id,
			},
		)
		try:
			order = await self.gateway.create_order(order_request)
			enrollment = await self.repository.attach_order(enrollment_id, OrderAttachment(order.order_id))
		except PaymentGatewayError as exc:
			LOGGER.error("Order creation failed for enrollment %s: %s", enrollment_id, exc)
			await self._mark_failed(enrollment_id, "Payment order could not be created")
			raise EnrollmentServiceError(GENERIC_ERROR, status.HTTP_502_BAD_GATEWAY) from exc
		except (SQLAlchemyError, EnrollmentTransitionError) as exc:
			await self.db.rollback()
			LOGGER.exception("Could not store order for enrollment %s", enrollment_id)
			await self._mark_failed(enrollment_id, "Payment order could not be stored")
			raise EnrollmentServiceError(GENERIC_ERROR, status.HTTP_503_SERVICE_UNAVAILABLE) from exc

		LOGGER.info("Checkout started: enrollment %s, order %s", enrollment.id, order.order_id)
		return CheckoutResult(enrollment=enrollment, order=order, description=description)

	async def confirm_payment(
		self,
		session: SessionContext,
		enrollment_id: str,
		callback: PaymentSuccessCallback,
	) -> FinalizedEnrollment:
		enrollment = await self.get_for_session(session, enrollment_id)
		return await self._confirm(enrollment, callback.payment_id, callback.order_id, callback.signature)

	async def report_failure(
		self,
		session: SessionContext,
		enrollment_id: str,
		reason: str,
	) -> Enrollment:
		enrollment = await self.get_for_session(session, enrollment_id)
		self._ensure_pending(enrollment)
		try:
			enrollment = await self.repository.apply_outcome(enrollment.id, PaymentOutcome.failed(reason))
		except EnrollmentTransitionError as exc:
			raise EnrollmentServiceError("Enrollment is already finalized", status.HTTP_409_CONFLICT) from exc
		LOGGER.info("Enrollment %s failed: %s", enrollment.id, reason)
		return enrollment

	async def simulate_success(self, session: SessionContext, enrollment_id: str) -> FinalizedEnrollment:
		if not isinstance(self.gateway, SimulatedGateway):
			raise EnrollmentServiceError("Not found", status.HTTP_404_NOT_FOUND)
		enrollment = await self.get_for_session(session, enrollment_id)
		if not enrollment.order_id:
			raise EnrollmentServiceError("Enrollment has no payment order", status.HTTP_409_CONFLICT)
		payment_id = f"pay_sim_{uuid.uuid4().hex[:14]}"
		signature = self.gateway.sign(enrollment.order_id, payment_id)
		return await self._confirm(enrollment, payment_id, enrollment.order_id, signature)

	async def handle_gateway_capture(self, order_id: str, payment_id: str) -> FinalizedEnrollment | None:
		"""Webhook path; returns None when there is nothing left to do."""
		enrollment = await self.repository.get_by_order(order_id)
		if not enrollment or enrollment.payment_status != PaymentStatusEnum.PENDING.value:
			return None
		try:
			return await self._complete(enrollment, payment_id)
		except EnrollmentTransitionError:
			return None

	async def handle_gateway_failure(self, order_id: str, payment_id: str, reason: str) -> Enrollment | None:
		enrollment = await self.repository.get_by_order(order_id)
		if not enrollment or enrollment.payment_status != PaymentStatusEnum.PENDING.value:
			return None
		try:
			return await self.repository.apply_outcome(enrollment.id, PaymentOutcome.failed(reason, payment_id))
		except EnrollmentTransitionError:
			return None

	async def get_for_session(self, session: SessionContext, enrollment_id: str) -> Enrollment:
		enrollment = await self.repository.get(enrollment_id)
		if not enrollment or (enrollment.user_id != session.user_id and not session.is_admin):
			raise EnrollmentServiceError("Enrollment not found", status.HTTP_404_NOT_FOUND)
		return enrollment

	async def list_for_session(self, session: SessionContext) -> list[tuple[Enrollment, Course | None]]:
		enrollments = await self.repository.list_completed_for_user(session.user_id)
		courses = await self.catalog.get_courses({e.course_id for e in enrollments})
		return [(e, courses.get(e.course_id)) for e in enrollments]

	async def is_enrolled(self, session: SessionContext, course_id: int) -> bool:
		return await self.repository.has_completed(session.user_id, course_id)

	def _ensure_pending(self, enrollment: Enrollment) -> None:
		if enrollment.payment_status != PaymentStatusEnum.PENDING.value:
			raise EnrollmentServiceError(
				f"Enrollment is already {enrollment.payment_status}", status.HTTP_409_CONFLICT
			)

	async def _confirm(
		self,
		enrollment: Enrollment,
		payment_id: str,
		order_id: str,
		signature: str,
	) -> FinalizedEnrollment:
		self._ensure_pending(enrollment)

		verified = False
		if enrollment.order_id and order_id == enrollment.order_id:
			try:
				verified = await self.gateway.verify_payment(
					order_id=order_id, payment_id=payment_id, signature=signature
				)
			except PaymentGatewayError as exc:
				LOGGER.error("Signature check failed for enrollment %s: %s", enrollment.id, exc)
				await self._mark_failed(enrollment.id, "Payment verification error", payment_id)
				raise EnrollmentServiceError(VERIFICATION_ERROR, status.HTTP_502_BAD_GATEWAY) from exc
		else:
			LOGGER.warning(
				"Order mismatch for enrollment %s: expected %s, got %s",
				enrollment.id,
				enrollment.order_id,
				order_id,
			)

		if not verified:
			await self._mark_failed(enrollment.id, "Payment verification failed", payment_id)
			raise EnrollmentServiceError(VERIFICATION_ERROR, status.HTTP_400_BAD_REQUEST)

		enrollment_id = enrollment.id
		try:
			return await self._complete(enrollment, payment_id)
		except EnrollmentTransitionError as exc:
			current = await self.repository.get(enrollment_id)
			if current and current.payment_status == PaymentStatusEnum.COMPLETED.value and current.payment_id == payment_id:
				# already completed by the webhook for this very payment
				return FinalizedEnrollment(enrollment=current, invoice_path=current.invoice_path)
			raise EnrollmentServiceError("Enrollment is already finalized", status.HTTP_409_CONFLICT) from exc

	async def _complete(self, enrollment: Enrollment, payment_id: str) -> FinalizedEnrollment:
		enrollment_id = enrollment.id
		try:
			enrollment = await self.repository.apply_outcome(enrollment_id, PaymentOutcome.completed(payment_id))
		except SQLAlchemyError as exc:
			await self.db.rollback()
			LOGGER.exception("Could not complete enrollment %s", enrollment_id)
			await self._mark_failed(enrollment_id, "Enrollment could not be completed", payment_id)
			raise EnrollmentServiceError(GENERIC_ERROR, status.HTTP_503_SERVICE_UNAVAILABLE) from exc

		LOGGER.info("Enrollment %s completed with payment %s", enrollment_id, payment_id)
		return await self._run_follow_ups(enrollment)

	async def _run_follow_ups(self, enrollment: Enrollment) -> FinalizedEnrollment:
		enrollment_id = enrollment.id
		course_id = enrollment.course_id
		# detached so a rollback below cannot expire the loaded state
		self.db.expunge(enrollment)
		result = FinalizedEnrollment(enrollment=enrollment)

		try:
			result.invoice_path = await self.invoices.publish(enrollment, self.repository)
			enrollment.invoice_path = result.invoice_path
		except Exception as exc:
			await self.db.rollback()
			LOGGER.exception("Invoice generation failed for enrollment %s", enrollment_id)
			result.follow_up_errors.append(f"invoice: {exc}")

		try:
			course = await self.catalog.find_course(course_id)
		except SQLAlchemyError as exc:
			await self.db.rollback()
			LOGGER.exception("Could not load course %s for enrollment %s", course_id, enrollment_id)
			result.follow_up_errors.append(f"notifications: {exc}")
			course = None
		else:
			if course is None:
				LOGGER.warning("Course %s is gone, notifications for %s skipped", course_id, enrollment_id)
				result.follow_up_errors.append("notifications: course not found")

		if course is not None:
			try:
				result.notifications = await self.notifications.dispatch_enrollment(enrollment, course)
			except Exception as exc:
				LOGGER.exception("Notification dispatch failed for enrollment %s", enrollment_id)
				result.follow_up_errors.append(f"notifications: {exc}")

		try:
			refreshed = await self.repository.get(enrollment_id)
		except SQLAlchemyError:
			await self.db.rollback()
			LOGGER.exception("Could not reload enrollment %s", enrollment_id)
		else:
			if refreshed is not None:
				result.enrollment = refreshed
		return result

	async def _mark_failed(self, enrollment_id: str, reason: str, payment_id: str = "") -> None:
		try:
			await self.repository.apply_outcome(enrollment_id, PaymentOutcome.failed(reason, payment_id))
		except EnrollmentTransitionError:
			LOGGER.warning("Enrollment %s already finalized, not marking failed", enrollment_id)
		except SQLAlchemyError:
			await self.db.rollback()
			LOGGER.exception("Could not mark enrollment %s as failed", enrollment_id)
