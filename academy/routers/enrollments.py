from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import RedirectResponse

from ..config import get_settings
from ..dependencies import get_enrollment_service
from ..models import PaymentStatusEnum
from ..schemas import (
	CheckoutRequest,
	CheckoutResponse,
	DispatchSummaryOut,
	EnrolledCourseOut,
	EnrollmentConfirmation,
	EnrollmentOut,
	EnrollmentStatusOut,
	EnrollmentWithCourse,
	PaymentFailureCallback,
	PaymentOrderOut,
	PaymentSuccessCallback,
)
from ..schemas.enrollment import CheckoutPrefill
from ..security import SessionContext, get_current_session
from ..services import EnrollmentService, EnrollmentServiceError, InvoiceError
from ..services.enrollments import CheckoutResult, FinalizedEnrollment
from ..services.invoices import PDF_CONTENT_TYPE, invoice_filename
from ..storage import StorageError

LOGGER = logging.getLogger(__name__)

CANCELLED_REASON = "Payment cancelled by user"

router = APIRouter(prefix="/api/enrollments", tags=["enrollments"])


def _handle_error(exc: EnrollmentServiceError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.message)


def _checkout_response(result: CheckoutResult, request: CheckoutRequest) -> CheckoutResponse:
	order = None
	if result.order is not None:
		order = PaymentOrderOut(
			key=result.order.key,
			order_id=result.order.order_id,
			amount=result.order.amount,
			currency=result.order.currency,
			name=get_settings().brand_name,
			description=result.description,
			prefill=CheckoutPrefill(name=request.name, email=str(request.email), contact=request.phone),
		)
	return CheckoutResponse(
		enrollment_id=result.enrollment.id,
		payment_status=result.enrollment.payment_status,
		order=order,
	)


def confirmation_response(result: FinalizedEnrollment) -> EnrollmentConfirmation:
	return EnrollmentConfirmation(
		enrollment=EnrollmentOut.model_validate(result.enrollment),
		invoice_path=result.invoice_path,
		notifications=(
			DispatchSummaryOut.model_validate(result.notifications) if result.notifications else None
		),
	)


@router.post("/", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def start_checkout(
	data: CheckoutRequest,
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> CheckoutResponse:
	try:
		result = await service.start_checkout(session, data)
	except EnrollmentServiceError as exc:
		raise _handle_error(exc)
	return _checkout_response(result, data)


@router.get("/me", response_model=List[EnrollmentWithCourse])
async def my_enrollments(
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> List[EnrollmentWithCourse]:
	rows = await service.list_for_session(session)
	return [
		EnrollmentWithCourse(
			**EnrollmentOut.model_validate(enrollment).model_dump(),
			course=EnrolledCourseOut.model_validate(course) if course else None,
		)
		for enrollment, course in rows
	]


@router.get("/me/courses/{course_id}", response_model=EnrollmentStatusOut)
async def my_course_status(
	course_id: int,
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentStatusOut:
	return EnrollmentStatusOut(course_id=course_id, enrolled=await service.is_enrolled(session, course_id))


@router.get("/{enrollment_id}", response_model=EnrollmentOut)
async def get_enrollment(
	enrollment_id: str,
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentOut:
	try:
		return await service.get_for_session(session, enrollment_id)
	except EnrollmentServiceError as exc:
		raise _handle_error(exc)


@router.post("/{enrollment_id}/payment/success", response_model=EnrollmentConfirmation)
async def payment_success(
	enrollment_id: str,
	callback: PaymentSuccessCallback,
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentConfirmation:
	try:
		result = await service.confirm_payment(session, enrollment_id, callback)
	except EnrollmentServiceError as exc:
		raise _handle_error(exc)
	return confirmation_response(result)


@router.post("/{enrollment_id}/payment/failure", response_model=EnrollmentOut)
async def payment_failure(
	enrollment_id: str,
	callback: PaymentFailureCallback,
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentOut:
	reason = f"{callback.reason} ({callback.code})" if callback.code else callback.reason
	try:
		return await service.report_failure(session, enrollment_id, reason)
	except EnrollmentServiceError as exc:
		raise _handle_error(exc)


@router.post("/{enrollment_id}/payment/cancel", response_model=EnrollmentOut)
async def payment_cancel(
	enrollment_id: str,
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentOut:
	try:
		return await service.report_failure(session, enrollment_id, CANCELLED_REASON)
	except EnrollmentServiceError as exc:
		raise _handle_error(exc)


@router.get("/{enrollment_id}/invoice")
async def download_invoice(
	enrollment_id: str,
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> Response:
	try:
		enrollment = await service.get_for_session(session, enrollment_id)
	except EnrollmentServiceError as exc:
		raise _handle_error(exc)
	if enrollment.payment_status != PaymentStatusEnum.COMPLETED.value:
		raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not available")

	try:
		url = await service.invoices.download_url(enrollment)
	except StorageError as exc:
		LOGGER.warning("Presigned URL for enrollment %s failed, rendering instead: %s", enrollment.id, exc)
		url = None
	if url:
		return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

	try:
		content = service.invoices.render(enrollment)
	except InvoiceError as exc:
		LOGGER.exception("Invoice rendering failed for enrollment %s", enrollment.id)
		raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Invoice unavailable") from exc
	return Response(
		content=content,
		media_type=PDF_CONTENT_TYPE,
		headers={"Content-Disposition": f'attachment; filename="{invoice_filename(enrollment.id)}"'},
	)
