from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ..dependencies import get_enrollment_service
from ..schemas import EnrollmentConfirmation
from ..security import SessionContext, get_current_session
from ..services import EnrollmentService, EnrollmentServiceError
from .enrollments import confirmation_response

LOGGER = logging.getLogger(__name__)

CAPTURE_EVENTS = {"payment.captured", "order.paid"}
FAILURE_EVENTS = {"payment.failed"}

router = APIRouter(prefix="/api/payments", tags=["payments"])


def _payment_entity(payload: dict[str, Any]) -> dict[str, Any]:
	return ((payload.get("payload") or {}).get("payment") or {}).get("entity") or {}


@router.post("/webhook")
async def gateway_webhook(
	request: Request,
	signature: str | None = Header(default=None, alias="X-Razorpay-Signature"),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> dict[str, str]:
	body = await request.body()
	if not service.gateway.verify_webhook(body, signature):
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")

	try:
		payload = json.loads(body)
	except ValueError:
		payload = None
	if not isinstance(payload, dict):
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

	event = payload.get("event")
	entity = _payment_entity(payload)
	order_id = entity.get("order_id")
	payment_id = entity.get("id") or ""
	if not order_id:
		return {"status": "ignored"}

	try:
		if event in CAPTURE_EVENTS:
			result = await service.handle_gateway_capture(order_id, payment_id)
		elif event in FAILURE_EVENTS:
			reason = entity.get("error_description") or "Payment failed"
			result = await service.handle_gateway_failure(order_id, payment_id, reason)
		else:
			return {"status": "ignored"}
	except EnrollmentServiceError as exc:
		LOGGER.error("Webhook %s for order %s failed: %s", event, order_id, exc.message)
		raise HTTPException(status_code=exc.status_code, detail=exc.message)

	if result is None:
		return {"status": "ignored"}
	LOGGER.info("Webhook %s applied to order %s", event, order_id)
	return {"status": "ok"}


@router.post("/simulate/{enrollment_id}/success", response_model=EnrollmentConfirmation)
async def simulate_success(
	enrollment_id: str,
	session: SessionContext = Depends(get_current_session),
	service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentConfirmation:
	try:
		result = await service.simulate_success(session, enrollment_id)
	except EnrollmentServiceError as exc:
		raise HTTPException(status_code=exc.status_code, detail=exc.message)
	return confirmation_response(result)
