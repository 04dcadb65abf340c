from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

import httpx

from ..config import Settings, get_settings
from ..models import Course, Enrollment

LOGGER = logging.getLogger(__name__)

EMAIL_PATH = "/send-email"
WHATSAPP_PATH = "/send-whatsapp"


class NotificationChannel(str, Enum):
	USER_EMAIL = "user_email"
	USER_WHATSAPP = "user_whatsapp"
	ADMIN_EMAIL = "admin_email"
	ADMIN_WHATSAPP = "admin_whatsapp"
	PASSWORD_RESET = "password_reset"


class DeliveryStatus(str, Enum):
	SENT = "sent"
	FAILED = "failed"
	SKIPPED = "skipped"


class NotificationDeliveryError(Exception):
	"""The notifications service did not acknowledge a message."""


@dataclass(frozen=True)
class NotificationRequest:
	channel: NotificationChannel
	to: str
	template_id: str
	data: dict[str, Any]
	subject: str | None = None

	@property
	def is_email(self) -> bool:
		return self.subject is not None

	def to_payload(self) -> dict[str, Any]:
		if self.is_email:
			return {
				"to": self.to,
				"subject": self.subject,
				"templateId": self.template_id,
				"dynamicTemplateData": self.data,
			}
		return {"to": self.to, "templateName": self.template_id, "templateData": self.data}


@dataclass(frozen=True)
class ChannelOutcome:
	channel: str
	recipient: str
	status: str
	message_id: str | None = None
	error: str | None = None


@dataclass(frozen=True)
class DispatchSummary:
	outcomes: list[ChannelOutcome] = field(default_factory=list)

	@property
	def all_failed(self) -> bool:
		return bool(self.outcomes) and all(o.status == DeliveryStatus.FAILED.value for o in self.outcomes)

	@property
	def failed_channels(self) -> list[str]:
		return [o.channel for o in self.outcomes if o.status == DeliveryStatus.FAILED.value]


def build_enrollment_notifications(
	enrollment: Enrollment,
	course: Course,
	*,
	admin_email: str,
	admin_phone: str,
	today: date | None = None,
) -> list[NotificationRequest]:
	enrollment_date = (today or date.today()).isoformat()
	return [
		NotificationRequest(
			channel=NotificationChannel.USER_EMAIL,
			to=enrollment.user_email,
			subject=f"Your Enrollment in {course.name} is Confirmed!",
			template_id="enrollment-confirmation",
			data={
				"userName": enrollment.user_name,
				"courseName": course.name,
				"amount": enrollment.course_price,
				"enrollmentId": enrollment.id,
				"paymentId": enrollment.payment_id,
				"enrollmentDate": enrollment_date,
			},
		),
		NotificationRequest(
			channel=NotificationChannel.USER_WHATSAPP,
			to=enrollment.user_phone,
			template_id="enrollment_confirmation",
			data={
				"userName": enrollment.user_name,
				"courseName": course.name,
				"enrollmentId": enrollment.id,
			},
		),
		NotificationRequest(
			channel=NotificationChannel.ADMIN_EMAIL,
			to=admin_email,
			subject=f"New Enrollment: {course.name}",
			template_id="admin-enrollment-notification",
			data={
				"userName": enrollment.user_name,
				"userEmail": enrollment.user_email,
				"userPhone": enrollment.user_phone,
				"courseName": course.name,
				"amount": enrollment.course_price,
				"enrollmentId": enrollment.id,
				"paymentId": enrollment.payment_id,
				"enrollmentDate": enrollment_date,
			},
		),
		NotificationRequest(
			channel=NotificationChannel.ADMIN_WHATSAPP,
			to=admin_phone,
			template_id="admin_enrollment_notification",
			data={
				"userName": enrollment.user_name,
				"courseName": course.name,
				"enrollmentId": enrollment.id,
				"amount": enrollment.course_price,
			},
		),
	]


class NotificationDispatcher:
	"""Sends messages through the notifications service, one outcome per channel.

	Sends run concurrently, limited by ``notifications_max_concurrency``.
	A failed channel never cancels the others; nothing is retried.
	"""

	def __init__(
		self,
		settings: Settings | None = None,
		*,
		transport: httpx.AsyncBaseTransport | None = None,
	) -> None:
		self._settings = settings or get_settings()
		self._transport = transport

	@property
	def configured(self) -> bool:
		return bool(self._settings.notifications_service_url)

	def _client(self) -> httpx.AsyncClient:
		headers: dict[str, str] = {}
		if self._settings.notifications_internal_token:
			headers["X-Internal-Token"] = self._settings.notifications_internal_token
		return httpx.AsyncClient(
			base_url=(self._settings.notifications_service_url or "").rstrip("/"),
			headers=headers,
			timeout=self._settings.notifications_timeout_seconds,
			transport=self._transport,
		)

	async def _post(self, client: httpx.AsyncClient, request: NotificationRequest) -> str | None:
		path = EMAIL_PATH if request.is_email else WHATSAPP_PATH
		response = await client.post(path, json=request.to_payload())
		if not response.is_success:
			raise NotificationDeliveryError(f"Notifications service error ({response.status_code})")
		try:
			body = response.json() if response.content else {}
		except ValueError as exc:
			raise NotificationDeliveryError("Invalid response from notifications service") from exc
		if not isinstance(body, dict):
			raise NotificationDeliveryError("Invalid response from notifications service")
		if not body.get("success", False):
			raise NotificationDeliveryError(body.get("error") or "Message was not accepted")
		message_id = body.get("messageId")
		return str(message_id) if message_id is not None else None

	async def _deliver(
		self,
		client: httpx.AsyncClient,
		semaphore: asyncio.Semaphore,
		request: NotificationRequest,
	) -> ChannelOutcome:
		async with semaphore:
			try:
				message_id = await self._post(client, request)
			except (httpx.HTTPError, NotificationDeliveryError) as exc:
				LOGGER.warning("Notification %s to %s failed: %s", request.channel.value, request.to, exc)
				return ChannelOutcome(
					channel=request.channel.value,
					recipient=request.to,
					status=DeliveryStatus.FAILED.value,
					error=str(exc),
				)
		return ChannelOutcome(
			channel=request.channel.value,
			recipient=request.to,
			status=DeliveryStatus.SENT.value,
			message_id=message_id,
		)

	async def dispatch(self, requests: list[NotificationRequest]) -> DispatchSummary:
		if not self.configured:
			LOGGER.warning("Notifications service is not configured, skipping %d message(s)", len(requests))
			return DispatchSummary(
				outcomes=[
					ChannelOutcome(
						channel=r.channel.value,
						recipient=r.to,
						status=DeliveryStatus.SKIPPED.value,
						error="Notifications service is not configured",
					)
					for r in requests
				]
			)

		semaphore = asyncio.Semaphore(max(1, self._settings.notifications_max_concurrency))
		async with self._client() as client:
			outcomes = await asyncio.gather(*(self._deliver(client, semaphore, r) for r in requests))
		return DispatchSummary(outcomes=list(outcomes))

	async def dispatch_enrollment(self, enrollment: Enrollment, course: Course) -> DispatchSummary:
		requests = build_enrollment_notifications(
			enrollment,
			course,
			admin_email=self._settings.admin_email,
			admin_phone=self._settings.admin_phone,
		)
		summary = await self.dispatch(requests)
		if summary.all_failed:
			LOGGER.error("All enrollment notifications failed for %s", enrollment.id)
		elif summary.failed_channels:
			LOGGER.warning(
				"Enrollment %s notifications partially failed: %s",
				enrollment.id,
				", ".join(summary.failed_channels),
			)
		return summary

	async def send_password_reset(self, *, email: str, name: str, token: str) -> ChannelOutcome:
		request = NotificationRequest(
			channel=NotificationChannel.PASSWORD_RESET,
			to=email,
			subject=f"Reset your {self._settings.brand_name} password",
			template_id="password-reset",
			data={
				"userName": name,
				"resetToken": token,
				"expiresInMinutes": self._settings.password_reset_expire_minutes,
			},
		)
		summary = await self.dispatch([request])
		return summary.outcomes[0]


def get_notification_dispatcher() -> NotificationDispatcher:
	return NotificationDispatcher()
