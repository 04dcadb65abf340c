from __future__ import annotations

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db
from .services import (
	AdminConsole,
	EnrollmentService,
	IdentityService,
	InvoiceGenerator,
	NotificationDispatcher,
	get_notification_dispatcher,
	get_payment_gateway,
)
from .services.payments import PaymentGateway
from .storage import StorageService, get_optional_storage


def get_invoice_generator(storage: StorageService | None = Depends(get_optional_storage)) -> InvoiceGenerator:
	return InvoiceGenerator(storage)


def get_tokeninfo_transport() -> httpx.AsyncBaseTransport | None:
	"""Transport for identity-provider calls; None means the default network transport."""
	return None


def get_enrollment_service(
	db: AsyncSession = Depends(get_db),
	gateway: PaymentGateway = Depends(get_payment_gateway),
	invoices: InvoiceGenerator = Depends(get_invoice_generator),
	notifications: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> EnrollmentService:
	return EnrollmentService(db, gateway=gateway, invoices=invoices, notifications=notifications)


def get_identity_service(
	db: AsyncSession = Depends(get_db),
	notifications: NotificationDispatcher = Depends(get_notification_dispatcher),
	transport: httpx.AsyncBaseTransport | None = Depends(get_tokeninfo_transport),
) -> IdentityService:
	return IdentityService(db, notifications=notifications, tokeninfo_transport=transport)


def get_admin_console(
	db: AsyncSession = Depends(get_db),
	notifications: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> AdminConsole:
	return AdminConsole(db, notifications=notifications)
