"""Invoice rendering and storage.

An invoice is a fixed single-page A4 document built from the enrollment's
snapshot fields (name, email, phone, course name and price captured at
enrollment time), so it always matches what the student paid even if the
course is edited later.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from fastapi.concurrency import run_in_threadpool
from fpdf import FPDF

from ..config import get_settings
from ..models import Enrollment, PaymentStatusEnum

if TYPE_CHECKING:
	from ..storage import StorageService
	from .enrollments import EnrollmentRepository

LOGGER = logging.getLogger(__name__)

SURCHARGE_RATE = Decimal("0.18")
CENTS = Decimal("0.01")
PDF_CONTENT_TYPE = "application/pdf"


class InvoiceError(Exception):
	"""Invoice could not be rendered or stored."""


@dataclass(frozen=True)
class InvoiceTotals:
	price: Decimal
	surcharge: Decimal
	total: Decimal


@dataclass(frozen=True)
class InvoiceAttachment:
	invoice_path: str


def compute_totals(price: int) -> InvoiceTotals:
	base = Decimal(price).quantize(CENTS)
	surcharge = (base * SURCHARGE_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)
	return InvoiceTotals(price=base, surcharge=surcharge, total=base + surcharge)


def invoice_number(enrollment_id: str) -> str:
	return f"INV-{enrollment_id[:8].upper()}"


def invoice_object_path(user_id: int, enrollment_id: str) -> str:
	return f"invoices/{user_id}/{enrollment_id}.pdf"


def invoice_filename(enrollment_id: str) -> str:
	return f"Invoice_{enrollment_id[:8]}.pdf"


def _latin1(value: str) -> str:
	# core PDF fonts only cover latin-1
	return value.encode("latin-1", "replace").decode("latin-1")


def _issue_date(enrollment: Enrollment) -> date:
	enrolled_at = enrollment.enrolled_at
	if isinstance(enrolled_at, datetime):
		return enrolled_at.date()
	return date.today()


def render_invoice(
	enrollment: Enrollment,
	*,
	brand_name: str,
	support_email: str,
	currency: str,
) -> bytes:
	totals = compute_totals(enrollment.course_price)

	def money(amount: Decimal) -> str:
		return f"{currency} {amount:.2f}"

	pdf = FPDF(orientation="P", unit="mm", format="A4")
	pdf.set_title(_latin1(f"Invoice for {enrollment.course_name}"))
	pdf.set_subject("Course Enrollment Invoice")
	pdf.set_author(_latin1(brand_name))
	pdf.set_keywords("invoice, course, enrollment")
	pdf.set_creator(_latin1(f"{brand_name} Platform"))
	pdf.set_auto_page_break(False)
	pdf.add_page()

	pdf.set_font("Helvetica", size=20)
	pdf.set_text_color(30, 64, 175)
	pdf.text(15, 20, _latin1(brand_name))

	pdf.set_font("Helvetica", size=16)
	pdf.set_text_color(0, 0, 0)
	pdf.text(15, 30, "INVOICE")

	pdf.set_font("Helvetica", size=10)
	pdf.text(15, 40, f"Invoice Number: {invoice_number(enrollment.id)}")
	pdf.text(15, 45, f"Date: {_issue_date(enrollment):%d %b %Y}")

	pdf.set_font("Helvetica", size=12)
	pdf.text(15, 55, "Bill To:")
	pdf.set_font("Helvetica", size=10)
	pdf.text(15, 60, _latin1(enrollment.user_name))
	pdf.text(15, 65, _latin1(enrollment.user_email))
	pdf.text(15, 70, _latin1(enrollment.user_phone))

	pdf.line(15, 80, 195, 80)
	pdf.text(15, 85, "Description")
	pdf.text(160, 85, "Amount")
	pdf.line(15, 90, 195, 90)

	pdf.text(15, 100, _latin1(enrollment.course_name))
	pdf.text(160, 100, money(totals.price))
	pdf.text(15, 110, "GST (18%)")
	pdf.text(160, 110, money(totals.surcharge))

	pdf.line(15, 120, 195, 120)
	pdf.set_font("Helvetica", size=12)
	pdf.text(15, 130, "Total")
	pdf.text(160, 130, money(totals.total))
	pdf.line(15, 135, 195, 135)

	pdf.set_font("Helvetica", size=10)
	pdf.text(15, 145, _latin1(f"Payment ID: {enrollment.payment_id}"))
	pdf.text(15, 150, "Payment Status: Completed")

	pdf.set_font("Helvetica", size=8)
	pdf.text(15, 170, "Thank you for your enrollment!")
	pdf.text(15, 175, _latin1(f"For any queries, please contact us at {support_email}"))
	pdf.text(15, 280, _latin1(f"(c) {brand_name}, {_issue_date(enrollment).year}"))

	return bytes(pdf.output())


class InvoiceGenerator:
	def __init__(self, storage: StorageService | None) -> None:
		self._storage = storage
		self._settings = get_settings()

	def render(self, enrollment: Enrollment) -> bytes:
		if enrollment.payment_status != PaymentStatusEnum.COMPLETED.value:
			raise InvoiceError("Invoices are only issued for completed enrollments")
		try:
			return render_invoice(
				enrollment,
				brand_name=self._settings.brand_name,
				support_email=self._settings.support_email,
				currency=self._settings.currency,
			)
		except Exception as exc:
			raise InvoiceError(f"Failed to render invoice for {enrollment.id}: {exc}") from exc

	async def publish(self, enrollment: Enrollment, repository: EnrollmentRepository) -> str:
		"""Render, upload (overwriting the same key) and record the invoice path."""
		if self._storage is None:
			raise InvoiceError("Invoice storage is not configured")

		content = self.render(enrollment)
		object_name = invoice_object_path(enrollment.user_id, enrollment.id)
		try:
			path = await run_in_threadpool(
				self._storage.upload_bytes, object_name, content, PDF_CONTENT_TYPE
			)
		except Exception as exc:
			raise InvoiceError(f"Failed to store invoice for {enrollment.id}: {exc}") from exc

		await repository.attach_invoice(enrollment.id, InvoiceAttachment(invoice_path=path))
		LOGGER.info("Invoice %s stored at %s", invoice_number(enrollment.id), path)
		return path

	async def download_url(self, enrollment: Enrollment) -> str | None:
		if self._storage is None or not enrollment.invoice_path:
			return None
		return await run_in_threadpool(self._storage.presigned_download_url, enrollment.invoice_path)
