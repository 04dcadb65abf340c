from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from academy.main import app
from academy.models import Course, Enrollment
from academy.services import CatalogService, EnrollmentRepository
from academy.storage import get_optional_storage

from .conftest import FakeStorage, auth_headers, create_course, create_user

pytestmark = pytest.mark.asyncio

CONTACT = {"name": "Priya Sharma", "email": "priya@englishmaster.in", "phone": "+919876543210"}


async def all_enrollments(session_factory) -> list[Enrollment]:
	async with session_factory() as session:
		result = await session.execute(select(Enrollment).order_by(Enrollment.enrolled_at))
		return list(result.scalars().all())


async def start_checkout(client, user, course_id: int):
	return await client.post(
		"/api/enrollments/",
		json={**CONTACT, "course_id": course_id},
		headers=auth_headers(user),
	)


def success_payload(gateway, order_id: str, payment_id: str = "pay_Q1w2e3r4t5") -> dict[str, str]:
	return {
		"razorpay_payment_id": payment_id,
		"razorpay_order_id": order_id,
		"razorpay_signature": gateway.sign(order_id, payment_id),
	}


async def test_checkout_creates_pending_enrollment_and_order(client, session_factory, student, course):
	response = await start_checkout(client, student, course.id)
	assert response.status_code == 201
	body = response.json()
	assert body["payment_status"] == "pending"
	order = body["order"]
	assert order["amount"] == 100000
	assert order["currency"] == "INR"
	assert order["order_id"].startswith("order_sim_")
	assert order["description"] == "Enrollment for Grammar Basics"
	assert order["prefill"] == {
		"name": "Priya Sharma",
		"email": "priya@englishmaster.in",
		"contact": "+919876543210",
	}

	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.id == body["enrollment_id"]
	assert enrollment.payment_status == "pending"
	assert enrollment.order_id == order["order_id"]
	assert enrollment.course_name == "Grammar Basics"
	assert enrollment.course_price == 1000


async def test_successful_payment_completes_with_invoice_and_notifications(
	client, session_factory, student, course, gateway, storage, notifications
):
	checkout = (await start_checkout(client, student, course.id)).json()
	enrollment_id = checkout["enrollment_id"]

	response = await client.post(
		f"/api/enrollments/{enrollment_id}/payment/success",
		json=success_payload(gateway, checkout["order"]["order_id"]),
		headers=auth_headers(student),
	)
	assert response.status_code == 200
	body = response.json()
	assert body["enrollment"]["payment_status"] == "completed"
	assert body["enrollment"]["payment_id"] == "pay_Q1w2e3r4t5"

	expected_path = f"invoices/{student.id}/{enrollment_id}.pdf"
	assert body["invoice_path"] == expected_path
	assert body["enrollment"]["invoice_path"] == expected_path
	assert storage.objects[expected_path].startswith(b"%PDF")

	outcomes = body["notifications"]["outcomes"]
	assert [o["status"] for o in outcomes] == ["sent"] * 4
	assert body["notifications"]["all_failed"] is False
	assert sorted(notifications.recipients()) == sorted(
		["priya@englishmaster.in", "+919876543210", "admin@englishmaster.in", "+919800000000"]
	)

	async with session_factory() as session:
		refreshed = await session.get(Course, course.id)
		assert refreshed.enrollment_count == 1


async def test_failure_callback_marks_failed_without_side_effects(
	client, session_factory, student, course, storage, notifications
):
	checkout = (await start_checkout(client, student, course.id)).json()

	response = await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/failure",
		json={"reason": "Card declined", "code": "BAD_REQUEST_ERROR"},
		headers=auth_headers(student),
	)
	assert response.status_code == 200
	assert response.json()["payment_status"] == "failed"
	assert response.json()["failure_reason"] == "Card declined (BAD_REQUEST_ERROR)"

	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.payment_status == "failed"
	assert enrollment.invoice_path is None
	assert storage.objects == {}
	assert notifications.calls == []


async def test_cancel_marks_failed(client, session_factory, student, course):
	checkout = (await start_checkout(client, student, course.id)).json()
	response = await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/cancel",
		headers=auth_headers(student),
	)
	assert response.status_code == 200
	assert response.json()["failure_reason"] == "Payment cancelled by user"


async def test_bad_signature_fails_enrollment(client, session_factory, student, course, notifications):
	checkout = (await start_checkout(client, student, course.id)).json()
	payload = {
		"payment_id": "pay_forged",
		"order_id": checkout["order"]["order_id"],
		"signature": "0" * 64,
	}

	response = await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/success",
		json=payload,
		headers=auth_headers(student),
	)
	assert response.status_code == 400
	assert response.json()["detail"] == "Payment verification failed. Please contact support."

	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.payment_status == "failed"
	assert notifications.calls == []


async def test_order_mismatch_fails_enrollment(client, session_factory, student, course, gateway):
	checkout = (await start_checkout(client, student, course.id)).json()

	response = await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/success",
		json=success_payload(gateway, "order_someone_else"),
		headers=auth_headers(student),
	)
	assert response.status_code == 400
	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.payment_status == "failed"


async def test_terminal_enrollment_cannot_transition_again(client, student, course, gateway):
	checkout = (await start_checkout(client, student, course.id)).json()
	enrollment_id = checkout["enrollment_id"]
	await client.post(
		f"/api/enrollments/{enrollment_id}/payment/failure",
		json={"reason": "Payment failed"},
		headers=auth_headers(student),
	)

	response = await client.post(
		f"/api/enrollments/{enrollment_id}/payment/success",
		json=success_payload(gateway, checkout["order"]["order_id"]),
		headers=auth_headers(student),
	)
	assert response.status_code == 409

	response = await client.post(
		f"/api/enrollments/{enrollment_id}/payment/cancel",
		headers=auth_headers(student),
	)
	assert response.status_code == 409


async def test_concurrent_attempts_create_independent_records(client, session_factory, student, course):
	first = (await start_checkout(client, student, course.id)).json()
	second = (await start_checkout(client, student, course.id)).json()

	assert first["enrollment_id"] != second["enrollment_id"]
	assert first["order"]["order_id"] != second["order"]["order_id"]
	enrollments = await all_enrollments(session_factory)
	assert len(enrollments) == 2
	assert {e.payment_status for e in enrollments} == {"pending"}


async def test_checkout_rejected_once_course_is_completed(client, student, course, gateway):
	checkout = (await start_checkout(client, student, course.id)).json()
	await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/success",
		json=success_payload(gateway, checkout["order"]["order_id"]),
		headers=auth_headers(student),
	)

	response = await start_checkout(client, student, course.id)
	assert response.status_code == 409


async def test_invoice_failure_keeps_enrollment_completed(
	client, session_factory, student, course, gateway, notifications
):
	app.dependency_overrides[get_optional_storage] = lambda: FakeStorage(fail=True)
	checkout = (await start_checkout(client, student, course.id)).json()

	response = await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/success",
		json=success_payload(gateway, checkout["order"]["order_id"]),
		headers=auth_headers(student),
	)
	assert response.status_code == 200
	assert response.json()["invoice_path"] is None
	assert response.json()["enrollment"]["payment_status"] == "completed"
	assert len(notifications.calls) == 4

	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.payment_status == "completed"
	assert enrollment.invoice_path is None


async def test_notification_failure_keeps_enrollment_completed(
	client, session_factory, student, course, gateway, notifications
):
	notifications.fail_paths = {"/send-email", "/send-whatsapp"}
	checkout = (await start_checkout(client, student, course.id)).json()

	response = await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/success",
		json=success_payload(gateway, checkout["order"]["order_id"]),
		headers=auth_headers(student),
	)
	assert response.status_code == 200
	assert response.json()["notifications"]["all_failed"] is True
	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.payment_status == "completed"


async def test_course_lookup_error_after_payment_keeps_enrollment_completed(
	client, session_factory, student, course, gateway, notifications, monkeypatch
):
	checkout = (await start_checkout(client, student, course.id)).json()

	async def broken_find_course(self, course_id):
		raise SQLAlchemyError("connection reset")

	monkeypatch.setattr(CatalogService, "find_course", broken_find_course)
	response = await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/success",
		json=success_payload(gateway, checkout["order"]["order_id"]),
		headers=auth_headers(student),
	)
	assert response.status_code == 200
	assert response.json()["enrollment"]["payment_status"] == "completed"
	assert response.json()["notifications"] is None
	assert notifications.calls == []

	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.payment_status == "completed"
	assert enrollment.invoice_path is not None


async def test_order_store_error_fails_enrollment(client, session_factory, student, course, monkeypatch):
	async def broken_attach_order(self, enrollment_id, attachment):
		raise SQLAlchemyError("connection reset")

	monkeypatch.setattr(EnrollmentRepository, "attach_order", broken_attach_order)
	response = await start_checkout(client, student, course.id)
	assert response.status_code == 503
	assert response.json()["detail"] == "Failed to process enrollment. Please try again later."

	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.payment_status == "failed"
	assert enrollment.failure_reason == "Payment order could not be stored"


async def test_free_course_completes_without_gateway(client, db, session_factory, student, notifications):
	free = await create_course(db, "Pronunciation Taster", price=0)

	response = await start_checkout(client, student, free.id)
	assert response.status_code == 201
	assert response.json()["payment_status"] == "completed"
	assert response.json()["order"] is None

	(enrollment,) = await all_enrollments(session_factory)
	assert enrollment.payment_id == "free"
	assert enrollment.invoice_path == f"invoices/{student.id}/{enrollment.id}.pdf"
	assert len(notifications.calls) == 4


async def test_unknown_course_creates_nothing(client, session_factory, student):
	response = await start_checkout(client, student, 9999)
	assert response.status_code == 404
	assert await all_enrollments(session_factory) == []


async def test_invalid_contact_details_are_rejected(client, student, course):
	response = await client.post(
		"/api/enrollments/",
		json={"name": "Priya", "email": "not-an-email", "phone": "12", "course_id": course.id},
		headers=auth_headers(student),
	)
	assert response.status_code == 422


async def test_unauthenticated_request_points_to_login(client, course):
	response = await client.post("/api/enrollments/", json={**CONTACT, "course_id": course.id})
	assert response.status_code == 401
	assert response.json()["detail"]["login_url"] == "/login?next=%2Fapi%2Fenrollments%2F"

	response = await client.get("/api/enrollments/me")
	assert response.json()["detail"]["login_url"] == "/login?next=%2Fapi%2Fenrollments%2Fme"


async def test_other_users_cannot_finalize_or_view(client, db, student, course, gateway):
	checkout = (await start_checkout(client, student, course.id)).json()
	intruder = await create_user(db, "rahul@englishmaster.in", name="Rahul Verma")

	response = await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/success",
		json=success_payload(gateway, checkout["order"]["order_id"]),
		headers=auth_headers(intruder),
	)
	assert response.status_code == 404
	response = await client.get(f"/api/enrollments/{checkout['enrollment_id']}", headers=auth_headers(intruder))
	assert response.status_code == 404


async def test_dashboard_lists_completed_courses_with_meeting_link(client, db, student, course, gateway):
	other = await create_course(db, "Business English", level="Advanced")
	paid = (await start_checkout(client, student, course.id)).json()
	await client.post(
		f"/api/enrollments/{paid['enrollment_id']}/payment/success",
		json=success_payload(gateway, paid["order"]["order_id"]),
		headers=auth_headers(student),
	)
	await start_checkout(client, student, other.id)

	response = await client.get("/api/enrollments/me", headers=auth_headers(student))
	assert response.status_code == 200
	rows = response.json()
	assert len(rows) == 1
	assert rows[0]["course"]["meet_link"] == "https://meet.example.in/grammar"

	status_paid = await client.get(f"/api/enrollments/me/courses/{course.id}", headers=auth_headers(student))
	status_pending = await client.get(f"/api/enrollments/me/courses/{other.id}", headers=auth_headers(student))
	assert status_paid.json() == {"course_id": course.id, "enrolled": True}
	assert status_pending.json() == {"course_id": other.id, "enrolled": False}


async def test_invoice_download_redirects_to_storage(client, student, course, gateway):
	checkout = (await start_checkout(client, student, course.id)).json()
	await client.post(
		f"/api/enrollments/{checkout['enrollment_id']}/payment/success",
		json=success_payload(gateway, checkout["order"]["order_id"]),
		headers=auth_headers(student),
	)

	response = await client.get(
		f"/api/enrollments/{checkout['enrollment_id']}/invoice", headers=auth_headers(student)
	)
	assert response.status_code == 307
	assert response.headers["location"].startswith("https://storage.test/invoices/")


async def test_invoice_not_available_for_pending(client, student, course):
	checkout = (await start_checkout(client, student, course.id)).json()
	response = await client.get(
		f"/api/enrollments/{checkout['enrollment_id']}/invoice", headers=auth_headers(student)
	)
	assert response.status_code == 404
