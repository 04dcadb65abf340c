from __future__ import annotations

import pytest

from academy.models import Enrollment
from academy.services.cursors import encode_cursor

from .conftest import auth_headers, create_course, create_user, later


def make_enrollment(user_id: int, course, *, status: str, minutes: int, **fields) -> Enrollment:
	values = dict(
		user_id=user_id,
		course_id=course.id if course else 9999,
		user_name="Priya Sharma",
		user_email="priya@englishmaster.in",
		user_phone="+919876543210",
		course_name=course.name if course else "Deleted Course",
		course_price=course.price if course else 500,
		payment_id="pay_x" if status == "completed" else "",
		payment_status=status,
		enrolled_at=later(minutes),
	)
	values.update(fields)
	return Enrollment(**values)


@pytest.fixture
async def seeded(db, student):
	grammar = await create_course(db, "Grammar Basics", price=1000)
	business = await create_course(db, "Business English", price=2500, level="Advanced")
	rows = [
		make_enrollment(student.id, grammar, status="completed", minutes=1),
		make_enrollment(
			student.id,
			business,
			status="completed",
			minutes=2,
			user_name="Rahul Verma",
			user_email="rahul@englishmaster.in",
			user_phone="+919811112222",
		),
		make_enrollment(student.id, business, status="failed", minutes=3),
		make_enrollment(student.id, None, status="completed", minutes=4),
	]
	db.add_all(rows)
	await db.commit()
	return rows


async def test_non_admin_is_forbidden(client, student, seeded):
	response = await client.get("/api/admin/enrollments", headers=auth_headers(student))
	assert response.status_code == 403


async def test_anonymous_is_unauthorized(client, seeded):
	response = await client.get("/api/admin/stats")
	assert response.status_code == 401
	assert response.json()["detail"]["login_url"] == "/login?next=%2Fapi%2Fadmin%2Fstats"


async def test_lists_newest_first_with_current_course(client, admin, seeded):
	response = await client.get("/api/admin/enrollments", headers=auth_headers(admin))
	assert response.status_code == 200
	items = response.json()["items"]
	assert [item["id"] for item in items] == [row.id for row in reversed(seeded)]
	assert items[0]["course"] is None
	assert items[1]["course"]["name"] == "Business English"
	assert items[1]["course"]["meet_link"] is None


async def test_search_across_contact_and_course_fields(client, admin, seeded):
	headers = auth_headers(admin)
	by_name = await client.get("/api/admin/enrollments", params={"search": "rahul"}, headers=headers)
	by_phone = await client.get("/api/admin/enrollments", params={"search": "1111"}, headers=headers)
	by_course = await client.get("/api/admin/enrollments", params={"search": "GRAMMAR"}, headers=headers)

	assert [i["user_name"] for i in by_name.json()["items"]] == ["Rahul Verma"]
	assert [i["user_name"] for i in by_phone.json()["items"]] == ["Rahul Verma"]
	assert [i["course_name"] for i in by_course.json()["items"]] == ["Grammar Basics"]


async def test_search_without_match_is_empty(client, admin, seeded):
	response = await client.get(
		"/api/admin/enrollments", params={"search": "nobody-here"}, headers=auth_headers(admin)
	)
	assert response.status_code == 200
	assert response.json() == {"items": [], "next_cursor": None}


async def test_pagination(client, admin, seeded):
	headers = auth_headers(admin)
	first = (await client.get("/api/admin/enrollments", params={"limit": 3}, headers=headers)).json()
	assert len(first["items"]) == 3
	second = (
		await client.get(
			"/api/admin/enrollments", params={"limit": 3, "cursor": first["next_cursor"]}, headers=headers
		)
	).json()
	assert [i["id"] for i in second["items"]] == [seeded[0].id]
	assert second["next_cursor"] is None


async def test_stats(client, admin, seeded):
	response = await client.get("/api/admin/stats", headers=auth_headers(admin))
	assert response.json() == {
		"total_enrollments": 4,
		"completed_enrollments": 3,
		"total_revenue": 1000 + 2500 + 500,
		"distinct_courses": 3,
	}


async def test_stats_on_empty_database(client, admin):
	response = await client.get("/api/admin/stats", headers=auth_headers(admin))
	assert response.json() == {
		"total_enrollments": 0,
		"completed_enrollments": 0,
		"total_revenue": 0,
		"distinct_courses": 0,
	}


async def test_resend_notifications(client, admin, seeded, notifications):
	response = await client.post(
		f"/api/admin/enrollments/{seeded[0].id}/notifications", headers=auth_headers(admin)
	)
	assert response.status_code == 200
	assert [o["status"] for o in response.json()["outcomes"]] == ["sent"] * 4
	assert len(notifications.calls) == 4


async def test_resend_rejects_incomplete_or_orphaned(client, admin, seeded):
	headers = auth_headers(admin)
	failed = await client.post(f"/api/admin/enrollments/{seeded[2].id}/notifications", headers=headers)
	orphan = await client.post(f"/api/admin/enrollments/{seeded[3].id}/notifications", headers=headers)
	missing = await client.post("/api/admin/enrollments/nope/notifications", headers=headers)

	assert failed.status_code == 409
	assert orphan.status_code == 404
	assert missing.status_code == 404


async def test_resend_reports_total_failure(client, admin, seeded, notifications):
	notifications.fail_paths = {"/send-email", "/send-whatsapp"}
	response = await client.post(
		f"/api/admin/enrollments/{seeded[0].id}/notifications", headers=auth_headers(admin)
	)
	assert response.status_code == 502
	assert len(response.json()["detail"]["failed_channels"]) == 4


async def test_catalog_cursor_is_rejected(client, admin, seeded):
	response = await client.get(
		"/api/admin/enrollments",
		params={"cursor": encode_cursor(3, 7)},
		headers=auth_headers(admin),
	)
	assert response.status_code == 400
