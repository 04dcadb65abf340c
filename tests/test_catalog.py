from __future__ import annotations

import pytest

from academy.services.cursors import encode_cursor

from .conftest import create_course, later

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def catalog(db):
	return [
		await create_course(db, "Grammar Basics", level="Beginner", enrollment_count=5, created_at=later(1)),
		await create_course(
			db,
			"Conversation Skills",
			level="Intermediate",
			description="Speak with confidence",
			enrollment_count=40,
			created_at=later(2),
		),
		await create_course(db, "Business English", level="Advanced", enrollment_count=12, created_at=later(3)),
		await create_course(db, "IELTS Preparation", level="All Levels", enrollment_count=25, created_at=later(4)),
		await create_course(db, "Retired Course", level="Beginner", is_active=False, created_at=later(5)),
	]


def names(response) -> list[str]:
	return [item["name"] for item in response.json()["items"]]


async def test_lists_active_courses_newest_first(client, catalog):
	response = await client.get("/api/courses/")
	assert response.status_code == 200
	assert names(response) == [
		"IELTS Preparation",
		"Business English",
		"Conversation Skills",
		"Grammar Basics",
	]
	assert response.json()["next_cursor"] is None


async def test_search_is_case_insensitive_substring(client, catalog):
	response = await client.get("/api/courses/", params={"search": "gramm"})
	assert names(response) == ["Grammar Basics"]


async def test_search_matches_description(client, catalog):
	response = await client.get("/api/courses/", params={"search": "CONFIDENCE"})
	assert names(response) == ["Conversation Skills"]


async def test_search_treats_wildcards_literally(client, catalog):
	response = await client.get("/api/courses/", params={"search": "%"})
	assert response.status_code == 200
	assert names(response) == []


async def test_level_filter_is_exact(client, catalog):
	response = await client.get("/api/courses/", params={"level": "Intermediate"})
	assert names(response) == ["Conversation Skills"]


async def test_unknown_level_is_rejected(client, catalog):
	response = await client.get("/api/courses/", params={"level": "Expert"})
	assert response.status_code == 422


async def test_no_match_returns_empty_page(client, catalog):
	response = await client.get("/api/courses/", params={"search": "mandarin", "level": "Advanced"})
	assert response.status_code == 200
	assert response.json() == {"items": [], "next_cursor": None}


async def test_popular_sort_orders_by_enrollment_count(client, catalog):
	response = await client.get("/api/courses/", params={"sort": "popular"})
	assert names(response) == [
		"Conversation Skills",
		"IELTS Preparation",
		"Business English",
		"Grammar Basics",
	]


async def test_popular_endpoint_limits_results(client, catalog):
	response = await client.get("/api/courses/popular", params={"limit": 2})
	assert response.status_code == 200
	assert [c["name"] for c in response.json()] == ["Conversation Skills", "IELTS Preparation"]


@pytest.mark.parametrize("sort", ["newest", "popular"])
async def test_cursor_pagination_walks_every_course_once(client, catalog, sort):
	seen: list[str] = []
	cursor = None
	while True:
		params = {"sort": sort, "limit": 3}
		if cursor:
			params["cursor"] = cursor
		response = await client.get("/api/courses/", params=params)
		assert response.status_code == 200
		seen.extend(names(response))
		cursor = response.json()["next_cursor"]
		if cursor is None:
			break
	assert len(seen) == 4
	assert len(set(seen)) == 4


async def test_malformed_cursor_is_bad_request(client, catalog):
	response = await client.get("/api/courses/", params={"cursor": "not-a-cursor"})
	assert response.status_code == 400


async def test_cursor_from_another_sort_order_is_bad_request(client, catalog):
	first = await client.get("/api/courses/", params={"sort": "newest", "limit": 2})
	cursor = first.json()["next_cursor"]
	assert cursor is not None

	response = await client.get("/api/courses/", params={"sort": "popular", "cursor": cursor})
	assert response.status_code == 400


async def test_cursor_with_wrong_id_type_is_bad_request(client, catalog):
	response = await client.get(
		"/api/courses/", params={"sort": "popular", "cursor": encode_cursor(5, "abc")}
	)
	assert response.status_code == 400


async def test_get_course_hides_inactive_and_missing(client, catalog):
	active, retired = catalog[0], catalog[-1]
	assert (await client.get(f"/api/courses/{active.id}")).status_code == 200
	assert (await client.get(f"/api/courses/{retired.id}")).status_code == 404
	assert (await client.get("/api/courses/9999")).status_code == 404


async def test_public_course_view_has_no_meeting_link(client, course):
	response = await client.get(f"/api/courses/{course.id}")
	assert "meet_link" not in response.json()
