from __future__ import annotations

from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas import CourseOut, CoursePage, CourseQuery
from ..services import CatalogError, CatalogService


router = APIRouter(prefix="/api/courses", tags=["courses"])


def _handle_error(exc: CatalogError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.get("/", response_model=CoursePage)
async def list_courses(
	query: Annotated[CourseQuery, Query()],
	db: AsyncSession = Depends(get_db),
) -> CoursePage:
	try:
		listing = await CatalogService(db).list_courses(query)
	except CatalogError as exc:
		raise _handle_error(exc)
	return CoursePage(
		items=[CourseOut.model_validate(course) for course in listing.items],
		next_cursor=listing.next_cursor,
	)


@router.get("/popular", response_model=List[CourseOut])
async def popular_courses(
	limit: Annotated[int, Query(ge=1, le=20)] = 4,
	db: AsyncSession = Depends(get_db),
) -> List[CourseOut]:
	return await CatalogService(db).popular_courses(limit)


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(course_id: int, db: AsyncSession = Depends(get_db)) -> CourseOut:
	try:
		return await CatalogService(db).get_course(course_id)
	except CatalogError as exc:
		raise _handle_error(exc)
