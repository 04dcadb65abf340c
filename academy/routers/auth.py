from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..dependencies import get_identity_service
from ..schemas import (
	FederatedLoginInput,
	LoginInput,
	PasswordResetConfirm,
	PasswordResetRequest,
	ProfileUpdate,
	RefreshInput,
	Token,
	UserCreate,
	UserOut,
)
from ..security import SessionContext, get_current_session
from ..services import IdentityError, IdentityService


router = APIRouter(prefix="/api/auth", tags=["auth"])


def _handle_error(exc: IdentityError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(
	user_in: UserCreate,
	service: IdentityService = Depends(get_identity_service),
) -> UserOut:
	try:
		return await service.register(user_in)
	except IdentityError as exc:
		raise _handle_error(exc)


@router.post("/login", response_model=Token)
async def login(data: LoginInput, service: IdentityService = Depends(get_identity_service)) -> Token:
	try:
		return await service.login(str(data.email), data.password)
	except IdentityError as exc:
		raise _handle_error(exc)


@router.post("/federated", response_model=Token)
async def federated_login(
	data: FederatedLoginInput,
	service: IdentityService = Depends(get_identity_service),
) -> Token:
	try:
		return await service.federated_login(data.id_token)
	except IdentityError as exc:
		raise _handle_error(exc)


@router.post("/refresh", response_model=Token)
async def refresh(data: RefreshInput, service: IdentityService = Depends(get_identity_service)) -> Token:
	try:
		return await service.refresh(data.refresh_token)
	except IdentityError as exc:
		raise _handle_error(exc)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
	session: SessionContext = Depends(get_current_session),
	service: IdentityService = Depends(get_identity_service),
) -> Response:
	await service.logout(session)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/password-reset", status_code=status.HTTP_202_ACCEPTED)
async def request_password_reset(
	data: PasswordResetRequest,
	service: IdentityService = Depends(get_identity_service),
) -> dict[str, str]:
	await service.request_password_reset(str(data.email))
	return {"status": "accepted"}


@router.post("/password-reset/confirm", status_code=status.HTTP_204_NO_CONTENT)
async def confirm_password_reset(
	data: PasswordResetConfirm,
	service: IdentityService = Depends(get_identity_service),
) -> Response:
	try:
		await service.confirm_password_reset(data)
	except IdentityError as exc:
		raise _handle_error(exc)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserOut)
async def me(
	session: SessionContext = Depends(get_current_session),
	service: IdentityService = Depends(get_identity_service),
) -> UserOut:
	try:
		return await service.get_user(session)
	except IdentityError as exc:
		raise _handle_error(exc)


@router.patch("/me", response_model=UserOut)
async def update_me(
	data: ProfileUpdate,
	session: SessionContext = Depends(get_current_session),
	service: IdentityService = Depends(get_identity_service),
) -> UserOut:
	try:
		return await service.update_profile(session, data)
	except IdentityError as exc:
		raise _handle_error(exc)
