from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import quote
from uuid import UUID, uuid4

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from common import TokenError, bearer_scheme, decode_token, encode_token

from .config import get_settings
from .database import get_db
from .models import RefreshToken, User, UserRole


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


@dataclass(frozen=True)
class SessionContext:
	"""Signed-in identity for one request, passed explicitly to services."""

	user_id: int
	email: str
	display_name: str
	phone_number: str
	role: str

	@property
	def is_admin(self) -> bool:
		return self.role == UserRole.ADMIN.value

	@classmethod
	def from_user(cls, user: User) -> "SessionContext":
		return cls(
			user_id=user.id,
			email=user.email,
			display_name=user.display_name,
			phone_number=user.phone_number,
			role=user.role,
		)


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
	return pwd_context.hash(password)


def password_fingerprint(hashed_password: str | None) -> str:
	# binds reset tokens to the current password so they are single-use
	return hashlib.sha256((hashed_password or "").encode("utf-8")).hexdigest()[:16]


def create_access_token(user_id: int) -> str:
	settings = get_settings()
	return encode_token(
		subject=str(user_id),
		token_type="access",
		expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
		jwt_secret=settings.jwt_secret,
		jwt_algorithm=settings.jwt_algorithm,
	)


def create_password_reset_token(user: User) -> str:
	settings = get_settings()
	return encode_token(
		subject=str(user.id),
		token_type="reset",
		expires_delta=timedelta(minutes=settings.password_reset_expire_minutes),
		jwt_secret=settings.jwt_secret,
		jwt_algorithm=settings.jwt_algorithm,
		extra_claims={"pwd": password_fingerprint(user.hashed_password)},
	)


class RefreshTokenError(Exception):
	def __init__(self, detail: str):
		self.detail = detail
		super().__init__(detail)


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _hash_token(token: str) -> str:
	return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _aware(value: datetime) -> datetime:
	# SQLite hands back naive datetimes
	return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def create_refresh_token(db: AsyncSession, user_id: int) -> str:
	settings = get_settings()
	expires_delta = timedelta(days=settings.refresh_token_expire_days)
	token_uuid = uuid4()
	token = encode_token(
		subject=str(user_id),
		token_type="refresh",
		expires_delta=expires_delta,
		jwt_secret=settings.jwt_secret,
		jwt_algorithm=settings.jwt_algorithm,
		extra_claims={"jti": str(token_uuid)},
	)
	db.add(
		RefreshToken(
			token_id=token_uuid,
			user_id=user_id,
			token_hash=_hash_token(token),
			expires_at=_now() + expires_delta,
		)
	)
	await db.commit()
	return token


async def validate_refresh_token(db: AsyncSession, token: str) -> RefreshToken:
	settings = get_settings()
	try:
		claims = decode_token(token, settings.jwt_secret, settings.jwt_algorithm, expected_type="refresh")
	except TokenError as exc:
		raise RefreshTokenError("Invalid refresh token") from exc

	try:
		token_uuid = UUID(str(claims.extra.get("jti")))
	except ValueError as exc:
		raise RefreshTokenError("Malformed refresh token id") from exc

	record = await db.scalar(select(RefreshToken).where(RefreshToken.token_id == token_uuid))
	if not record:
		raise RefreshTokenError("Refresh token not found")
	if record.revoked:
		raise RefreshTokenError("Refresh token already used")
	if _aware(record.expires_at) <= _now():
		raise RefreshTokenError("Refresh token expired")
	if record.user_id != claims.user_id or record.token_hash != _hash_token(token):
		raise RefreshTokenError("Refresh token does not match")
	return record


async def revoke_refresh_tokens(db: AsyncSession, user_id: int) -> int:
	stmt = (
		update(RefreshToken)
		.where(RefreshToken.user_id == user_id, RefreshToken.revoked == False)  # noqa: E712
		.values(revoked=True, revoked_at=_now())
	)
	result = await db.execute(stmt)
	await db.commit()
	return result.rowcount or 0


def _login_url(request: Request) -> str:
	settings = get_settings()
	destination = request.url.path
	if request.url.query:
		destination = f"{destination}?{request.url.query}"
	return f"{settings.login_path}?next={quote(destination, safe='')}"


def _unauthenticated(request: Request, message: str) -> HTTPException:
	return HTTPException(
		status_code=status.HTTP_401_UNAUTHORIZED,
		detail={"message": message, "login_url": _login_url(request)},
		headers={"WWW-Authenticate": "Bearer"},
	)


async def _resolve_session(
	request: Request,
	credentials: HTTPAuthorizationCredentials | None,
	db: AsyncSession,
) -> SessionContext | None:
	if credentials is None:
		return None
	settings = get_settings()
	try:
		claims = decode_token(credentials.credentials, settings.jwt_secret, settings.jwt_algorithm)
	except TokenError as exc:
		raise _unauthenticated(request, exc.detail)

	user = await db.get(User, claims.user_id)
	if not user or not user.is_active:
		raise _unauthenticated(request, "User not found or inactive")
	return SessionContext.from_user(user)


async def get_current_session(
	request: Request,
	credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
	db: AsyncSession = Depends(get_db),
) -> SessionContext:
	session = await _resolve_session(request, credentials, db)
	if session is None:
		raise _unauthenticated(request, "Not authenticated")
	return session


async def require_admin(session: SessionContext = Depends(get_current_session)) -> SessionContext:
	if not session.is_admin:
		raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
	return session


__all__ = [
	"RefreshTokenError",
	"SessionContext",
	"bearer_scheme",
	"create_access_token",
	"create_password_reset_token",
	"create_refresh_token",
	"get_current_session",
	"get_password_hash",
	"password_fingerprint",
	"require_admin",
	"revoke_refresh_tokens",
	"validate_refresh_token",
	"verify_password",
]
