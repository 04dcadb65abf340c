from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx
from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from common import TokenError, decode_token

from ..config import get_settings
from ..models import AuthProvider, User
from ..schemas import PasswordResetConfirm, ProfileUpdate, Token, UserCreate
from ..security import (
	RefreshTokenError,
	SessionContext,
	create_access_token,
	create_password_reset_token,
	create_refresh_token,
	get_password_hash,
	password_fingerprint,
	revoke_refresh_tokens,
	validate_refresh_token,
	verify_password,
)
from .notifications import NotificationDispatcher

LOGGER = logging.getLogger(__name__)


class IdentityError(Exception):
	def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


def _now() -> datetime:
	return datetime.now(timezone.utc)


class IdentityService:
	def __init__(
		self,
		db: AsyncSession,
		*,
		notifications: NotificationDispatcher | None = None,
		tokeninfo_transport: httpx.AsyncBaseTransport | None = None,
	):
		self.db = db
		self.notifications = notifications
		self.tokeninfo_transport = tokeninfo_transport

	async def _by_email(self, email: str) -> User | None:
		return await self.db.scalar(select(User).where(User.email == email.lower().strip()))

	async def _issue_tokens(self, user: User) -> Token:
		user.last_login_at = _now()
		await self.db.commit()
		access = create_access_token(user.id)
		refresh = await create_refresh_token(self.db, user.id)
		return Token(access_token=access, refresh_token=refresh)

	async def register(self, data: UserCreate) -> User:
		email = str(data.email).lower()
		if await self._by_email(email):
			raise IdentityError("Email already registered")

		user = User(
			email=email,
			display_name=data.name.strip(),
			hashed_password=get_password_hash(data.password),
			auth_provider=AuthProvider.PASSWORD.value,
		)
		self.db.add(user)
		await self.db.commit()
		await self.db.refresh(user)
		LOGGER.info("User %s registered", user.id)
		return user

	async def login(self, email: str, password: str) -> Token:
		user = await self._by_email(email)
		if not user or not user.hashed_password or not verify_password(password, user.hashed_password):
			raise IdentityError("Incorrect email or password", status.HTTP_401_UNAUTHORIZED)
		if not user.is_active:
			raise IdentityError("Account is disabled", status.HTTP_403_FORBIDDEN)
		return await self._issue_tokens(user)

	async def _verify_federated_token(self, id_token: str) -> dict:
		settings = get_settings()
		if not settings.federated_client_id:
			raise IdentityError("Federated sign-in is not configured", status.HTTP_503_SERVICE_UNAVAILABLE)

		try:
			async with httpx.AsyncClient(
				timeout=settings.federated_timeout_seconds, transport=self.tokeninfo_transport
			) as client:
				response = await client.get(settings.federated_tokeninfo_url, params={"id_token": id_token})
		except httpx.HTTPError as exc:
			LOGGER.warning("Token info request failed: %s", exc)
			raise IdentityError("Identity provider unavailable", status.HTTP_503_SERVICE_UNAVAILABLE) from exc

		if response.status_code != 200:
			raise IdentityError("Invalid identity token", status.HTTP_401_UNAUTHORIZED)
		info = response.json()
		if info.get("aud") != settings.federated_client_id:
			raise IdentityError("Identity token audience mismatch", status.HTTP_401_UNAUTHORIZED)
		if not info.get("email") or str(info.get("email_verified", "")).lower() != "true":
			raise IdentityError("Identity token has no verified email", status.HTTP_401_UNAUTHORIZED)
		return info

	async def federated_login(self, id_token: str) -> Token:
		info = await self._verify_federated_token(id_token)
		email = info["email"].lower()
		name = (info.get("name") or email.split("@", 1)[0]).strip()

		user = await self._by_email(email)
		if user is None:
			user = User(email=email, display_name=name, auth_provider=AuthProvider.GOOGLE.value)
			self.db.add(user)
			await self.db.flush()
			LOGGER.info("User %s created through federated sign-in", user.id)
		else:
			if not user.is_active:
				raise IdentityError("Account is disabled", status.HTTP_403_FORBIDDEN)
			user.display_name = name or user.display_name
		return await self._issue_tokens(user)

	async def refresh(self, refresh_token: str) -> Token:
		try:
			record = await validate_refresh_token(self.db, refresh_token)
		except RefreshTokenError as exc:
			raise IdentityError(exc.detail, status.HTTP_401_UNAUTHORIZED) from exc

		user = await self.db.get(User, record.user_id)
		if not user or not user.is_active:
			raise IdentityError("User not found or inactive", status.HTTP_401_UNAUTHORIZED)

		record.revoked = True
		record.revoked_at = _now()
		access = create_access_token(user.id)
		# create_refresh_token commits, which also persists the revocation
		new_refresh = await create_refresh_token(self.db, user.id)
		return Token(access_token=access, refresh_token=new_refresh)

	async def logout(self, session: SessionContext) -> int:
		return await revoke_refresh_tokens(self.db, session.user_id)

	async def request_password_reset(self, email: str) -> None:
		"""Sends a reset email when possible; callers never learn whether the account exists."""
		user = await self._by_email(email)
		if not user or not user.is_active or not user.hashed_password:
			LOGGER.info("Password reset requested for unknown or passwordless account")
			return
		if self.notifications is None:
			LOGGER.warning("No notification dispatcher, password reset for user %s not sent", user.id)
			return

		token = create_password_reset_token(user)
		outcome = await self.notifications.send_password_reset(
			email=user.email, name=user.display_name, token=token
		)
		if outcome.error:
			LOGGER.warning("Password reset email for user %s not sent: %s", user.id, outcome.error)

	async def confirm_password_reset(self, data: PasswordResetConfirm) -> None:
		settings = get_settings()
		try:
			claims = decode_token(data.token, settings.jwt_secret, settings.jwt_algorithm, expected_type="reset")
		except TokenError as exc:
			raise IdentityError("Invalid or expired reset token") from exc

		user = await self.db.get(User, claims.user_id)
		if not user or not user.is_active:
			raise IdentityError("Invalid or expired reset token")
		if claims.extra.get("pwd") != password_fingerprint(user.hashed_password):
			raise IdentityError("Reset token has already been used")

		user.hashed_password = get_password_hash(data.password)
		await self.db.commit()
		await revoke_refresh_tokens(self.db, user.id)
		LOGGER.info("Password reset for user %s", user.id)

	async def get_user(self, session: SessionContext) -> User:
		user = await self.db.get(User, session.user_id)
		if not user:
			raise IdentityError("User not found", status.HTTP_404_NOT_FOUND)
		return user

	async def update_profile(self, session: SessionContext, data: ProfileUpdate) -> User:
		user = await self.get_user(session)
		if data.display_name is not None:
			user.display_name = data.display_name.strip()
		if data.phone_number is not None:
			user.phone_number = data.phone_number.strip()
		await self.db.commit()
		await self.db.refresh(user)
		return user
