from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from .enrollment import PHONE_PATTERN


class _PasswordConfirmation(BaseModel):
	@model_validator(mode="after")
	def _passwords_match(self):
		if self.password != self.confirm_password:
			raise ValueError("Passwords do not match")
		return self


class UserCreate(_PasswordConfirmation):
	name: str = Field(min_length=1, max_length=255)
	email: EmailStr
	password: str = Field(min_length=8, max_length=128)
	confirm_password: str


class UserOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: int
	email: EmailStr
	display_name: str
	phone_number: str
	role: str
	auth_provider: str
	is_active: bool
	created_at: datetime
	last_login_at: datetime | None = None


class ProfileUpdate(BaseModel):
	display_name: str | None = Field(default=None, min_length=1, max_length=255)
	phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)


class LoginInput(BaseModel):
	email: EmailStr
	password: str = Field(min_length=1)


class FederatedLoginInput(BaseModel):
	id_token: str = Field(min_length=1)


class RefreshInput(BaseModel):
	refresh_token: str


class Token(BaseModel):
	access_token: str
	refresh_token: str
	token_type: str = "bearer"


class PasswordResetRequest(BaseModel):
	email: EmailStr


class PasswordResetConfirm(_PasswordConfirmation):
	token: str
	password: str = Field(min_length=8, max_length=128)
	confirm_password: str
