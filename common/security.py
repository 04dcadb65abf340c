"""Выпуск и проверка JWT токенов."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi.security import HTTPBearer
from jose import JWTError, jwt


# anonymous requests reach the service, which answers with its own 401
bearer_scheme = HTTPBearer(auto_error=False)


class TokenError(Exception):
	def __init__(self, detail: str):
		self.detail = detail
		super().__init__(detail)


@dataclass
class TokenClaims:
	"""Проверенные поля токена."""
	user_id: int
	token_type: str
	expires_at: datetime | None = None
	extra: dict[str, Any] = field(default_factory=dict)


def _now() -> datetime:
	return datetime.now(timezone.utc)


def encode_token(
	*,
	subject: str,
	token_type: str,
	expires_delta: timedelta,
	jwt_secret: str,
	jwt_algorithm: str = "HS256",
	extra_claims: dict[str, Any] | None = None,
) -> str:
	expire = _now() + expires_delta
	payload: dict[str, Any] = {"sub": subject, "type": token_type, "exp": int(expire.timestamp())}
	if extra_claims:
		payload |= extra_claims
	return jwt.encode(payload, jwt_secret, algorithm=jwt_algorithm)


def decode_token(
	token: str,
	jwt_secret: str,
	jwt_algorithm: str = "HS256",
	*,
	expected_type: str = "access",
) -> TokenClaims:
	"""
	Декодирует и валидирует токен.

	Args:
		token: JWT токен
		jwt_secret: Секретный ключ для подписи токена
		jwt_algorithm: Алгоритм подписи (по умолчанию HS256)
		expected_type: Ожидаемое значение claim "type"

	Returns:
		TokenClaims: id пользователя, тип, срок действия и прочие claims

	Raises:
		TokenError: Если токен невалиден, истек или имеет неверный тип
	"""
	try:
		payload = jwt.decode(token, jwt_secret, algorithms=[jwt_algorithm])
	except JWTError as exc:
		raise TokenError("Invalid token") from exc

	if payload.get("type") != expected_type:
		raise TokenError("Invalid token type")

	exp = payload.get("exp")
	expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None
	if expires_at and expires_at < _now():
		raise TokenError("Token expired")

	sub = payload.get("sub")
	if not sub:
		raise TokenError("Invalid token payload")
	try:
		user_id = int(sub)
	except (TypeError, ValueError) as exc:
		raise TokenError("Invalid token payload") from exc

	extra = {k: v for k, v in payload.items() if k not in {"sub", "type", "exp"}}
	return TokenClaims(user_id=user_id, token_type=expected_type, expires_at=expires_at, extra=extra)
