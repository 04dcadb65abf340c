from .observability import configure_logging, configure_observability
from .database import Base, create_database_engines, make_get_db, resolve_async_url
from .security import (
	TokenClaims,
	TokenError,
	bearer_scheme,
	decode_token,
	encode_token,
)
from .config import BaseServiceSettings, make_get_settings

__all__ = [
	"configure_logging",
	"configure_observability",
	# Database
	"Base",
	"create_database_engines",
	"make_get_db",
	"resolve_async_url",
	# Security
	"TokenClaims",
	"TokenError",
	"bearer_scheme",
	"decode_token",
	"encode_token",
	# Config
	"BaseServiceSettings",
	"make_get_settings",
]
