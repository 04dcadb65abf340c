from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime
from typing import Any


class InvalidCursorError(ValueError):
	pass


def encode_cursor(sort_key: Any, record_id: Any) -> str:
	if isinstance(sort_key, datetime):
		sort_key = {"dt": sort_key.isoformat()}
	raw = json.dumps({"k": sort_key, "id": record_id}, separators=(",", ":"))
	return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def _matches(value: Any, expected: type) -> bool:
	# bool is an int subclass and never a valid key
	return isinstance(value, expected) and not isinstance(value, bool)


def decode_cursor(cursor: str, key_type: type, id_type: type) -> tuple[Any, Any]:
	"""Return (sort_key, record_id) from a token produced by encode_cursor.

	Both values must have the types of the listing being paged, so a cursor
	issued for one sort order is rejected by another.
	"""
	padded = cursor + "=" * (-len(cursor) % 4)
	try:
		data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
		sort_key, record_id = data["k"], data["id"]
		if isinstance(sort_key, dict):
			sort_key = datetime.fromisoformat(sort_key["dt"])
	except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as exc:
		raise InvalidCursorError("Invalid cursor") from exc
	if not _matches(sort_key, key_type) or not _matches(record_id, id_type):
		raise InvalidCursorError("Invalid cursor")
	return sort_key, record_id


def like_pattern(term: str) -> str:
	escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
	return f"%{escaped}%"
