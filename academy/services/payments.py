from __future__ import annotations

import hashlib
import hmac
import logging
import time
import uuid
from dataclasses import dataclass, field
from functools import lru_cache

from fastapi.concurrency import run_in_threadpool

from ..config import get_settings

LOGGER = logging.getLogger(__name__)

SIMULATED_KEY_ID = "rzp_test_simulated"


class PaymentGatewayError(Exception):
	"""The payment provider rejected a call or could not be reached."""


@dataclass(frozen=True)
class OrderRequest:
	amount: int  # minor units (paise)
	currency: str
	receipt: str
	notes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentOrder:
	order_id: str
	key: str
	amount: int
	currency: str
	receipt: str


def to_minor_units(price: int) -> int:
	return price * 100


def build_receipt(user_id: int, course_id: int, now_ms: int | None = None) -> str:
	timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
	return f"receipt_{user_id}_{course_id}_{timestamp}"


def _hmac_hex(secret: str, message: bytes) -> str:
	return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
	simulated = False

	def __init__(self, key_id: str, key_secret: str, webhook_secret: str | None = None) -> None:
		try:
			import razorpay
		except ImportError as exc:  # pragma: no cover - import error
			raise PaymentGatewayError(f"Payment SDK error: {exc}") from exc

		self._client = razorpay.Client(auth=(key_id, key_secret))
		self._key_id = key_id
		self._webhook_secret = webhook_secret

	@property
	def key_id(self) -> str:
		return self._key_id

	async def create_order(self, request: OrderRequest) -> PaymentOrder:
		payload = {
			"amount": request.amount,
			"currency": request.currency,
			"receipt": request.receipt,
			"notes": request.notes,
		}
		try:
			order = await run_in_threadpool(self._client.order.create, data=payload)
		except Exception as exc:  # pragma: no cover - provider errors
			raise PaymentGatewayError(f"Payment provider error: {exc}") from exc
		return PaymentOrder(
			order_id=order["id"],
			key=self._key_id,
			amount=order.get("amount", request.amount),
			currency=order.get("currency", request.currency),
			receipt=request.receipt,
		)

	async def verify_payment(self, *, order_id: str, payment_id: str, signature: str) -> bool:
		from razorpay.errors import SignatureVerificationError

		params = {
			"razorpay_order_id": order_id,
			"razorpay_payment_id": payment_id,
			"razorpay_signature": signature,
		}
		try:
			await run_in_threadpool(self._client.utility.verify_payment_signature, params)
		except SignatureVerificationError:
			return False
		except Exception as exc:  # pragma: no cover - provider errors
			raise PaymentGatewayError(f"Payment provider error: {exc}") from exc
		return True

	def verify_webhook(self, body: bytes, signature: str | None) -> bool:
		from razorpay.errors import SignatureVerificationError

		if not self._webhook_secret or not signature:
			return False
		try:
			self._client.utility.verify_webhook_signature(
				body.decode("utf-8"), signature, self._webhook_secret
			)
		except SignatureVerificationError:
			return False
		return True


class SimulatedGateway:
	"""Development gateway using the same HMAC signature scheme as Razorpay."""

	simulated = True

	def __init__(self, secret: str, key_id: str = SIMULATED_KEY_ID) -> None:
		self._secret = secret
		self._key_id = key_id

	@property
	def key_id(self) -> str:
		return self._key_id

	def sign(self, order_id: str, payment_id: str) -> str:
		return _hmac_hex(self._secret, f"{order_id}|{payment_id}".encode("utf-8"))

	def sign_webhook(self, body: bytes) -> str:
		return _hmac_hex(self._secret, body)

	async def create_order(self, request: OrderRequest) -> PaymentOrder:
		order_id = f"order_sim_{uuid.uuid4().hex[:14]}"
		LOGGER.info("Simulated order %s created for receipt %s", order_id, request.receipt)
		return PaymentOrder(
			order_id=order_id,
			key=self._key_id,
			amount=request.amount,
			currency=request.currency,
			receipt=request.receipt,
		)

	async def verify_payment(self, *, order_id: str, payment_id: str, signature: str) -> bool:
		return hmac.compare_digest(self.sign(order_id, payment_id), signature)

	def verify_webhook(self, body: bytes, signature: str | None) -> bool:
		if not signature:
			return False
		return hmac.compare_digest(self.sign_webhook(body), signature)


PaymentGateway = RazorpayGateway | SimulatedGateway


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
	settings = get_settings()
	if settings.razorpay_key_id and settings.razorpay_key_secret:
		return RazorpayGateway(
			settings.razorpay_key_id,
			settings.razorpay_key_secret,
			settings.razorpay_webhook_secret,
		)
	LOGGER.warning("Razorpay credentials are not set, using the simulated payment gateway")
	return SimulatedGateway(settings.payments_simulation_secret)
