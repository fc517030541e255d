"""
Client for the hosted checkout-session API (Stripe compatible).

Only the two calls the storefront needs are wrapped: creating a session for
the cart and retrieving it again when the customer is sent back.
"""

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx

from storefront.config import settings
from storefront.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItem:
    name: str
    description: str | None
    unit_amount: int  # minor units
    quantity: int


@dataclass(frozen=True)
class PaymentSession:
    id: str
    url: str | None = None
    payment_status: str | None = None
    amount_total: int | None = None
    payment_intent: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PaymentSession":
        return cls(
            id=payload["id"],
            url=payload.get("url"),
            payment_status=payload.get("payment_status"),
            amount_total=payload.get("amount_total"),
            payment_intent=payload.get("payment_intent"),
            metadata=dict(payload.get("metadata") or {}),
        )


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _encode_line_items(items: list[LineItem], currency: str) -> dict[str, str]:
    form: dict[str, str] = {}
    for idx, item in enumerate(items):
        prefix = f"line_items[{idx}]"
        form[f"{prefix}[quantity]"] = str(item.quantity)
        form[f"{prefix}[price_data][currency]"] = currency
        form[f"{prefix}[price_data][unit_amount]"] = str(item.unit_amount)
        form[f"{prefix}[price_data][product_data][name]"] = item.name
        if item.description:
            form[f"{prefix}[price_data][product_data][description]"] = item.description
    return form


class PaymentGateway:
    def __init__(
        self,
        api_base: str | None = None,
        secret_key: str | None = None,
        currency: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_base = (api_base or settings.PAYMENT_API_BASE).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else settings.PAYMENT_SECRET_KEY
        self.currency = currency or settings.PAYMENT_CURRENCY
        self.timeout = timeout or settings.PAYMENT_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Authorization": f"Bearer {self.secret_key}"},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, data: dict | None = None) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(method, path, data=data)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Payment API %s %s failed with %s: %s",
                method,
                path,
                exc.response.status_code,
                exc.response.text,
            )
            raise PaymentGatewayError(
                f"Payment provider returned {exc.response.status_code}",
                details={"path": path},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Payment API %s %s unreachable: %s", method, path, exc)
            raise PaymentGatewayError(
                "Payment provider unreachable", details={"path": path}
            ) from exc

    async def create_session(
        self,
        items: list[LineItem],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, Any] | None = None,
    ) -> PaymentSession:
        form = _encode_line_items(items, self.currency)
        form["mode"] = "payment"
        form["success_url"] = success_url
        form["cancel_url"] = cancel_url
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = str(value)

        payload = await self._request("POST", "/v1/checkout/sessions", data=form)
        session = PaymentSession.from_payload(payload)
        logger.info("Payment session %s created for %s line(s)", session.id, len(items))
        return session

    async def retrieve_session(self, session_id: str) -> PaymentSession:
        payload = await self._request("GET", f"/v1/checkout/sessions/{session_id}")
        return PaymentSession.from_payload(payload)
