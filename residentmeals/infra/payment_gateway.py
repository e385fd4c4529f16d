"""Card payment gateway.

``StripeGateway`` talks to the Stripe PaymentIntents REST API with httpx. Every
capture carries an ``Idempotency-Key`` so a retried request for the same
capture attempt can never create a second charge at the processor.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import httpx

from residentmeals.domain.errors import PaymentError, PaymentTimeoutError
from residentmeals.utilities.config import (
    STRIPE_SECRET_KEY, STRIPE_API_BASE, PAYMENT_CURRENCY, PAYMENT_TIMEOUT_SECONDS, STATEMENT_DESCRIPTOR,
)

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
REQUIRES_ACTION = "requires_action"
PROCESSING = "processing"


@dataclass
class CaptureResult:
    payment_intent_id: str
    status: str
    amount: int
    currency: str = PAYMENT_CURRENCY
    client_secret: Optional[str] = None
    receipt_url: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def needs_action(self) -> bool:
        return self.status == REQUIRES_ACTION


class PaymentGateway(Protocol):
    async def capture(self, amount: int, payment_method_id: Optional[str], idempotency_key: str,
                      description: str = "", metadata: Optional[Dict[str, str]] = None,
                      receipt_email: Optional[str] = None) -> CaptureResult:
        ...

    async def retrieve(self, payment_intent_id: str) -> CaptureResult:
        ...


def _result_from_intent(intent: dict) -> CaptureResult:
    charge = intent.get("latest_charge")
    receipt_url = charge.get("receipt_url") if isinstance(charge, dict) else None
    return CaptureResult(
        payment_intent_id=intent["id"],
        status=intent.get("status", ""),
        amount=int(intent.get("amount", 0)),
        currency=intent.get("currency", PAYMENT_CURRENCY),
        client_secret=intent.get("client_secret"),
        receipt_url=receipt_url,
        metadata=dict(intent.get("metadata") or {}),
    )


class StripeGateway:
    """PaymentIntents client: create-and-confirm in one request, plus lookup."""

    def __init__(self, secret_key: str = STRIPE_SECRET_KEY, api_base: str = STRIPE_API_BASE,
                 timeout: float = PAYMENT_TIMEOUT_SECONDS, currency: str = PAYMENT_CURRENCY,
                 statement_descriptor: str = STATEMENT_DESCRIPTOR,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.currency = currency
        self.statement_descriptor = statement_descriptor
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Authorization": f"Bearer {self.secret_key}"},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _send(self, method: str, url: str, **kwargs) -> dict:
        if not self.secret_key:
            raise PaymentError("Payment processor is not configured")
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            # The request may or may not have reached Stripe; the caller retries with the same key.
            logger.error("Stripe request %s %s failed: %s", method, url, e)
            raise PaymentTimeoutError("Payment processor did not respond; payment is pending") from e
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            err = body.get("error") or {}
            message = err.get("message") or f"Payment failed (HTTP {response.status_code})"
            logger.warning("Stripe rejected %s %s: %s %s", method, url, response.status_code, message)
            raise PaymentError(message, code=err.get("decline_code") or err.get("code"))
        return body

    async def capture(self, amount: int, payment_method_id: Optional[str], idempotency_key: str,
                      description: str = "", metadata: Optional[Dict[str, str]] = None,
                      receipt_email: Optional[str] = None) -> CaptureResult:
        form = {
            "amount": str(amount),
            "currency": self.currency,
            "confirm": "true",
            "description": description,
        }
        if payment_method_id:
            form["payment_method"] = payment_method_id
        else:
            form["automatic_payment_methods[enabled]"] = "true"
            form["automatic_payment_methods[allow_redirects]"] = "never"
        if receipt_email:
            form["receipt_email"] = receipt_email
        if self.statement_descriptor:
            form["statement_descriptor_suffix"] = self.statement_descriptor[:22]
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = str(value)
        form["expand[]"] = "latest_charge"

        intent = await self._send(
            "POST", "/v1/payment_intents", data=form,
            headers={"Idempotency-Key": idempotency_key},
        )
        return self._check(_result_from_intent(intent), intent)

    async def retrieve(self, payment_intent_id: str) -> CaptureResult:
        intent = await self._send(
            "GET", f"/v1/payment_intents/{payment_intent_id}",
            params={"expand[]": "latest_charge"},
        )
        return self._check(_result_from_intent(intent), intent)

    @staticmethod
    def _check(result: CaptureResult, intent: dict) -> CaptureResult:
        if result.status in ("requires_payment_method", "canceled"):
            last_error = intent.get("last_payment_error") or {}
            raise PaymentError(last_error.get("message") or "Your card was declined.",
                               code=last_error.get("decline_code") or last_error.get("code"))
        return result


__all__ = ["CaptureResult", "PaymentGateway", "StripeGateway", "SUCCEEDED", "REQUIRES_ACTION", "PROCESSING"]
