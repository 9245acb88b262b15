"""Mercado Pago REST client."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class MercadoPagoError(RuntimeError):
    """Raised when the Mercado Pago API cannot be reached or rejects a call."""


class MercadoPagoClient:
    """Wrapper around the Mercado Pago payments and checkout APIs."""

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.access_token = access_token or getattr(settings, "MERCADOPAGO_ACCESS_TOKEN", "")
        self.api_url = (api_url or getattr(settings, "MERCADOPAGO_API_URL", "https://api.mercadopago.com")).rstrip("/")
        self.timeout = timeout or int(getattr(settings, "MERCADOPAGO_TIMEOUT_SECONDS", 15))
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def get_payment(self, payment_id: str) -> Optional[Dict[str, Any]]:
        """Return the payment resource, or ``None`` when the gateway has no such payment."""

        try:
            response = self.session.get(
                f"{self.api_url}/v1/payments/{payment_id}",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise MercadoPagoError(str(exc)) from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            logger.warning(
                "mercadopago.payment_lookup_failed",
                extra={"payment_id": payment_id, "status": response.status_code},
            )
            raise MercadoPagoError(response.text)
        return _json_object(response)

    def create_preference(self, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(
                f"{self.api_url}/checkout/preferences",
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise MercadoPagoError(str(exc)) from exc
        if response.status_code >= 400:
            raise MercadoPagoError(response.text)
        data = _json_object(response)
        return {
            "preferenceId": data.get("id"),
            "initPoint": data.get("init_point"),
            "sandboxInitPoint": data.get("sandbox_init_point"),
        }


def _json_object(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise MercadoPagoError(f"Invalid JSON from Mercado Pago: {exc}") from exc
    if not isinstance(data, dict):
        raise MercadoPagoError("Unexpected response body from Mercado Pago")
    return data
