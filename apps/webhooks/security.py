"""Mercado Pago ``x-signature`` validation."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional, Tuple

from django.conf import settings

logger = logging.getLogger(__name__)


def parse_signature_header(value: str | None) -> Optional[Tuple[str, str]]:
    """Split ``ts=...,v1=...`` into ``(ts, v1)``."""

    ts = digest = None
    for part in (value or "").split(","):
        key, _sep, item = part.strip().partition("=")
        if key == "ts":
            ts = item
        elif key == "v1":
            digest = item
    if not ts or not digest:
        return None
    return ts, digest


def build_manifest(data_id: str, request_id: str, ts: str) -> str:
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


def compute_signature(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()


def validate_signature(
    x_signature: str | None,
    x_request_id: str | None,
    data_id: str | None,
    secret: str | None = None,
) -> bool:
    secret = secret if secret is not None else getattr(settings, "MERCADOPAGO_WEBHOOK_SECRET", "")
    if not secret or not x_request_id or not data_id:
        return False
    parsed = parse_signature_header(x_signature)
    if parsed is None:
        logger.warning("webhook.signature_malformed")
        return False
    ts, provided = parsed
    expected = compute_signature(secret, build_manifest(str(data_id), x_request_id, ts))
    return hmac.compare_digest(expected, provided)
