"""WhatsApp number handling for patient matching."""

import re

NON_DIGITS = re.compile(r"\D")


def whatsapp_key(country_code: str, number: str) -> str:
    """Build the ``+<country><local>`` key patients are matched on.

    The booking form sends the country code and the local number
    separately; a local number typed with a trunk ``0`` or an ``00``
    international prefix still maps to the same key.
    """
    digits = NON_DIGITS.sub("", number or "")
    if digits.startswith("00"):
        return "+" + digits[2:]
    prefix = NON_DIGITS.sub("", country_code or "")
    return f"+{prefix}{digits.lstrip('0')}"
