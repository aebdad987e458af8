"""Postal code helpers — normalisation and zip-prefix extraction."""

from __future__ import annotations

import re
from typing import Any

# Standalone digit runs only; a five-digit code wins over an earlier four-digit one.
_FIVE_DIGITS_RE = re.compile(r"(?<!\d)\d{5}(?!\d)")
_FOUR_DIGITS_RE = re.compile(r"(?<!\d)\d{4}(?!\d)")


def normalize_postal_code(raw: Any) -> str | None:
    """Pull a 4–5 digit postal code out of free text.

    Accepts values like ``"41061"``, ``" 41061 "``, ``"D-41061"`` or
    ``"41061 Mönchengladbach"``. Longer digit runs (phone numbers, house
    numbers glued to codes) are never cut down to a postal code.
    """
    if raw is None:
        return None
    text = str(raw)
    match = _FIVE_DIGITS_RE.search(text) or _FOUR_DIGITS_RE.search(text)
    return match.group(0) if match else None


def extract_postal_code(customer_data: dict | None) -> str | None:
    """Find the postal code in an intake payload.

    The intake wizard stores it either at the top level (``zip``) or nested in
    the claim block (``claim.plz``).
    """
    if not customer_data:
        return None
    raw = customer_data.get("zip")
    if not raw:
        claim = customer_data.get("claim")
        if isinstance(claim, dict):
            raw = claim.get("plz")
    return normalize_postal_code(raw)


def zip_prefix(postal_code: str | None, length: int = 2) -> str | None:
    if not postal_code or len(postal_code) < length:
        return None
    return postal_code[:length]
