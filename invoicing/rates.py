"""Rate normalization and line text helpers.

Record-store values arrive in several shapes: a number, a numeric string, or
a lookup/rollup list whose first element carries the value. These helpers
turn them into the Decimal and text the composer needs.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal("0")


def normalize_rate(value: Any) -> Decimal:
    """Normalize a rate field to a Decimal.

    normalize_rate(None) == 0
    normalize_rate([]) == 0
    normalize_rate([7.5, 9]) == Decimal("7.5")
    normalize_rate("12.3") == Decimal("12.3")

    Non-numeric, NaN and infinite values normalize to 0.
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, (list, tuple)):
        return normalize_rate(value[0]) if value else ZERO

    if isinstance(value, Decimal):
        rate = value
    elif isinstance(value, (int, float)):
        rate = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            rate = Decimal(text)
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    return rate if rate.is_finite() else ZERO


def extract_lookup(value: Any) -> Optional[str]:
    """First non-empty text of a scalar or lookup-list field.

    Collaborator/link objects contribute their ``name``.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        for item in value:
            text = extract_lookup(item)
            if text:
                return text
        return None
    if isinstance(value, dict):
        return extract_lookup(value.get("name"))
    text = str(value).strip()
    return text or None


def build_line_description(
    kind: str,
    leg_label: str,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
) -> str:
    """Line text of the form ``"<kind> <leg> – <origin> → <destination>"``.

    Segments whose value is unavailable are omitted.
    """
    description = f"{kind} {leg_label}".strip()
    if origin:
        description += f" – {origin}"
    if destination:
        description += f" → {destination}"
    return description
