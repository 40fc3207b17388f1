"""Email canonicalisation used as the account key."""

from __future__ import annotations

from email_validator import EmailNotValidError, validate_email


def normalize_email(raw: str | None) -> str | None:
    """Validate ``raw`` as a single ``local@domain`` address and return it lowercased.

    Returns ``None`` for empty input, input with surrounding whitespace, display-name
    forms and anything the parser rejects. Deliverability (DNS) is not checked, but
    special-use domains such as ``.test``, ``.local`` and ``localhost`` are still refused,
    the same policy pydantic's ``EmailStr`` applies.
    """
    if not raw or not raw.strip() or raw != raw.strip():
        return None
    try:
        validate_email(raw, check_deliverability=False)
    except EmailNotValidError:
        return None
    return raw.lower()
