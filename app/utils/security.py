"""
Security utilities.

Webhook signature checks and masking of sensitive values in logs.
"""

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def sign_payload(payload: bytes | str, secret: str) -> str:
    """
    Compute the signature header value for a payload.

    Examples:
        >>> sign_payload(b"{}", "secret")[:7]
        'sha256='
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    digest = hmac.new(
        secret.encode("utf-8"), payload, hashlib.sha256
    ).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(
    payload: bytes | str, signature: str | None, secret: str | None
) -> bool:
    """
    Check a ``sha256=<hex>`` HMAC signature in constant time.

    Args:
        payload: Raw request body
        signature: Value of the signature header
        secret: Shared webhook secret

    Returns:
        True if the signature matches; False for a missing secret,
        missing signature or wrong prefix
    """
    if not secret or not signature:
        return False
    if not signature.startswith(SIGNATURE_PREFIX):
        return False
    expected = sign_payload(payload, secret)
    return hmac.compare_digest(expected, signature)


def mask_sensitive(value: str | None, show_chars: int = 4) -> str:
    """
    Mask sensitive string (secrets, signatures).

    Examples:
        >>> mask_sensitive("sha256=abcdef0123456789")
        'sha2...6789'
        >>> mask_sensitive(None)
        '***'
    """
    if not value or len(value) <= show_chars * 2:
        return "***"
    return f"{value[:show_chars]}...{value[-show_chars:]}"
