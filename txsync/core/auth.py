"""HMAC-SHA256 signatures for translation platform webhooks."""

import base64
import hashlib
import hmac
from collections.abc import Mapping

SIGNATURE_HEADER = "X-TX-Signature-V2"
URL_HEADER = "X-TX-Url"
DATE_HEADER = "Date"


def build_string_to_sign(method: str, url: str, date: str, body: bytes) -> str:
    """Build the canonical string the platform signs.

    The format is exactly::

        METHOD + '\\n' + url + '\\n' + date + '\\n' + md5_hex(body)

    with no trailing newline. The method is upper-cased; url and date are
    used verbatim as received in their headers.
    """
    body_md5 = hashlib.md5(body).hexdigest()
    return f"{method.upper()}\n{url}\n{date}\n{body_md5}"


def compute_signature(secret: str, method: str, url: str, date: str, body: bytes) -> str:
    """Compute the base64-encoded HMAC-SHA256 signature for a delivery."""
    string_to_sign = build_string_to_sign(method, url, date, body)
    signature = hmac.new(
        secret.encode("utf-8"),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(signature).decode("utf-8")


def _header(headers: Mapping[str, str], name: str) -> str:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return ""


def verify_signature(
    headers: Mapping[str, str],
    body: bytes,
    secret: str,
    method: str = "POST",
) -> bool:
    """Check a delivery's signature header against a recomputed one.

    Args:
        headers: Request headers (matched case-insensitively)
        body: Raw request body
        secret: Shared webhook secret
        method: HTTP method of the delivery

    Returns:
        False when the signature, url or date header or the body is missing,
        or when the signatures differ
    """
    signature = _header(headers, SIGNATURE_HEADER)
    url = _header(headers, URL_HEADER)
    date = _header(headers, DATE_HEADER)

    if not (signature and url and date and body and secret):
        return False

    expected = compute_signature(secret, method, url, date, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
