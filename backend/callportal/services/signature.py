"""
Twilio Webhook Signature Verification

Status callbacks are signed with HMAC-SHA1 keyed by the account auth token.
The signed string is the full callback URL (origin, path and query exactly as
received) followed by the POST parameter values in sorted-key order, with no
separators. The base64 digest arrives in the X-Twilio-Signature header.
"""

import base64
import hashlib
import hmac
import logging
from typing import Dict, Optional
from urllib.parse import parse_qsl

from fastapi import Request

from callportal.services.exceptions import AuthenticationError, SecretNotConfiguredError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Twilio-Signature"


def parse_form_body(raw_body: bytes) -> Dict[str, str]:
    """Parse a form-encoded body into a flat dict. Repeated keys keep the last value."""
    return dict(parse_qsl(raw_body.decode("utf-8", errors="replace"), keep_blank_values=True))


def build_signing_base(url: str, params: Dict[str, str]) -> str:
    return url + "".join(params[key] for key in sorted(params))


def compute_signature(url: str, params: Dict[str, str], secret: str) -> str:
    digest = hmac.new(
        secret.encode("utf-8"),
        build_signing_base(url, params).encode("utf-8"),
        hashlib.sha1,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(url: str, params: Dict[str, str], signature: Optional[str], secret: str) -> None:
    """
    Check a webhook signature.

    Raises:
        SecretNotConfiguredError: if no shared secret is configured
        AuthenticationError: if the signature is missing or does not match
    """
    if not secret:
        logger.error("Twilio auth token not configured, rejecting webhook")
        raise SecretNotConfiguredError("Twilio auth token not configured")

    if not signature:
        logger.warning(f"Webhook missing {SIGNATURE_HEADER} header for {url}")
        raise AuthenticationError("Missing Twilio signature")

    expected = compute_signature(url, params, secret)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        logger.warning(f"Invalid Twilio signature rejected for {url}")
        raise AuthenticationError("Invalid Twilio signature")


def get_public_url(request: Request, public_base_url: str = "") -> str:
    """
    Get the URL the provider signed.

    Handles reverse proxy scenarios by checking X-Forwarded headers, since
    Twilio signs against the public URL, not the internal one.
    """
    path = request.url.path
    query = request.url.query

    if public_base_url:
        url = f"{public_base_url.rstrip('/')}{path}"
    else:
        forwarded_proto = request.headers.get("x-forwarded-proto", "")
        forwarded_host = request.headers.get("x-forwarded-host", "")
        if not (forwarded_proto and forwarded_host):
            return str(request.url)
        url = f"{forwarded_proto}://{forwarded_host}{path}"

    if query:
        url = f"{url}?{query}"
    return url
