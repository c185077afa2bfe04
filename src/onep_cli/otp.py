#!/usr/bin/env python3
"""TOTP - One-time password codes for item fields, via pyotp.

Accepts either an otpauth:// URI or a bare base32 secret, the two forms a
one-time password field can hold.
"""

import time
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlparse

import pyotp

ALGORITHMS = ("SHA1", "SHA256", "SHA512")


class InvalidSecretError(ValueError):
    """The secret is not a usable TOTP key or URI."""


def _from_uri(uri: str) -> pyotp.TOTP:
    parsed = urlparse(uri)

    if parsed.netloc != "totp":
        raise InvalidSecretError(f"Unsupported OTP type: {parsed.netloc}")

    query = []
    for key, value in parse_qsl(parsed.query):
        if key == "algorithm":
            value = value.upper()
            if value not in ALGORITHMS:
                raise InvalidSecretError(f"Unsupported algorithm: {value}")
        elif key == "secret":
            value = value.replace(" ", "").upper()
        query.append((key, value))

    try:
        return pyotp.parse_uri(parsed._replace(query=urlencode(query)).geturl())
    except ValueError as e:
        raise InvalidSecretError(f"Invalid otpauth URI: {e}") from e


def parse_secret(secret: str) -> pyotp.TOTP:
    """Build a TOTP from an otpauth:// URI or a plain base32 secret."""
    secret = secret.strip()
    if secret.lower().startswith("otpauth://"):
        totp = _from_uri(secret)
    else:
        totp = pyotp.TOTP(secret.replace(" ", "").upper())

    try:
        totp.byte_secret()
    except ValueError as e:
        # binascii.Error is a ValueError
        raise InvalidSecretError(f"Invalid base32 secret: {e}") from e

    return totp


def generate(secret: str, at: Optional[float] = None) -> str:
    """Generate the code for secret at timestamp at (default: now)."""
    totp = parse_secret(secret)
    if at is None:
        at = time.time()
    return totp.at(datetime.fromtimestamp(int(at), tz=timezone.utc))
