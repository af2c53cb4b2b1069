"""Challenge-response authentication for the Identify message."""

from __future__ import annotations

import base64
import hashlib


def _b64_sha256(value: str) -> str:
    return base64.b64encode(hashlib.sha256(value.encode("utf-8")).digest()).decode("ascii")


def compute_auth_response(secret: str, challenge: str, salt: str) -> str:
    """base64(sha256(base64(sha256(secret + salt)) + challenge))"""
    return _b64_sha256(_b64_sha256(secret + salt) + challenge)


__all__ = ["compute_auth_response"]
