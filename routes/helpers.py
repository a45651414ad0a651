"""
Request helpers shared by the route blueprints.
"""

from typing import Optional

import bleach
from flask import request

MAX_LABEL_LENGTH = 100


def get_client_ip() -> str:
    """
    Originating client IP.

    Prefers the first hop of X-Forwarded-For, then X-Real-IP, then the
    socket peer address.
    """
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return request.remote_addr or "unknown"


def sanitize_text(text: Optional[str], max_length: int = None) -> str:
    """Sanitize user input text."""
    if not text:
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def json_body() -> dict:
    """Request JSON as a dict; empty for a missing or non-object body."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}
