"""
Canonical public frontend base URL for checkout redirects, canonical links and the sitemap.
"""
import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def get_public_app_url() -> str:
    """
    Return normalized public frontend base URL (no trailing slash).
    Fallback order: FRONTEND_PUBLIC_URL, PUBLIC_APP_URL, FRONTEND_URL, then http://localhost:3000.
    Non-localhost http URLs are upgraded to https.
    """
    raw = (
        (os.getenv("FRONTEND_PUBLIC_URL") or "").strip()
        or (os.getenv("PUBLIC_APP_URL") or "").strip()
        or (os.getenv("FRONTEND_URL") or "").strip()
    )
    raw = raw.rstrip("/")
    if not raw:
        return "http://localhost:3000"
    if raw.startswith("http://") and "localhost" not in raw:
        raw = "https://" + raw.split("://", 1)[1]
    return raw


def get_allowed_origins() -> set:
    """The public app URL plus every explicit CORS_ORIGINS entry ("*" grants nothing here)."""
    allowed = {get_public_app_url()}
    for entry in (os.getenv("CORS_ORIGINS") or "").split(","):
        entry = entry.strip().rstrip("/")
        if entry and entry != "*":
            allowed.add(entry)
    return allowed


def resolve_origin(origin_header: Optional[str]) -> str:
    """Use the request Origin when it is an allowed origin, else the configured public URL."""
    origin = (origin_header or "").strip().rstrip("/")
    if origin in get_allowed_origins():
        return origin
    if origin:
        logger.warning("Ignoring Origin header not in allowed origins: %s", origin)
    return get_public_app_url()
