"""Rate limiting configuration using slowapi."""

import ipaddress

from slowapi import Limiter
from starlette.requests import Request

from app.core.config import settings


def _valid_ip(value: str) -> str | None:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def get_client_ip(request: Request) -> str:
    """Extract the real client IP behind a reverse proxy.

    Proxy headers that don't hold a valid address are ignored, so the
    result always fits an IPv6-sized column.
    """
    forwarded = request.headers.get("X-Forwarded-For", "").split(",")[0]
    return (
        _valid_ip(forwarded)
        or _valid_ip(request.headers.get("X-Real-IP", ""))
        or (request.client.host if request.client else "127.0.0.1")
    )


# Applied to every route; login and subscribe carry tighter limits of their own
limiter = Limiter(key_func=get_client_ip, default_limits=[settings.rate_limit_default])
