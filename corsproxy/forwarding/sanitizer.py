from dataclasses import dataclass

import httpx
from fastapi import Request

from corsproxy.forwarding.errors import InvalidURL, MissingParameter, UnsupportedScheme

ALLOWED_SCHEMES = {"http", "https"}
FORWARDED_COOKIE_HEADER = "X-Forwarded-Cookie"


@dataclass
class SanitizedRequest:
    target: httpx.URL
    seed_cookie: str


def parse_target_url(raw: str) -> httpx.URL:
    """Parse ``raw`` as an absolute URL and enforce the http(s) scheme."""
    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidURL() from e

    scheme = url.scheme.lower()
    if not scheme:
        raise InvalidURL()
    if scheme not in ALLOWED_SCHEMES:
        raise UnsupportedScheme()
    if not url.host:
        raise InvalidURL()
    if scheme != url.scheme:
        url = url.copy_with(scheme=scheme)
    return url


def sanitize_request(request: Request) -> SanitizedRequest:
    # First occurrence wins when the parameter is repeated
    values = request.query_params.getlist("url")
    target = values[0] if values else None
    if not target:
        raise MissingParameter()

    return SanitizedRequest(
        target=parse_target_url(target),
        seed_cookie=request.headers.get(FORWARDED_COOKIE_HEADER, ""),
    )
