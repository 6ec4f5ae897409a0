"""
Manual redirect following.

Hops go straight to an httpx transport, so no client-level redirect
handling ever inspects a 3xx. Each hop is issued from here so that Referer
and Cookie can be rebuilt from the hop before it:

- inbound headers are copied minus origin/host/cookie and hop-by-hop headers
- Referer is forced to the origin of the URL being fetched
- cookies collected so far are sent as a single Cookie header
- the inbound body goes out on the first hop only

The chain stops on the first non-redirect response, on a redirect whose
Location is missing or cannot be resolved, or after MAX_REDIRECTS hops.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Mapping, Optional

import httpx
from opentelemetry import trace

from corsproxy.forwarding.cookie_jar import CookieJar
from corsproxy.forwarding.errors import RedirectLimitExceeded, UpstreamError
from corsproxy.utils import cookie_fingerprint
from corsproxy.utils.traced_requests import traced_request
from corsproxy.vars import DEFAULT_USER_AGENT, PROXY_TIMEOUT, PROXY_VERIFY_TLS

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

MAX_REDIRECTS = 10

BODYLESS_METHODS = {"GET", "HEAD"}

# Never copied from the inbound request
STRIPPED_REQUEST_HEADERS = {"origin", "host", "cookie"}

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


@dataclass
class RedirectState:
    current_url: httpx.URL
    hop_count: int = 0


@dataclass
class RedirectOutcome:
    """Terminal hop of a chain. ``response`` is still open for streaming."""

    response: httpx.Response
    hop_count: int
    final_url: httpx.URL
    cookies: CookieJar


def create_transport() -> httpx.AsyncBaseTransport:
    return httpx.AsyncHTTPTransport(verify=PROXY_VERIFY_TLS)


def build_hop_request(
    method: str,
    url: httpx.URL,
    headers: httpx.Headers,
    body: Optional[AsyncIterator[bytes]] = None,
) -> httpx.Request:
    return httpx.Request(
        method,
        url,
        headers=headers,
        content=body,
        extensions={"timeout": httpx.Timeout(PROXY_TIMEOUT).as_dict()},
    )


def origin_referer(url: httpx.URL) -> str:
    return f"{url.scheme}://{url.netloc.decode('ascii')}/"


def is_redirect_status(status_code: int) -> bool:
    return 300 <= status_code < 400


def build_hop_headers(
    inbound_headers: Mapping[str, str],
    current_url: httpx.URL,
    cookie_header: str,
    with_body: bool = False,
) -> httpx.Headers:
    """Headers for one outbound hop."""
    headers = httpx.Headers()

    for name, value in inbound_headers.items():
        name_lower = name.lower()
        if name_lower in STRIPPED_REQUEST_HEADERS or name_lower in HOP_BY_HOP_HEADERS:
            continue
        # httpx frames the body; a stale length would stall bodiless hops
        if name_lower == "content-length" and not with_body:
            continue
        headers[name] = value

    headers["Referer"] = origin_referer(current_url)

    if cookie_header:
        headers["Cookie"] = cookie_header

    if "user-agent" not in headers:
        headers["User-Agent"] = DEFAULT_USER_AGENT

    return headers


def collect_set_cookies(response: httpx.Response, cookies: CookieJar) -> int:
    values = response.headers.get_list("set-cookie")
    for raw in values:
        cookies.record(raw)
    return len(values)


def resolve_location(
    response: httpx.Response, current_url: httpx.URL
) -> Optional[httpx.URL]:
    location = response.headers.get("location")
    if not location:
        return None
    try:
        return current_url.join(location)
    except (httpx.InvalidURL, ValueError, TypeError) as e:
        logger.warning(f"Failed to parse redirect URL {location!r}: {e}")
        return None


async def follow_redirects(
    transport: httpx.AsyncBaseTransport,
    method: str,
    inbound_headers: Mapping[str, str],
    target: httpx.URL,
    cookies: CookieJar,
    body: Optional[AsyncIterator[bytes]] = None,
) -> RedirectOutcome:
    """
    Drive the redirect chain starting at ``target``.

    Raises UpstreamError when a hop fails at the transport level and
    RedirectLimitExceeded when MAX_REDIRECTS hops all answered with a
    followable redirect.
    """
    state = RedirectState(current_url=target)
    pending_body = body if method.upper() not in BODYLESS_METHODS else None

    while state.hop_count < MAX_REDIRECTS:
        headers = build_hop_headers(
            inbound_headers,
            state.current_url,
            cookies.merged_cookie_header(),
            with_body=pending_body is not None,
        )
        request = build_hop_request(method, state.current_url, headers, pending_body)
        # The inbound stream is single-use
        pending_body = None

        with traced_request(
            tracer,
            "proxy.hop",
            str(state.current_url),
            method,
            f"Hop {state.hop_count}: {method} {state.current_url} "
            f"cookie={cookie_fingerprint(cookies.merged_cookie_header())}",
            extra_attrs={"proxy.hop": state.hop_count},
            level=logging.DEBUG,
        ) as span:
            try:
                response = await transport.handle_async_request(request)
                response.request = request
            except httpx.RequestError as e:
                span.set_attribute("proxy.error", type(e).__name__)
                raise UpstreamError(str(e) or type(e).__name__) from e

            span.set_attribute("proxy.status_code", response.status_code)
            span.set_attribute("proxy.reason_phrase", response.reason_phrase)

        received = collect_set_cookies(response, cookies)
        if received:
            logger.debug(f"Hop {state.hop_count}: recorded {received} cookie(s)")

        if not is_redirect_status(response.status_code):
            return RedirectOutcome(
                response, state.hop_count, state.current_url, cookies
            )

        location = resolve_location(response, state.current_url)
        if location is None:
            return RedirectOutcome(
                response, state.hop_count, state.current_url, cookies
            )

        # Redirect bodies are never relayed
        await response.aclose()
        state.hop_count += 1
        state.current_url = location

    raise RedirectLimitExceeded()
