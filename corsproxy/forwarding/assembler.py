import logging
from typing import AsyncIterator, Dict, Iterable, Optional

import httpx
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.datastructures import MutableHeaders

from corsproxy.forwarding.redirect_loop import HOP_BY_HOP_HEADERS, RedirectOutcome

logger = logging.getLogger("uvicorn.error")

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Forwarded-Cookie, Authorization",
    "Access-Control-Expose-Headers": (
        "X-Set-Cookie, Date, Content-Length, X-Redirect-Count, X-Final-URL"
    ),
    "Access-Control-Max-Age": "86400",
}

# httpx hands out the decoded body, so the origin's encoding no longer applies
STRIPPED_RESPONSE_HEADERS = {"set-cookie", "content-encoding"}


def apply_response_headers(
    target: MutableHeaders,
    upstream_headers: httpx.Headers,
    hop_count: int,
    final_url: str,
    exposed_cookies: Iterable[str],
) -> MutableHeaders:
    """
    Merge the terminal hop's headers into ``target``.

    Set-Cookie values from every hop are re-exposed as X-Set-Cookie, the
    CORS header set overrides whatever the origin sent, and the redirect
    debug headers are added when at least one redirect was followed.
    """
    was_encoded = "content-encoding" in upstream_headers

    for name, value in upstream_headers.multi_items():
        name_lower = name.lower()
        if name_lower in STRIPPED_RESPONSE_HEADERS or name_lower in HOP_BY_HOP_HEADERS:
            continue
        # Length of the encoded payload, not of what we stream
        if name_lower == "content-length" and was_encoded:
            continue
        target.append(name, value)

    for raw_cookie in exposed_cookies:
        target.append("X-Set-Cookie", raw_cookie)

    for name, value in CORS_HEADERS.items():
        target[name] = value

    if hop_count > 0:
        target["X-Redirect-Count"] = str(hop_count)
        target["X-Final-URL"] = final_url

    return target


async def stream_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Stream the terminal hop's body without buffering it."""
    async for chunk in response.aiter_bytes():
        yield chunk


async def close_upstream(
    response: httpx.Response, transport: Optional[httpx.AsyncBaseTransport] = None
) -> None:
    await response.aclose()
    if transport is not None:
        await transport.aclose()


def assemble_response(
    outcome: RedirectOutcome, transport: Optional[httpx.AsyncBaseTransport] = None
) -> StreamingResponse:
    upstream = outcome.response
    response = StreamingResponse(
        stream_body(upstream),
        status_code=upstream.status_code,
        background=BackgroundTask(close_upstream, upstream, transport),
    )
    apply_response_headers(
        response.headers,
        upstream.headers,
        outcome.hop_count,
        str(outcome.final_url),
        outcome.cookies.exposed_sequence(),
    )
    logger.debug(
        f"Assembled {upstream.status_code} response after {outcome.hop_count} "
        f"redirect(s) with {len(outcome.cookies)} exposed cookie(s)"
    )
    return response
