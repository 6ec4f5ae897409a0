import logging
from typing import AsyncIterator, Optional

import anyio
import httpx
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from opentelemetry import trace

from corsproxy.forwarding.assembler import CORS_HEADERS, assemble_response
from corsproxy.forwarding.cookie_jar import CookieJar
from corsproxy.forwarding.errors import (
    ClientDisconnected,
    ClientInputError,
    ProxyError,
)
from corsproxy.forwarding.redirect_loop import (
    BODYLESS_METHODS,
    RedirectOutcome,
    create_transport,
    follow_redirects,
)
from corsproxy.forwarding.sanitizer import sanitize_request
from corsproxy.utils import cookie_fingerprint
from corsproxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from corsproxy.vars import PROXY_BASE_PATH

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

if PROXY_BASE_PATH:
    logger.info(f"Using PROXY_BASE_PATH: {PROXY_BASE_PATH}")
else:
    logger.info("No PROXY_BASE_PATH set, using root path")


def error_response(status_code: int, message: str) -> PlainTextResponse:
    """Plain-text error that browsers on other origins can still read."""
    return PlainTextResponse(message, status_code=status_code, headers=CORS_HEADERS)


def preflight_response() -> Response:
    return Response(status_code=204, headers=CORS_HEADERS)


async def stream_then_signal(
    request: Request, body_done: anyio.Event
) -> AsyncIterator[bytes]:
    async for chunk in request.stream():
        yield chunk
    body_done.set()


async def watch_disconnect(
    request: Request, body_done: anyio.Event, scope: anyio.CancelScope
) -> None:
    """
    Cancel ``scope`` once the caller disconnects.

    Starlette does not cancel a handler when its client goes away, so the
    ASGI receive channel is polled here. Polling only starts after the
    inbound body has been handed to the first hop; until then the body
    messages belong to that stream.
    """
    await body_done.wait()
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            logger.info("Client disconnected, cancelling outbound request")
            scope.cancel()
            return


async def follow_until_disconnect(
    request: Request,
    transport: httpx.AsyncBaseTransport,
    target: httpx.URL,
    cookies: CookieJar,
) -> RedirectOutcome:
    body_done = anyio.Event()
    if request.method.upper() in BODYLESS_METHODS:
        body_done.set()

    outcome: Optional[RedirectOutcome] = None
    failure: Optional[Exception] = None
    async with anyio.create_task_group() as tg:
        tg.start_soon(watch_disconnect, request, body_done, tg.cancel_scope)
        # Captured so the original exception escapes, not an ExceptionGroup
        try:
            outcome = await follow_redirects(
                transport,
                request.method,
                request.headers,
                target,
                cookies,
                body=stream_then_signal(request, body_done),
            )
        except Exception as e:
            failure = e
        tg.cancel_scope.cancel()

    if failure is not None:
        raise failure
    if outcome is None:
        raise ClientDisconnected()
    return outcome


async def forward_request(request: Request) -> Response:
    """
    Fetch the URL named by the ``url`` query parameter, following redirects
    by hand, and relay the terminal response with CORS headers attached.
    """
    if request.method == "OPTIONS":
        return preflight_response()

    with tracer.start_as_current_span("proxy_request") as span:
        span.set_attribute("proxy.method", request.method)

        try:
            sanitized = sanitize_request(request)
        except ClientInputError as e:
            logger.info(f"Rejected proxy request: {e.message}")
            span.set_attribute("proxy.error", type(e).__name__)
            return error_response(e.status_code, e.message)

        target = str(sanitized.target)
        span.set_attribute("proxy.target_url", target)
        logger.info(
            f"Proxying {request.method} {target} "
            f"seed_cookie={cookie_fingerprint(sanitized.seed_cookie)}"
        )

        cookies = CookieJar(sanitized.seed_cookie)
        transport = create_transport()
        handed_off = False
        try:
            outcome = await follow_until_disconnect(
                request, transport, sanitized.target, cookies
            )
            span.set_attribute("proxy.status_code", outcome.response.status_code)
            span.set_attribute("proxy.redirect_count", outcome.hop_count)
            logger.info(
                f"Proxied {target} -> {outcome.final_url} "
                f"status={outcome.response.status_code} redirects={outcome.hop_count}"
            )
            response = assemble_response(outcome, transport)
            handed_off = True
            return response

        except ProxyError as e:
            logger.warning(f"Proxy request for {target} failed: {e.message}")
            span.set_attribute("proxy.error", type(e).__name__)
            return error_response(e.status_code, e.message)

        except Exception as e:
            log_exception_with_details(
                logger,
                "[Proxy]",
                e,
                secret=cookies.merged_cookie_header(),
            )
            span.set_attribute("proxy.error", type(e).__name__)
            return error_response(
                500, f"Proxy execution error: {format_exception_message(e)}"
            )

        finally:
            if not handed_off:
                await transport.aclose()


async def proxy_all(request: Request) -> Response:
    """Catch-all endpoint; the path itself is ignored, the target comes from ``?url=``."""
    return await forward_request(request)


# A plain route with no method list accepts any verb, WebDAV ones included
router.add_route(f"{PROXY_BASE_PATH}/{{path:path}}", proxy_all)
