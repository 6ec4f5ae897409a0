from .cookie_jar import CookieJar
from .errors import (
    ClientDisconnected,
    ClientInputError,
    InvalidURL,
    MissingParameter,
    ProxyError,
    RedirectLimitExceeded,
    TooManyRedirects,
    UnsupportedScheme,
    UpstreamError,
)
from .redirect_loop import MAX_REDIRECTS, RedirectOutcome, follow_redirects
from .sanitizer import SanitizedRequest, sanitize_request

__all__ = [
    "CookieJar",
    "ClientDisconnected",
    "ClientInputError",
    "InvalidURL",
    "MissingParameter",
    "ProxyError",
    "RedirectLimitExceeded",
    "TooManyRedirects",
    "UnsupportedScheme",
    "UpstreamError",
    "MAX_REDIRECTS",
    "RedirectOutcome",
    "follow_redirects",
    "SanitizedRequest",
    "sanitize_request",
]
