"""
Failure taxonomy for the forwarding pipeline.

Each stage raises one of these; the route handler turns them into a
plain-text response carrying the CORS header set.
"""


class ProxyError(Exception):
    """Base class for failures that terminate a proxy invocation."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(ProxyError):
    status_code = 400


class MissingParameter(ClientInputError):
    def __init__(self, message: str = "Missing ?url= parameter in proxy request."):
        super().__init__(message)


class InvalidURL(ClientInputError):
    def __init__(self, message: str = "Invalid URL format."):
        super().__init__(message)


class UnsupportedScheme(ClientInputError):
    def __init__(self, message: str = "Only HTTP/HTTPS URLs are allowed."):
        super().__init__(message)


class RedirectLimitExceeded(ProxyError):
    status_code = 508

    def __init__(self, message: str = "Too many redirects"):
        super().__init__(message)


TooManyRedirects = RedirectLimitExceeded


class UpstreamError(ProxyError):
    """The outbound call for a hop failed at the transport level."""

    def __init__(self, message: str):
        super().__init__(f"Proxy execution error: {message}")


class ClientDisconnected(ProxyError):
    """The caller went away before the upstream answered."""

    status_code = 499

    def __init__(self, message: str = "Client closed request"):
        super().__init__(message)
