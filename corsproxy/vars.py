import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "corsproxy")
PROXY_BASE_PATH = os.environ.get("PROXY_BASE_PATH", "").rstrip("/")


def _parse_timeout(raw: str):
    if not raw:
        return None
    return float(raw)


# Unset means no per-invocation bound beyond what the hosting server enforces
PROXY_TIMEOUT = _parse_timeout(os.environ.get("PROXY_TIMEOUT", ""))
PROXY_VERIFY_TLS = os.getenv("PROXY_VERIFY_TLS", "true").lower() == "true"

DEFAULT_USER_AGENT = os.getenv(
    "DEFAULT_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

# Prometheus metrics listener, separate from the proxy port; unset disables it
METRICS_PORT = int(os.environ["METRICS_PORT"]) if os.getenv("METRICS_PORT") else None
METRICS_ADDR = os.getenv("METRICS_ADDR", "0.0.0.0")
