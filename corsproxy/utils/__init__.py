import hashlib
from typing import Optional


def mask_value(text: str, secret: Optional[str]) -> str:
    return text.replace(secret, f"{secret[:4]}****") if secret else text


def cookie_fingerprint(cookie: Optional[str]) -> str:
    """Provide a stable, low-leak cookie identifier for logs."""
    if not cookie:
        return "<empty>"
    digest = hashlib.sha256(cookie.encode("utf-8")).hexdigest()[:12]
    names = [pair.split("=", 1)[0].strip() for pair in cookie.split(";")]
    return f"len={len(cookie)} sha256={digest} names={','.join(n for n in names if n)}"
