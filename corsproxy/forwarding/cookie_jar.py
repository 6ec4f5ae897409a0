from typing import List


class CookieJar:
    """
    Per-invocation accumulator of cookies seen across a redirect chain.

    Keeps every raw Set-Cookie value for the caller and a merged
    ``name=value; name=value`` string that is sent upstream on each hop.
    Values are appended as observed; a name set twice appears twice.
    """

    def __init__(self, initial: str = ""):
        self._raw: List[str] = []
        self._merged = ""
        self.seed(initial)

    def seed(self, initial: str) -> None:
        self._merged = initial or ""

    def record(self, raw_set_cookie: str) -> None:
        self._raw.append(raw_set_cookie)
        pair = raw_set_cookie.split(";", 1)[0]
        if self._merged:
            self._merged = f"{self._merged}; {pair}"
        else:
            self._merged = pair

    def exposed_sequence(self) -> List[str]:
        return list(self._raw)

    def merged_cookie_header(self) -> str:
        return self._merged

    def __len__(self) -> int:
        return len(self._raw)
