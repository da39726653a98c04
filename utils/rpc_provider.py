import logging
import threading
import time
from typing import Callable, List, Optional

from web3 import HTTPProvider

logger = logging.getLogger(__name__)

RATE_LIMIT_TOKENS = (
    "rate limit", "too many requests", "daily request count exceeded",
    "exceeded", "request limit", "over capacity",
)
RATE_LIMIT_CODES = (-32005, -32000, 429)


class RotatingHTTPProvider(HTTPProvider):
    """
    HTTP provider that rotates between multiple RPC URLs when rate-limited
    or on connection errors. Each URL is tried at most once per request.
    """

    def __init__(self, rpc_urls: List[str], request_kwargs: Optional[dict] = None,
                 backoff: float = 0.1, sleep: Callable[[float], None] = time.sleep):
        urls = list(dict.fromkeys([u.strip() for u in rpc_urls or [] if u and u.strip()]))
        if not urls:
            raise ValueError("rpc_urls must be a non-empty list")
        super().__init__(endpoint_uri=urls[0], request_kwargs=request_kwargs)
        self._urls: List[str] = urls
        self._idx: int = 0
        self._lock = threading.Lock()
        self.backoff = backoff
        self._sleep = sleep

    @property
    def current_url(self) -> str:
        with self._lock:
            return self._urls[self._idx]

    def _advance(self) -> None:
        with self._lock:
            self._idx = (self._idx + 1) % len(self._urls)
            self.endpoint_uri = self._urls[self._idx]

    def _should_rotate_on_error(self, error_obj) -> bool:
        if not isinstance(error_obj, dict):
            return False
        msg = str(error_obj.get("message", "")).lower()
        if any(tok in msg for tok in RATE_LIMIT_TOKENS):
            return True
        return error_obj.get("code") in RATE_LIMIT_CODES

    def make_request(self, method, params):  # type: ignore[override]
        last_exc: Optional[BaseException] = None
        last_error_resp: Optional[dict] = None

        for _ in range(len(self._urls)):
            url = self.current_url
            try:
                response = super().make_request(method, params)
            except Exception as e:  # connection errors, timeouts
                logger.warning("RPC %s failed on %s: %s", method, url, e)
                last_exc = e
                self._advance()
                self._sleep(self.backoff)
                continue

            if isinstance(response, dict) and self._should_rotate_on_error(response.get("error")):
                logger.warning("RPC %s rate limited on %s, rotating", method, url)
                last_error_resp = response
                self._advance()
                self._sleep(self.backoff)
                continue
            return response

        if last_exc is not None:
            raise last_exc
        return last_error_resp if last_error_resp is not None else {
            "error": {"code": 429, "message": "All RPC URLs rate limited or failed"}
        }
