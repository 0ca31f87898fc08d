"""
Outbound HTTP helpers shared by the Steam, ProtonDB and IsThereAnyDeal services:
JSON fetch with timeout and exponential backoff, and a sliding-window rate limiter.
"""
import logging
import threading
import time
from collections import deque
from urllib.parse import urlparse

import requests

from deckworthy.constants import USER_AGENT
from deckworthy.metrics import upstream_requests_total

logger = logging.getLogger("main")


class RequestFailed(Exception):
    """All attempts of a request failed"""

    def __init__(self, message, attempts, status_code=None):
        self.attempts = attempts
        self.status_code = status_code
        super().__init__(f"Failed after {attempts} attempts: {message}")


class HTTPStatusError(Exception):
    def __init__(self, status_code, reason):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {reason}")


def sleep(seconds):
    time.sleep(seconds)


def fetch_with_policy(
    url,
    method="GET",
    headers=None,
    params=None,
    json=None,
    retries=3,
    retry_delay=1.0,
    timeout=10.0,
    session=None,
):
    """
    Request url and return its parsed JSON body.

    Makes at most `retries` attempts in total. A non-2xx status, a transport
    error, a timeout or a body that is not JSON fails the attempt; the next
    attempt waits retry_delay * 2 ** attempt seconds (attempt is zero-based).
    Raises RequestFailed once the budget is spent.
    """
    http = session or requests
    request_headers = {"User-Agent": USER_AGENT}
    if headers:
        request_headers.update(headers)
    host = urlparse(url).hostname or "unknown"

    last_error = None
    last_status = None
    attempts = max(1, retries)

    for attempt in range(attempts):
        try:
            response = http.request(
                method, url, headers=request_headers, params=params, json=json, timeout=timeout
            )
            last_status = response.status_code
            upstream_requests_total.labels(host=host, status=str(response.status_code)).inc()
            if not 200 <= response.status_code < 300:
                raise HTTPStatusError(response.status_code, response.reason)
            return response.json()
        except requests.Timeout as e:
            last_status = None
            upstream_requests_total.labels(host=host, status="timeout").inc()
            last_error = f"Request timed out after {timeout}s ({e})"
        except requests.RequestException as e:
            # Covers connection errors and invalid JSON bodies
            if not isinstance(e, requests.JSONDecodeError):
                last_status = None
                upstream_requests_total.labels(host=host, status="error").inc()
            last_error = str(e)
        except (HTTPStatusError, ValueError) as e:
            last_error = str(e)

        logger.warning(f"Request failed (attempt {attempt + 1}/{attempts}) {method} {url}: {last_error}")

        if attempt < attempts - 1:
            sleep(retry_delay * (2 ** attempt))

    raise RequestFailed(last_error or "Unknown error", attempts, status_code=last_status)


class RateLimiter:
    """
    At most max_requests admissions in any rolling window of `period` seconds.

    Safe to share between threads: trimming the window, checking the count and
    recording the admission happen under one lock, while waiting happens
    outside it. Admission order under contention is not guaranteed.
    """

    def __init__(self, max_requests, period, clock=time.monotonic, sleep=time.sleep):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if period <= 0:
            raise ValueError("period must be positive")
        self.max_requests = max_requests
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._requests = deque()
        self._lock = threading.Lock()

    def _try_admit(self):
        """Admit now and return 0, or return how long to wait before trying again"""
        with self._lock:
            now = self._clock()
            while self._requests and now - self._requests[0] >= self.period:
                self._requests.popleft()

            if len(self._requests) < self.max_requests:
                self._requests.append(now)
                return 0

            return self.period - (now - self._requests[0])

    def acquire_slot(self):
        while True:
            wait = self._try_admit()
            if wait <= 0:
                return
            logger.debug(f"Rate limit reached ({self.max_requests}/{self.period}s), waiting {wait:.2f}s")
            self._sleep(wait)

    def execute(self, operation, *args, **kwargs):
        self.acquire_slot()
        return operation(*args, **kwargs)

    @property
    def in_window(self):
        """Number of admissions still inside the current window"""
        with self._lock:
            now = self._clock()
            return sum(1 for ts in self._requests if now - ts < self.period)
