"""Slack Web API client with bounded retries and rate-limit handling."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import httpx

from rivalwatch.errors import DeliveryError

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"
_RATE_LIMIT_ERRORS = frozenset({"ratelimited", "rate_limited"})


def build_http_client(token: str, timeout: float = 10) -> httpx.Client:
    """Create the shared httpx client authenticated as the bot user."""
    headers = {"Content-Type": "application/json; charset=utf-8"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(base_url=SLACK_API_URL, timeout=timeout, headers=headers)


class SlackAPIError(Exception):
    """Slack answered ``ok: false`` (or a non-2xx status) for a call."""


class _RateLimited(Exception):
    def __init__(self, retry_after: Optional[float]):
        super().__init__(f"rate limited (retry after {retry_after})")
        self.retry_after = retry_after


class SlackClient:
    """Posts messages with at most ``max_attempts`` attempts per message.

    Rate-limit responses sleep for the server's Retry-After and do not use
    up an attempt; they are capped separately by ``max_rate_limit_waits``
    so a channel that is always throttled still ends in DeliveryError.
    """

    def __init__(
        self,
        http_client: httpx.Client,
        max_attempts: int = 3,
        default_retry_after: float = 1,
        max_rate_limit_waits: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.http = http_client
        self.max_attempts = max(1, max_attempts)
        self.default_retry_after = default_retry_after
        self.max_rate_limit_waits = max_rate_limit_waits
        self._sleep = sleep

    def post_message(self, channel: str, text: str, thread_ts: Optional[str] = None) -> dict:
        """Post ``text`` to ``channel`` (optionally into a thread) and return Slack's reply."""
        payload = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts

        attempt = 0
        rate_limit_waits = 0
        while True:
            try:
                return self._post("/chat.postMessage", payload)
            except _RateLimited as e:
                if rate_limit_waits >= self.max_rate_limit_waits:
                    raise DeliveryError(
                        f"Still rate limited after {rate_limit_waits} waits posting to {channel}"
                    ) from e
                rate_limit_waits += 1
                wait = e.retry_after if e.retry_after is not None else self.default_retry_after
                logger.warning(f"  [Slack] Rate limited, waiting {wait}s ({rate_limit_waits}/{self.max_rate_limit_waits})")
                self._sleep(wait)
            except (httpx.HTTPError, SlackAPIError) as e:
                attempt += 1
                if attempt >= self.max_attempts:
                    raise DeliveryError(
                        f"Posting to {channel} failed after {attempt} attempts: {e}"
                    ) from e
                backoff = 2 ** attempt
                logger.warning(f"  [Slack] Attempt {attempt}/{self.max_attempts} failed ({e}), retrying in {backoff}s")
                self._sleep(backoff)

    def _post(self, method: str, payload: dict) -> dict:
        resp = self.http.post(method, json=payload)
        if resp.status_code == 429:
            raise _RateLimited(_retry_after(resp))
        if resp.status_code >= 400:
            raise SlackAPIError(f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise SlackAPIError(f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise SlackAPIError("Unexpected response shape")
        if data.get("ok"):
            return data
        error = data.get("error", "unknown_error")
        if error in _RATE_LIMIT_ERRORS:
            raise _RateLimited(_retry_after(resp))
        raise SlackAPIError(error)


def _retry_after(resp: httpx.Response) -> Optional[float]:
    value = resp.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None
