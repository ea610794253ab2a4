"""
gateway.py
──────────
Pacing and retry for outbound calls.

Every mutating call to the platform goes through Gateway.mutate(), which
sleeps a fixed pacing delay after the call whether it worked or not.  A
"too many requests" answer is retried with a linearly growing delay
(attempt × base_delay) up to RetryPolicy.attempts tries, then surfaces as
RateLimitError.  Nothing else in the project retries on its own.
"""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Callable

import requests

from errors import PerItemCreateError, PlatformError, RateLimitError, TooManyRequests

log = logging.getLogger("guild_backup.gateway")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 1.5  # seconds, multiplied by the attempt number
    pace: float = 0.055  # seconds slept after every mutating call


PLATFORM_POLICY = RetryPolicy(attempts=3, base_delay=1.5, pace=0.055)
TRANSLATION_POLICY = RetryPolicy(attempts=3, base_delay=1.5, pace=0.0)


class Gateway:
    def __init__(
        self,
        policy: RetryPolicy = PLATFORM_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.policy = policy
        self.sleep = sleep
        self.calls = 0  # attempts issued, retries included

    def call(self, label: str, fn: Callable, *args, **kwargs):
        """Run fn with rate-limit backoff.  Other failures become PerItemCreateError."""
        for attempt in range(1, self.policy.attempts + 1):
            self.calls += 1
            try:
                return fn(*args, **kwargs)
            except TooManyRequests:
                wait = attempt * self.policy.base_delay
                log.warning("%s: rate-limited (attempt %d/%d), waiting %.1fs",
                            label, attempt, self.policy.attempts, wait)
                self.sleep(wait)
            except (PlatformError, requests.RequestException) as exc:
                raise PerItemCreateError(label, str(exc)) from exc
        raise RateLimitError(label, self.policy.attempts)

    def mutate(self, label: str, fn: Callable, *args, **kwargs):
        """call(), followed by the pacing delay regardless of outcome."""
        try:
            return self.call(label, fn, *args, **kwargs)
        finally:
            if self.policy.pace:
                self.sleep(self.policy.pace)


def translate_with_retry(
    translator: Callable[[str, str], str],
    text: str,
    target: str,
    gateway: Gateway | None = None,
) -> str:
    """
    Guard a translation-service call with the same backoff as platform calls.
    The translator must raise TooManyRequests when the service throttles.
    """
    gateway = gateway or Gateway(TRANSLATION_POLICY)
    return gateway.call(f"translate → {target}", translator, text, target)
