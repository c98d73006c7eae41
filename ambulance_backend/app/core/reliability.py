"""
Reliability utilities.

Circuit breaker guarding calls to the Redis change relay.
"""

import logging
import time
from typing import Callable, Any

logger = logging.getLogger(__name__)


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    After 'failure_threshold' failures in a row the circuit opens and
    rejects calls. Once 'reset_timeout' seconds have passed since the last
    failure, one trial call is let through (HALF_OPEN): success closes the
    circuit, failure opens it again.
    """
    def __init__(self, name: str = "default", failure_threshold: int = 5, reset_timeout: int = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    @property
    def retry_after(self) -> float:
        """Seconds until a trial call is allowed; 0 unless open."""
        if self.state != "OPEN":
            return 0
        return max(0.0, self.reset_timeout - (time.time() - self.last_failure_time))

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if self.retry_after > 0:
                raise CircuitOpenError(f"Circuit {self.name} is OPEN")
            self.state = "HALF_OPEN"

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        if self.failures:
            self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.time()
        if self.state != "OPEN" and (self.failures >= self.failure_threshold or self.state == "HALF_OPEN"):
            logger.warning("Circuit %s opened after %d failures", self.name, self.failures)
            self.state = "OPEN"

    def reset_state(self):
        if self.state != "CLOSED":
            logger.info("Circuit %s closed", self.name)
        self.failures = 0
        self.state = "CLOSED"
