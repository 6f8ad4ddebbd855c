"""
Reliability utilities.

Circuit breaker guarding calls into the backing store. Connectivity failures
are translated to StoreUnavailable; there are no retries here.
"""

import time
import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import OperationalError, InterfaceError
from taxibook.app.core.config import settings
from taxibook.app.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    If 'failure_threshold' consecutive failures occur, the circuit opens and rejects
    calls for 'reset_timeout' seconds, then lets one trial call through.
    """
    def __init__(self, failure_threshold: int = 5, reset_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    @asynccontextmanager
    async def guard(self, operation: str):
        """
        Wrap one store operation.

        Usage:
            async with store_circuit_breaker.guard("negotiation.create"):
                await db.commit()
        """
        if self.state == "OPEN":
            if time.time() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise StoreUnavailable(operation, "circuit is open")

        try:
            yield
        except (OperationalError, InterfaceError) as exc:
            self.record_failure()
            logger.error("Store operation %s failed (%s failures)", operation, self.failures)
            raise StoreUnavailable(operation) from exc

        # Any success closes a half-open circuit and clears the failure streak
        if self.state != "OPEN":
            self.reset_state()

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.time()
        if self.failures >= self.failure_threshold:
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


# Global instance shared by every store-backed service
store_circuit_breaker = CircuitBreaker(
    failure_threshold=settings.store_failure_threshold,
    reset_timeout=settings.store_reset_timeout_seconds,
)
