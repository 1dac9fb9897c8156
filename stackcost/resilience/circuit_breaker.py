"""
Circuit breaker for upstream pricing sources.
Stops hammering a failing price feed and fails fast until it has had time to recover.
"""
from enum import Enum
from typing import Callable, Dict, Optional
import logging
import time


logger = logging.getLogger(__name__)


FAILURE_THRESHOLD = 3  # Consecutive failures before opening
OPEN_STATE_DURATION = 60.0  # Seconds OPEN before a trial request is allowed
HALF_OPEN_MAX_REQUESTS = 1  # Trial requests allowed while HALF_OPEN


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Requests pass through
    OPEN = "open"  # Failing fast
    HALF_OPEN = "half_open"  # Probing for recovery


class CircuitBreakerOpenError(Exception):
    """Raised by CircuitBreaker.check() while requests are being rejected."""

    def __init__(self, service_name: str):
        super().__init__(f"{service_name} temporarily unavailable (circuit breaker open)")
        self.service_name = service_name


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    CLOSED -> OPEN after `failure_threshold` consecutive failures.
    OPEN -> HALF_OPEN once `open_duration` seconds have passed.
    HALF_OPEN -> CLOSED on a successful trial, back to OPEN on a failed one.
    """

    def __init__(
        self,
        service_name: str,
        failure_threshold: int = FAILURE_THRESHOLD,
        open_duration: float = OPEN_STATE_DURATION,
        half_open_max_requests: int = HALF_OPEN_MAX_REQUESTS,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            service_name: Name used in logs (e.g., "aws_bulk_pricing")
            failure_threshold: Consecutive failures before opening
            open_duration: Seconds to stay OPEN
            half_open_max_requests: Trial requests allowed in HALF_OPEN
            clock: Monotonic time source, injectable for tests
        """
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.open_duration = open_duration
        self.half_open_max_requests = half_open_max_requests
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self.half_open_requests = 0

    def allow_request(self) -> bool:
        """
        Check whether a request may proceed, moving OPEN -> HALF_OPEN when due.

        Returns:
            True if the caller may call upstream
        """
        if self.state == CircuitState.OPEN:
            if self.opened_at is not None and self._clock() - self.opened_at >= self.open_duration:
                logger.warning(f"Circuit breaker for {self.service_name}: OPEN -> HALF_OPEN (testing recovery)")
                self.state = CircuitState.HALF_OPEN
                self.half_open_requests = 0
            else:
                return False

        if self.state == CircuitState.HALF_OPEN:
            if self.half_open_requests < self.half_open_max_requests:
                self.half_open_requests += 1
                return True
            return False

        return True

    def check(self) -> None:
        """
        Raise if the request must not proceed.

        Raises:
            CircuitBreakerOpenError: If the breaker rejects the request
        """
        if not self.allow_request():
            raise CircuitBreakerOpenError(self.service_name)

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"Circuit breaker for {self.service_name}: HALF_OPEN -> CLOSED (service recovered)")
        self._close()

    def record_failure(self) -> None:
        self.failure_count += 1

        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"Circuit breaker for {self.service_name}: HALF_OPEN -> OPEN (service still failing)")
            self._open()
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                f"Circuit breaker for {self.service_name}: "
                f"CLOSED -> OPEN ({self.failure_count} consecutive failures)"
            )
            self._open()

    def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        self._close()

    def current_state(self) -> CircuitState:
        return self.state

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = self._clock()
        self.half_open_requests = 0

    def _close(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at = None
        self.half_open_requests = 0


# One breaker per upstream service, shared by every client of that service
_circuit_breakers: Dict[str, CircuitBreaker] = {}


def get_circuit_breaker(service_name: str) -> CircuitBreaker:
    """
    Get or create the shared breaker for a service.

    Args:
        service_name: Name of the upstream service

    Returns:
        CircuitBreaker instance for the service
    """
    if service_name not in _circuit_breakers:
        _circuit_breakers[service_name] = CircuitBreaker(service_name)
    return _circuit_breakers[service_name]


def reset_circuit_breakers() -> None:
    """Reset every shared breaker to CLOSED."""
    for breaker in _circuit_breakers.values():
        breaker.reset()
