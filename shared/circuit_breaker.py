"""
Circuit breaker pattern implementation for resilient provider calls.

Breaker state is kept in process memory. Each gateway instance tracks its own
view of provider health; the worst case of that is a few duplicate probes
against a recovering provider.
"""

import time
import threading
from enum import Enum
from typing import Dict, Any, Optional, Callable

from shared.logging import get_logger


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, requests blocked
    HALF_OPEN = "half_open"  # Single probe in flight


STATE_GAUGE_VALUES = {
    CircuitBreakerState.CLOSED: 0,
    CircuitBreakerState.OPEN: 1,
    CircuitBreakerState.HALF_OPEN: 2,
}


class CircuitBreaker:
    """Circuit breaker with a single half-open probe and backed-off cooldowns."""

    def __init__(self,
                 failure_threshold: int = 3,
                 recovery_timeout: float = 60.0,
                 backoff_multiplier: float = 2.0,
                 max_recovery_timeout: float = 900.0,
                 name: str = "default",
                 clock: Callable[[], float] = time.monotonic,
                 on_state_change: Optional[Callable[["CircuitBreaker"], None]] = None):
        self.failure_threshold = max(1, failure_threshold)
        self.recovery_timeout = recovery_timeout
        self.backoff_multiplier = backoff_multiplier
        self.max_recovery_timeout = max(recovery_timeout, max_recovery_timeout)
        self.name = name
        self.logger = get_logger(f"circuit_breaker.{name}")

        self._clock = clock
        self._on_state_change = on_state_change
        self._lock = threading.RLock()

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._failed_probes = 0
        self._opened_at = 0.0
        self._cooldown = recovery_timeout
        self._probe_in_flight = False
        self._open_reason: Optional[str] = None

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._failure_count

    @property
    def opened_at(self) -> float:
        return self._opened_at

    @property
    def cooldown(self) -> float:
        return self._cooldown

    def _cooldown_remaining(self) -> float:
        return max(0.0, self._opened_at + self._cooldown - self._clock())

    def _transition(self, new_state: CircuitBreakerState) -> None:
        old_state = self._state
        self._state = new_state
        if old_state != new_state and self._on_state_change is not None:
            self._on_state_change(self)

    def _open(self, cooldown: float, reason: str) -> None:
        self._opened_at = self._clock()
        self._cooldown = cooldown
        self._open_reason = reason
        self._probe_in_flight = False
        self._transition(CircuitBreakerState.OPEN)

    def allow_request(self) -> bool:
        """
        Decide whether the protected provider may be called right now.

        An Open breaker whose cooldown has elapsed moves to HalfOpen and admits
        exactly one probe; every other caller is refused until that probe
        reports back.
        """
        with self._lock:
            if self._state == CircuitBreakerState.CLOSED:
                return True

            if self._state == CircuitBreakerState.OPEN:
                if self._cooldown_remaining() > 0:
                    return False
                self._transition(CircuitBreakerState.HALF_OPEN)
                self._probe_in_flight = True
                self.logger.info("Circuit breaker transitioning to half-open", cooldown=self._cooldown)
                return True

            # HALF_OPEN
            if self._probe_in_flight:
                return False
            self._probe_in_flight = True
            return True

    def record_success(self) -> None:
        """Record a successful call."""
        with self._lock:
            if self._state == CircuitBreakerState.HALF_OPEN:
                self._failure_count = 0
                self._failed_probes = 0
                self._probe_in_flight = False
                self._cooldown = self.recovery_timeout
                self._open_reason = None
                self._transition(CircuitBreakerState.CLOSED)
                self.logger.info("Circuit breaker reset to CLOSED after successful probe")
            elif self._state == CircuitBreakerState.CLOSED:
                self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call and update state."""
        with self._lock:
            self._failure_count += 1

            if self._state == CircuitBreakerState.HALF_OPEN:
                self._failed_probes += 1
                cooldown = min(
                    self.max_recovery_timeout,
                    self.recovery_timeout * (self.backoff_multiplier ** self._failed_probes),
                )
                self._open(cooldown, "probe_failed")
                self.logger.warning(
                    "Circuit breaker probe failed, reopening",
                    failed_probes=self._failed_probes,
                    cooldown=cooldown
                )
            elif self._state == CircuitBreakerState.CLOSED and self._failure_count >= self.failure_threshold:
                self._open(self.recovery_timeout, "failure_threshold")
                self.logger.warning(
                    "Circuit breaker opened due to failures",
                    failure_count=self._failure_count,
                    threshold=self.failure_threshold
                )

    def trip(self, cooldown: float, reason: str = "quota_exhausted") -> None:
        """Open the breaker immediately for ``cooldown`` seconds."""
        with self._lock:
            self._open(max(0.0, cooldown), reason)
            self.logger.warning("Circuit breaker tripped", reason=reason, cooldown=cooldown)

    def release(self) -> None:
        """Give back a half-open probe slot when the call ended without a verdict."""
        with self._lock:
            self._probe_in_flight = False

    def get_state(self) -> Dict[str, Any]:
        """Get current circuit breaker state."""
        with self._lock:
            retry_in = self._cooldown_remaining() if self._state == CircuitBreakerState.OPEN else 0.0
            return {
                "name": self.name,
                "state": self._state.value,
                "consecutive_failures": self._failure_count,
                "failure_threshold": self.failure_threshold,
                "cooldown_seconds": self._cooldown,
                "retry_in_seconds": round(retry_in, 3),
                "open_reason": self._open_reason,
            }


class CircuitBreakerManager:
    """Manager for multiple circuit breakers."""

    def __init__(self,
                 clock: Callable[[], float] = time.monotonic,
                 on_state_change: Optional[Callable[[CircuitBreaker], None]] = None):
        self.circuit_breakers: Dict[str, CircuitBreaker] = {}
        self.logger = get_logger("circuit_breaker_manager")
        self._clock = clock
        self._on_state_change = on_state_change

    def get_circuit_breaker(self,
                            name: str,
                            failure_threshold: int = 3,
                            recovery_timeout: float = 60.0,
                            backoff_multiplier: float = 2.0,
                            max_recovery_timeout: float = 900.0) -> CircuitBreaker:
        """Get or create a circuit breaker."""
        if name not in self.circuit_breakers:
            self.circuit_breakers[name] = CircuitBreaker(
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
                backoff_multiplier=backoff_multiplier,
                max_recovery_timeout=max_recovery_timeout,
                name=name,
                clock=self._clock,
                on_state_change=self._on_state_change,
            )
            self.logger.info("Created circuit breaker", name=name)

        return self.circuit_breakers[name]

    def get_all_states(self) -> Dict[str, Dict[str, Any]]:
        """Get states of all circuit breakers."""
        return {
            name: cb.get_state()
            for name, cb in self.circuit_breakers.items()
        }
