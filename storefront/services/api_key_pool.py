"""
API Key Pool

Manages multiple Gemini API keys with round-robin rotation, rate limit
cooldowns and health monitoring.

Rotation policy:
- The active key is dispensed until it becomes unhealthy
- Then the pool advances round-robin from the active index, skipping
  keys that are in cooldown, over the failure ceiling or auth-failed
- If nothing is healthy, a key whose cooldown has already expired is
  recovered and dispensed (last resort before NoHealthyCredentialError).
  Snapshots count such keys as healthy, since the next request may use them

Failure handling:
- RATE_LIMITED: exponential cooldown, base * 2**(failures-1), capped
- AUTH_ERROR:   key is dead until reset() (never heals on its own)
- UNKNOWN:      short fixed cooldown

All state is in-memory for the lifetime of the process. Methods never
await, so each call is atomic with respect to the event loop. Cooldowns
only ever extend and the auth-failed flag is sticky, so failure reports
from concurrent requests commute.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from storefront.config import settings
from storefront.utils.exceptions import (
    ConfigurationError,
    FailureKind,
    NoHealthyCredentialError,
)

logger = logging.getLogger(__name__)


@dataclass
class Credential:
    """A single upstream API key and its usage/health counters."""
    index: int
    secret: str
    call_count: int = 0
    error_count: int = 0
    consecutive_failures: int = 0
    last_used: Optional[float] = None
    cooldown_until: Optional[float] = None
    rate_limited: bool = False
    auth_failed: bool = False


@dataclass(frozen=True)
class KeyHealth:
    """Read-only health view of one key (secret masked)."""
    index: int
    masked_key: str
    call_count: int
    is_active: bool
    is_healthy: bool
    rate_limited: bool
    cooldown_remaining: Optional[int]


@dataclass(frozen=True)
class PoolHealthSnapshot:
    """Read-only health view of the whole pool."""
    total_keys: int
    active_key_index: int
    last_rotation: Optional[datetime]
    keys: List[KeyHealth] = field(default_factory=list)

    @property
    def healthy_keys(self) -> int:
        return sum(1 for key in self.keys if key.is_healthy)


def mask_key(secret: str) -> str:
    """Show only the first and last 4 characters of a key."""
    if len(secret) <= 8:
        return "****"
    return secret[:4] + "****" + secret[-4:]


class ApiKeyPool:
    """Round-robin pool of API keys with per-key health tracking."""

    def __init__(
        self,
        secrets: Sequence[str],
        *,
        clock: Callable[[], float] = time.time,
        failure_ceiling: int = 3,
        rate_limit_base_cooldown: float = 60.0,
        rate_limit_max_cooldown: float = 900.0,
        unknown_failure_cooldown: float = 30.0,
    ):
        self._clock = clock
        self.failure_ceiling = failure_ceiling
        self.rate_limit_base_cooldown = rate_limit_base_cooldown
        self.rate_limit_max_cooldown = rate_limit_max_cooldown
        self.unknown_failure_cooldown = unknown_failure_cooldown

        self._keys: List[Credential] = []
        self._active_index = 0
        self._last_rotation: Optional[float] = None

        self.initialize(secrets)

    def initialize(self, secrets: Sequence[str]) -> None:
        """
        Build the pool from an ordered list of secrets.

        Raises:
            ConfigurationError: If no non-blank secret is given.
        """
        cleaned = [s.strip() for s in secrets if s and s.strip()]
        if not cleaned:
            raise ConfigurationError(
                "No API keys configured. Set GEMINI_API_KEYS or GEMINI_API_KEY_1, GEMINI_API_KEY_2, etc."
            )

        self._keys = [Credential(index=i, secret=s) for i, s in enumerate(cleaned)]
        self._active_index = 0
        self._last_rotation = None
        logger.info(f"API key pool initialized with {len(self._keys)} key(s)")

    def __len__(self) -> int:
        return len(self._keys)

    # -------------------------------------------------------------------------
    # Dispensing
    # -------------------------------------------------------------------------

    def get_next_credential(self) -> Credential:
        """
        Return the next usable credential.

        Raises:
            NoHealthyCredentialError: If every key is unhealthy.
        """
        now = self._clock()
        total = len(self._keys)

        for offset in range(total):
            candidate = self._keys[(self._active_index + offset) % total]
            if self._is_healthy(candidate, now):
                self._rotate_to(candidate.index)
                return candidate

        # Nothing healthy: recover a key whose cooldown already ran out
        for offset in range(total):
            candidate = self._keys[(self._active_index + offset) % total]
            if self._is_recoverable(candidate, now):
                logger.info(f"Key {candidate.index} recovered after cooldown")
                candidate.cooldown_until = None
                candidate.rate_limited = False
                candidate.consecutive_failures = 0
                self._rotate_to(candidate.index)
                return candidate

        logger.warning(f"No healthy API key available ({total} configured)")
        raise NoHealthyCredentialError(total_keys=total)

    def _is_healthy(self, key: Credential, now: float) -> bool:
        if key.auth_failed:
            return False
        if key.cooldown_until is not None and now < key.cooldown_until:
            return False
        return key.consecutive_failures < self.failure_ceiling

    def _is_recoverable(self, key: Credential, now: float) -> bool:
        # Over the failure ceiling but out of cooldown: dispensed as a last resort
        return (
            not key.auth_failed
            and key.cooldown_until is not None
            and key.cooldown_until <= now
        )

    def _rotate_to(self, index: int) -> None:
        if index != self._active_index:
            logger.info(f"Rotating from key {self._active_index} to key {index}")
            self._active_index = index
            self._last_rotation = self._clock()

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def report_success(self, index: int) -> None:
        """Record a successful call made with key `index`."""
        key = self._get(index)
        key.call_count += 1
        key.last_used = self._clock()
        key.consecutive_failures = 0
        key.cooldown_until = None
        key.rate_limited = False

    def report_failure(self, index: int, kind: FailureKind) -> None:
        """Record a failed call made with key `index`."""
        key = self._get(index)
        now = self._clock()
        key.error_count += 1
        key.consecutive_failures += 1
        key.last_used = now

        if kind == FailureKind.AUTH_ERROR:
            if not key.auth_failed:
                logger.error(f"Key {index} rejected by upstream, disabled until reset")
            key.auth_failed = True
            return

        if kind == FailureKind.RATE_LIMITED:
            key.rate_limited = True
            cooldown = self.backoff(key.consecutive_failures)
            logger.warning(f"Key {index} rate-limited, cooling down for {cooldown:.0f}s")
        else:
            cooldown = self.unknown_failure_cooldown
            logger.warning(f"Key {index} failed, cooling down for {cooldown:.0f}s")

        until = now + cooldown
        if key.cooldown_until is None or until > key.cooldown_until:
            key.cooldown_until = until

    def backoff(self, consecutive_failures: int) -> float:
        """Rate-limit cooldown for the n-th consecutive failure."""
        exponent = max(consecutive_failures - 1, 0)
        # Cap the exponent so huge failure counts don't overflow
        exponent = min(exponent, 32)
        return min(self.rate_limit_base_cooldown * (2 ** exponent), self.rate_limit_max_cooldown)

    def _get(self, index: int) -> Credential:
        if index < 0 or index >= len(self._keys):
            raise IndexError(f"No API key at index {index}")
        return self._keys[index]

    # -------------------------------------------------------------------------
    # Monitoring / admin
    # -------------------------------------------------------------------------

    def get_health_status(self) -> PoolHealthSnapshot:
        """Snapshot of pool health for monitoring. Does not mutate state."""
        now = self._clock()

        keys = []
        for key in self._keys:
            remaining = None
            if key.cooldown_until is not None:
                remaining = max(0, math.ceil(key.cooldown_until - now))
            keys.append(KeyHealth(
                index=key.index,
                masked_key=mask_key(key.secret),
                call_count=key.call_count,
                is_active=key.index == self._active_index,
                is_healthy=self._is_healthy(key, now) or self._is_recoverable(key, now),
                rate_limited=key.rate_limited,
                cooldown_remaining=remaining,
            ))

        last_rotation = None
        if self._last_rotation is not None:
            last_rotation = datetime.fromtimestamp(self._last_rotation, tz=timezone.utc)

        return PoolHealthSnapshot(
            total_keys=len(self._keys),
            active_key_index=self._active_index,
            last_rotation=last_rotation,
            keys=keys,
        )

    def reset(self) -> None:
        """Clear all counters, cooldowns and auth failures. Keys are kept."""
        for key in self._keys:
            key.call_count = 0
            key.error_count = 0
            key.consecutive_failures = 0
            key.last_used = None
            key.cooldown_until = None
            key.rate_limited = False
            key.auth_failed = False
        self._active_index = 0
        self._last_rotation = None
        logger.info(f"API key pool reset ({len(self._keys)} key(s))")


def build_api_key_pool() -> Optional[ApiKeyPool]:
    """
    Build the process-wide pool from settings.

    Returns None when no keys are configured: recommendations are then
    disabled and /health reports "degraded", but the app still starts.
    """
    try:
        return ApiKeyPool(
            settings.GEMINI_API_KEYS,
            failure_ceiling=settings.KEY_FAILURE_CEILING,
            rate_limit_base_cooldown=settings.KEY_RATE_LIMIT_BASE_COOLDOWN_SECONDS,
            rate_limit_max_cooldown=settings.KEY_RATE_LIMIT_MAX_COOLDOWN_SECONDS,
            unknown_failure_cooldown=settings.KEY_UNKNOWN_FAILURE_COOLDOWN_SECONDS,
        )
    except ConfigurationError as e:
        logger.warning(f"{e.message} Recommendation features are disabled.")
        return None
