"""
Per-provider API credential pool.

Rotates across a provider's API keys, tracks rate-limit failures per key,
parks keys that keep failing and brings them back after a cooldown.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

MAX_FAILURES = 3
COOLDOWN_SECONDS = 5 * 60

RATE_LIMIT_MARKERS = (
    "429",
    "rate limit",
    "quota exceeded",
    "resource exhausted",
)


def is_rate_limit_error(error: BaseException) -> bool:
    """Check whether an error message looks like a rate-limit or quota failure."""
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def mask_secret(secret: str) -> str:
    """Short form of a secret that is safe to log."""
    return f"…{secret[-4:]}" if len(secret) > 4 else "…"


@dataclass
class Credential:
    """One API key and its health record."""
    secret: str
    failure_count: int = 0
    last_failure: Optional[float] = None
    disabled: bool = False

    def reset(self) -> None:
        self.failure_count = 0
        self.last_failure = None
        self.disabled = False


class CredentialPool:
    """
    Rotating pool of API credentials for a single provider.

    All methods are safe to call concurrently. The lock guards the health
    records and the rotation cursor only; it is never held while a request
    is in flight.
    """

    def __init__(
        self,
        secrets: Iterable[str],
        provider: str = "provider",
        max_failures: int = MAX_FAILURES,
        cooldown: float = COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the pool.

        Args:
            secrets: API keys, in rotation order
            provider: Provider name used in log messages and errors
            max_failures: Rate-limit failures before a key is disabled
            cooldown: Seconds a disabled key stays parked
            clock: Time source, monotonic seconds

        Raises:
            ConfigurationError: If no secrets are given
        """
        self._credentials: List[Credential] = [Credential(secret=s) for s in secrets if s]
        if not self._credentials:
            raise ConfigurationError(
                f"No API credentials configured for provider {provider}",
                provider=provider,
            )

        self._provider = provider
        self._max_failures = max_failures
        self._cooldown = cooldown
        self._clock = clock
        self._cursor = 0
        self._lock = threading.Lock()

        logger.info(f"[{provider}] Credential pool initialized with {len(self._credentials)} API keys")

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def cursor(self) -> int:
        return self._cursor

    def select(self) -> str:
        """
        Pick the next usable credential.

        Re-enables keys whose cooldown has elapsed, then scans from the
        rotation cursor for the first enabled key. The cursor advances past
        every key examined, so parked keys never monopolize the rotation.
        When every key is disabled, the one that failed longest ago is
        forced back into service.

        Returns:
            The raw API key
        """
        with self._lock:
            now = self._clock()
            self._release_cooled_down(now)

            for _ in range(len(self._credentials)):
                credential = self._credentials[self._cursor]
                self._cursor = (self._cursor + 1) % len(self._credentials)
                if not credential.disabled:
                    return credential.secret

            oldest = min(
                self._credentials,
                key=lambda c: c.last_failure if c.last_failure is not None else float("inf"),
            )
            logger.warning(
                f"[{self._provider}] All API keys disabled, force-enabling "
                f"{mask_secret(oldest.secret)}"
            )
            oldest.reset()
            return oldest.secret

    def report_failure(self, secret: str, error: BaseException) -> bool:
        """
        Record a failed call made with ``secret``.

        Only rate-limit/quota errors count against the key.

        Returns:
            True if the error was classified as a rate-limit failure
        """
        if not is_rate_limit_error(error):
            return False

        with self._lock:
            credential = self._find(secret)
            if credential is None:
                return True

            credential.failure_count += 1
            credential.last_failure = self._clock()
            logger.warning(
                f"[{self._provider}] Key {mask_secret(secret)} failure "
                f"{credential.failure_count}/{self._max_failures}: {error}"
            )

            if credential.failure_count >= self._max_failures and not credential.disabled:
                credential.disabled = True
                logger.error(
                    f"[{self._provider}] Key {mask_secret(secret)} disabled due to repeated "
                    f"failures. Will retry in {self._cooldown:g}s"
                )
        return True

    def report_success(self, secret: str) -> None:
        """
        Clear the failure record of ``secret`` after a successful call.

        A key disabled by overlapping calls keeps its record, so the
        cooldown can still release it.
        """
        with self._lock:
            credential = self._find(secret)
            if credential is None or credential.failure_count == 0 or credential.disabled:
                return
            logger.info(f"[{self._provider}] Key {mask_secret(secret)} recovered, resetting failure count")
            credential.failure_count = 0
            credential.last_failure = None

    def snapshot(self) -> List[Credential]:
        """Copy of the current health records, in rotation order."""
        with self._lock:
            return [
                Credential(c.secret, c.failure_count, c.last_failure, c.disabled)
                for c in self._credentials
            ]

    def _find(self, secret: str) -> Optional[Credential]:
        for credential in self._credentials:
            if credential.secret == secret:
                return credential
        return None

    def _release_cooled_down(self, now: float) -> None:
        for credential in self._credentials:
            if (
                credential.disabled
                and credential.last_failure is not None
                and now - credential.last_failure > self._cooldown
            ):
                logger.info(
                    f"[{self._provider}] Re-enabling key {mask_secret(credential.secret)} after cooldown"
                )
                credential.reset()
