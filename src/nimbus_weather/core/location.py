from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import anyio

from .errors import LocationUnavailable, NimbusError, PermissionDenied, describe
from .models import Coordinates
from .types import GeolocationSource

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.5
DEFAULT_ATTEMPT_TIMEOUT = 10.0
NO_FIX_MESSAGE = "Unable to determine location."


@dataclass(frozen=True)
class LocationResult:
    coordinates: Optional[Coordinates] = None
    error: Optional[NimbusError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.coordinates is not None

    @property
    def needs_permission(self) -> bool:
        return isinstance(self.error, PermissionDenied)

    @property
    def message(self) -> str:
        if self.error is None:
            return ""
        return describe(self.error, default=NO_FIX_MESSAGE)


class LocationResolver:
    """Best-effort current position with a fixed retry envelope.

    Worst case returns after ``max_attempts`` timed-out attempts plus
    ``max_attempts - 1`` delays.
    """

    def __init__(
        self,
        source: GeolocationSource,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        attempt_timeout: Optional[float] = DEFAULT_ATTEMPT_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self._source = source
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.attempt_timeout = attempt_timeout
        self._sleep = sleep

    def has_permission(self) -> bool:
        return self._source.has_permission()

    async def _attempt(self) -> Optional[Coordinates]:
        if self.attempt_timeout is None:
            return await self._source.current_coordinates()
        return await asyncio.wait_for(
            self._source.current_coordinates(),
            timeout=self.attempt_timeout,
        )

    async def resolve_current(self) -> LocationResult:
        if not self._source.has_permission():
            _LOGGER.info("Location permission missing", extra={"event": "location_permission_missing"})
            return LocationResult(error=PermissionDenied())

        last_error: Optional[str] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                coords = await self._attempt()
            except asyncio.TimeoutError:
                coords = None
                last_error = f"Location request timed out after {self.attempt_timeout:g}s"
            except Exception as exc:
                coords = None
                last_error = describe(exc, default=NO_FIX_MESSAGE)
            else:
                if coords is None:
                    last_error = NO_FIX_MESSAGE

            if coords is not None:
                _LOGGER.debug(
                    "Location fix on attempt %d",
                    attempt,
                    extra={"event": "location_resolved", "attempt": attempt},
                )
                return LocationResult(coordinates=coords, attempts=attempt)

            _LOGGER.warning(
                "Location attempt %d/%d failed: %s",
                attempt,
                self.max_attempts,
                last_error,
                extra={"event": "location_attempt_failed", "attempt": attempt},
            )
            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay)

        return LocationResult(
            error=LocationUnavailable(last_error or NO_FIX_MESSAGE),
            attempts=self.max_attempts,
        )


__all__ = [
    "DEFAULT_ATTEMPT_TIMEOUT",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_RETRY_DELAY",
    "LocationResolver",
    "LocationResult",
    "NO_FIX_MESSAGE",
]
