from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import NoReturn

import httpx


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_backoff: float = 1.0
    max_backoff: float = 8.0


def retry_after_seconds(value: str | None) -> float | None:
    """Seconds to wait according to a ``Retry-After`` header (delta or HTTP date)."""

    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def backoff_delay(attempt: int, config: RetryConfig) -> float:
    return min(config.base_backoff * 2 ** (attempt - 1), config.max_backoff)


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


class _FetchLog:
    """Compact JSON records sharing one schema for every attempt of a fetch."""

    def __init__(
        self,
        logger: logging.Logger,
        *,
        adapter: str,
        correlation_id: str,
        target: str,
        max_attempts: int,
    ) -> None:
        self._logger = logger
        self._fields = {
            "adapter": adapter,
            "correlation_id": correlation_id,
            "target": target,
            "max_attempts": max_attempts,
        }

    def record(self, level: int, event: str, attempt: int, **fields: object) -> None:
        payload = {"event": event, **self._fields, "attempt": attempt, **fields}
        self._logger.log(level, json.dumps(payload, separators=(",", ":"), default=str))


@dataclass(frozen=True)
class _Outcome:
    response: httpx.Response | None = None
    error: httpx.RequestError | None = None

    @property
    def status_code(self) -> int | None:
        return self.response.status_code if self.response is not None else None

    @property
    def succeeded(self) -> bool:
        return self.response is not None and self.response.is_success

    @property
    def retryable(self) -> bool:
        if self.response is None:
            return True
        return is_retryable_status(self.response.status_code)

    @property
    def error_text(self) -> str | None:
        return str(self.error) if self.error is not None else None

    def raise_failure(self) -> NoReturn:
        if self.response is not None:
            request = self.response.request
            raise httpx.HTTPStatusError(
                f"{request.method} {request.url} returned {self.response.status_code}",
                request=request,
                response=self.response,
            )
        assert self.error is not None
        raise self.error

    def delay(self, attempt: int, config: RetryConfig) -> float:
        if self.response is not None and self.response.status_code == 429:
            hinted = retry_after_seconds(self.response.headers.get("Retry-After"))
            if hinted is not None:
                return hinted
        return backoff_delay(attempt, config)


async def run_with_retry(
    *,
    adapter: str,
    correlation_id: str,
    target: str,
    attempt: Callable[[], Awaitable[httpx.Response]],
    retry_config: RetryConfig,
    logger: logging.Logger,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> httpx.Response:
    """Run ``attempt`` until it yields a 2xx response or the budget is spent.

    Timeouts, transport errors, 429 and 5xx are retried. Any other status
    fails on the spot with :class:`httpx.HTTPStatusError`.
    """

    log = _FetchLog(
        logger,
        adapter=adapter,
        correlation_id=correlation_id,
        target=target,
        max_attempts=retry_config.max_attempts,
    )
    for number in range(1, retry_config.max_attempts + 1):
        try:
            outcome = _Outcome(response=await attempt())
        except httpx.RequestError as exc:
            outcome = _Outcome(error=exc)

        if outcome.succeeded:
            assert outcome.response is not None
            log.record(logging.DEBUG, "fetch_success", number, status_code=outcome.status_code)
            return outcome.response

        if not outcome.retryable:
            log.record(logging.WARNING, "fetch_rejected", number, status_code=outcome.status_code)
            outcome.raise_failure()

        if number == retry_config.max_attempts:
            log.record(
                logging.ERROR,
                "retry_exhausted",
                number,
                status_code=outcome.status_code,
                error=outcome.error_text,
            )
            outcome.raise_failure()

        retry_in = outcome.delay(number, retry_config)
        log.record(
            logging.WARNING,
            "retry_scheduled",
            number,
            status_code=outcome.status_code,
            retry_in=retry_in,
            error=outcome.error_text,
        )
        await sleep(retry_in)

    raise RuntimeError("retry loop exited unexpectedly")
