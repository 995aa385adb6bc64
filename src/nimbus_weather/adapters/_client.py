from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from ..core.errors import DecodeError, SourceUnavailable
from ._retry import RetryConfig, run_with_retry

DEFAULT_TIMEOUT = 20.0
DEFAULT_USER_AGENT = "nimbus-weather/0.1"

_shared_client: httpx.AsyncClient | None = None
_shared_client_lock: asyncio.Lock | None = None
_shared_timeout = DEFAULT_TIMEOUT


def configure_shared_client(*, timeout: float) -> None:
    """Set the timeout used when the shared client is next created."""

    global _shared_timeout
    _shared_timeout = timeout


def _create_client(*, timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout, follow_redirects=True)


async def _get_shared_client() -> httpx.AsyncClient:
    global _shared_client, _shared_client_lock
    if _shared_client is not None:
        return _shared_client

    if _shared_client_lock is None:
        _shared_client_lock = asyncio.Lock()

    async with _shared_client_lock:
        if _shared_client is None:
            _shared_client = _create_client(timeout=_shared_timeout)

    assert _shared_client is not None
    return _shared_client


@asynccontextmanager
async def _resolve_client(
    client: httpx.AsyncClient | None,
) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    yield await _get_shared_client()


async def close_shared_client() -> None:
    global _shared_client, _shared_client_lock
    if _shared_client is not None:
        await _shared_client.aclose()
    _shared_client = None
    _shared_client_lock = None


class JsonSource:
    """GET-a-JSON-document plumbing shared by every network source.

    Transport and status failures surface as :class:`SourceUnavailable`, a
    body that is not JSON as :class:`DecodeError`.
    """

    source_name = "http"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
        logger: logging.Logger | None = None,
        headers: Mapping[str, str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self.retry_config = retry_config or RetryConfig()
        self._logger = logger or logging.getLogger(type(self).__module__)
        self._headers = dict(headers or {})
        self._sleep = sleep

    async def _get_response(
        self,
        url: str,
        params: Mapping[str, Any],
        *,
        target: str,
    ) -> httpx.Response:
        cid = str(uuid.uuid4())
        async with _resolve_client(self._client) as client:

            async def _attempt() -> httpx.Response:
                return await client.get(url, params=dict(params), headers=self._headers)

            try:
                return await run_with_retry(
                    adapter=self.source_name,
                    correlation_id=cid,
                    target=target,
                    attempt=_attempt,
                    retry_config=self.retry_config,
                    logger=self._logger,
                    sleep=self._sleep,
                )
            except httpx.HTTPStatusError as exc:
                raise SourceUnavailable(
                    self.source_name,
                    f"{self.source_name} returned HTTP {exc.response.status_code}",
                    status_code=exc.response.status_code,
                ) from exc
            except httpx.RequestError as exc:
                raise SourceUnavailable(
                    self.source_name,
                    f"{self.source_name} unreachable: {exc}",
                ) from exc

    async def _get_json(
        self,
        url: str,
        params: Mapping[str, Any],
        *,
        target: str,
    ) -> Any:
        response = await self._get_response(url, params, target=target)
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(self.source_name, f"{self.source_name} sent invalid JSON") from exc

    async def _get_mapping(
        self,
        url: str,
        params: Mapping[str, Any],
        *,
        target: str,
    ) -> Mapping[str, Any]:
        payload = await self._get_json(url, params, target=target)
        if not isinstance(payload, Mapping):
            raise DecodeError(self.source_name, f"{self.source_name} sent a non-object payload")
        return payload


__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "JsonSource",
    "close_shared_client",
    "configure_shared_client",
]
