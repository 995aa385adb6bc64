from __future__ import annotations

from typing import Optional


class NimbusError(Exception):
    """Base class for failures surfaced by the acquisition pipeline."""


class PermissionDenied(NimbusError):
    def __init__(self, message: str = "Location permission not granted") -> None:
        super().__init__(message)


class LocationUnavailable(NimbusError):
    def __init__(self, message: str = "Unable to determine location.") -> None:
        super().__init__(message)


class SourceUnavailable(NimbusError):
    def __init__(
        self,
        source: str,
        message: str,
        *,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class DecodeError(NimbusError):
    def __init__(self, source: str, message: str) -> None:
        super().__init__(message)
        self.source = source


class NotCoveredByRegion(NimbusError):
    """The source has no data for this territory; callers map it to an empty result."""

    def __init__(self, source: str, message: str = "location not covered") -> None:
        super().__init__(message)
        self.source = source


def describe(error: BaseException, *, default: str) -> str:
    message = str(error).strip()
    return message or default


__all__ = [
    "DecodeError",
    "LocationUnavailable",
    "NimbusError",
    "NotCoveredByRegion",
    "PermissionDenied",
    "SourceUnavailable",
    "describe",
]
