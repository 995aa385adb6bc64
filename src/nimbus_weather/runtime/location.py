from __future__ import annotations

import logging
from typing import Optional

from ..core.models import Coordinates

_LOGGER = logging.getLogger(__name__)


class ConfiguredLocationSource:
    """Geolocation backed by a configured fix, for hosts without a positioning service.

    ``grant`` and ``revoke`` flip the permission flag at runtime.
    """

    def __init__(self, fixed: Optional[Coordinates] = None, *, permission: bool = False) -> None:
        self.fixed = fixed
        self._permission = permission

    def has_permission(self) -> bool:
        return self._permission

    def grant(self) -> None:
        self._permission = True

    def revoke(self) -> None:
        self._permission = False

    async def current_coordinates(self) -> Optional[Coordinates]:
        if self.fixed is None:
            _LOGGER.debug("No configured location fix", extra={"event": "location_fix_missing"})
        return self.fixed


__all__ = ["ConfiguredLocationSource"]
