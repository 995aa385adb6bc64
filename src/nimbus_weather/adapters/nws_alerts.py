from __future__ import annotations

from typing import Any, Final, Mapping, Optional, Sequence

from ..core.errors import NotCoveredByRegion, SourceUnavailable
from ..core.models import Alert, AlertSeverity, AlertUrgency
from ._client import DEFAULT_USER_AGENT, JsonSource

ALERTS_URL: Final[str] = "https://api.weather.gov/alerts/active"
# weather.gov answers 404/400 for points outside US territory.
_OUT_OF_REGION_STATUSES: Final[frozenset[int]] = frozenset({400, 404})


def _text(properties: Mapping[str, Any], key: str) -> Optional[str]:
    value = properties.get(key)
    return value if isinstance(value, str) else None


def alert_from_feature(feature: object) -> Optional[Alert]:
    if not isinstance(feature, Mapping):
        return None
    properties = feature.get("properties")
    if not isinstance(properties, Mapping):
        return None
    event = _text(properties, "event")
    if event is None:
        return None
    feature_id = feature.get("id")
    return Alert(
        id=feature_id if isinstance(feature_id, str) else (_text(properties, "@id") or ""),
        event=event,
        headline=_text(properties, "headline") or event,
        description=_text(properties, "description") or "",
        severity=AlertSeverity.parse(_text(properties, "severity")),
        urgency=AlertUrgency.parse(_text(properties, "urgency")),
        certainty=_text(properties, "certainty") or "Unknown",
        sender_name=_text(properties, "senderName") or "National Weather Service",
        area_description=_text(properties, "areaDesc") or "",
        instruction=_text(properties, "instruction"),
        effective=_text(properties, "effective") or _text(properties, "onset"),
        expires=_text(properties, "expires") or _text(properties, "ends"),
        response=_text(properties, "response"),
    )


def parse_alerts(payload: Mapping[str, Any]) -> list[Alert]:
    features = payload.get("features")
    if not isinstance(features, list):
        return []
    alerts = [alert for alert in map(alert_from_feature, features) if alert is not None]
    alerts.sort(key=lambda alert: (alert.severity.sort_order, alert.urgency.sort_order))
    return alerts


class NwsAlertSource(JsonSource):
    """Active alerts from the US National Weather Service.

    Points outside NWS coverage raise :class:`NotCoveredByRegion`, which
    callers treat as "no alerts".
    """

    source_name = "nws_alerts"

    def __init__(self, *, user_agent: str = DEFAULT_USER_AGENT, **kwargs: Any) -> None:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("User-Agent", user_agent)
        headers.setdefault("Accept", "application/geo+json")
        super().__init__(headers=headers, **kwargs)

    async def fetch_alerts(self, latitude: float, longitude: float) -> Sequence[Alert]:
        point = f"{latitude:.4f},{longitude:.4f}"
        try:
            payload = await self._get_mapping(
                ALERTS_URL,
                {"point": point, "status": "actual", "message_type": "alert,update"},
                target=point,
            )
        except SourceUnavailable as exc:
            if exc.status_code in _OUT_OF_REGION_STATUSES:
                raise NotCoveredByRegion(self.source_name) from exc
            raise
        return parse_alerts(payload)


__all__ = ["ALERTS_URL", "NwsAlertSource", "alert_from_feature", "parse_alerts"]
