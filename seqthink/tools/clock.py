"""Current time tool."""

from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from seqthink.tools.registry import Tool


class GetCurrentTimeTool(Tool):
    """Report the current local or zoned time."""

    name = "getCurrentTime"
    description = "Get the current date and time, optionally in a given IANA timezone."
    parameters = {
        "timezone": "IANA timezone name such as 'Europe/Paris'. Defaults to the local timezone.",
    }

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        tz_name = str(kwargs.get("timezone", "") or "").strip()
        if tz_name:
            try:
                now = datetime.now(ZoneInfo(tz_name))
            except ZoneInfoNotFoundError as e:
                raise ValueError(f"Unknown timezone: {tz_name}") from e
        else:
            now = datetime.now(timezone.utc).astimezone()
        return {
            "iso": now.isoformat(timespec="seconds"),
            "epoch_ms": int(now.timestamp() * 1000),
            "timezone": tz_name or str(now.tzinfo),
        }
