from datetime import date, datetime, timezone
from typing import Any, Dict


def utc_now() -> datetime:
    """Current time as naive UTC, the storage convention for every timestamp column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalise an incoming datetime to naive UTC. Naive values are taken as UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def serialize_dates(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively convert date/datetime objects to ISO format strings"""
    def convert_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        elif isinstance(value, date):
            return value.isoformat()
        elif isinstance(value, dict):
            return serialize_dates(value)
        elif isinstance(value, list):
            return [convert_value(item) for item in value]
        return value

    serialized = {}
    for key, value in data.items():
        serialized[key] = convert_value(value)
    return serialized
