"""Storage key construction from path formats.

A path format is a ``str.format`` template with exactly one positional slot,
for example ``"reports/{0}.json"``. Direct objects fill the slot with a
timestamp, the latest alias fills it with the literal ``latest``.
"""

from datetime import datetime, timezone
from string import Formatter

from .constants import LATEST_TOKEN, TIMESTAMP_FORMAT
from .errors import InvalidArgumentError


def validate_path_format(path_format: str) -> None:
    """Ensure the template has exactly one positional slot.

    Raises:
        InvalidArgumentError: If the template is malformed
    """
    if not path_format:
        raise InvalidArgumentError("Path format must not be empty")

    try:
        fields = [
            field_name
            for _, field_name, _, _ in Formatter().parse(path_format)
            if field_name is not None
        ]
    except ValueError as e:
        raise InvalidArgumentError(f"Invalid path format '{path_format}': {e}") from e

    if len(fields) != 1 or fields[0] not in ("", "0"):
        raise InvalidArgumentError(
            f"Path format '{path_format}' must contain exactly one '{{0}}' slot"
        )


class PathBuilder:
    """Builds direct and latest keys from a path format."""

    def __init__(self, timestamp_format: str = TIMESTAMP_FORMAT):
        self.timestamp_format = timestamp_format

    def format_timestamp(self, timestamp: datetime) -> str:
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(timezone.utc)
        return timestamp.strftime(self.timestamp_format)

    def get_path(self, path_format: str, value: str) -> str:
        validate_path_format(path_format)
        return path_format.format(value)

    def get_direct_path(self, path_format: str, timestamp: datetime) -> str:
        return self.get_path(path_format, self.format_timestamp(timestamp))

    def get_latest_path(self, path_format: str) -> str:
        return self.get_path(path_format, LATEST_TOKEN)
