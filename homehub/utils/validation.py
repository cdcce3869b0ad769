#!/usr/bin/env python3
"""
🛡️ Input validation for homehub requests

Query parameters are checked here before they reach a service
(JSON bodies go through pydantic models next to their service):
- volume levels (0-100)
- Spotify context URIs and playlist ids
- device and environment names
- epoch-millisecond deadlines
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..constants import ENVIRONMENT_NAMES
from ..errors import ValidationError


@dataclass
class ValidationResult:
    """Cleaned value or error for one field."""
    is_valid: bool
    value: Any = None
    error: str = ""
    field_name: str = ""

    @classmethod
    def ok(cls, value: Any, field_name: str) -> "ValidationResult":
        return cls(True, value, "", field_name)

    @classmethod
    def fail(cls, error: str, field_name: str) -> "ValidationResult":
        return cls(False, None, error, field_name)

    def unwrap(self) -> Any:
        """Return the cleaned value or raise ``ValidationError`` naming the field."""
        if not self.is_valid:
            raise ValidationError(self.error, data={"field": self.field_name})
        return self.value


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class InputValidator:
    """Validators for gateway request parameters; all return ``ValidationResult``."""

    MIN_VOLUME = 0
    MAX_VOLUME = 100
    MAX_URI_LENGTH = 200

    CONTEXT_URI_PATTERN = re.compile(r'^spotify:(playlist|album|artist|show):[a-zA-Z0-9]+$')
    # Spotify device names may hold Unicode and emojis; reject control characters and markup
    DEVICE_NAME_PATTERN = re.compile(r'^[^\x00-\x1F<>]{1,100}$', re.UNICODE)

    @classmethod
    def validate_volume(cls, value: Union[str, int, None], field_name: str = "volume") -> ValidationResult:
        """Integer percentage in ``[MIN_VOLUME, MAX_VOLUME]``.

        Args:
            value: Raw query value or int
            field_name: Parameter name reported on failure
        """
        if _blank(value):
            return ValidationResult.fail(f"{field_name} is required", field_name)
        try:
            volume = int(value)
        except (ValueError, TypeError):
            return ValidationResult.fail(f"{field_name} must be a number", field_name)
        if not cls.MIN_VOLUME <= volume <= cls.MAX_VOLUME:
            return ValidationResult.fail(
                f"{field_name} must be between {cls.MIN_VOLUME} and {cls.MAX_VOLUME}", field_name
            )
        return ValidationResult.ok(volume, field_name)

    @classmethod
    def validate_context_uri(cls, value: Optional[str], field_name: str = "uri") -> ValidationResult:
        """``spotify:<playlist|album|artist|show>:<id>``"""
        if _blank(value):
            return ValidationResult.fail(f"{field_name} is required", field_name)
        value = value.strip()
        if len(value) > cls.MAX_URI_LENGTH:
            return ValidationResult.fail(f"{field_name} is too long (max {cls.MAX_URI_LENGTH} characters)", field_name)
        if cls.CONTEXT_URI_PATTERN.match(value) is None:
            return ValidationResult.fail(f"{field_name} must be a valid Spotify URI (spotify:type:id)", field_name)
        return ValidationResult.ok(value, field_name)

    @classmethod
    def validate_device_name(cls, value: Optional[str], field_name: str = "device_name", required: bool = False) -> ValidationResult:
        """Optional unless ``required``; an absent name comes back as ``""``."""
        if _blank(value):
            if required:
                return ValidationResult.fail(f"{field_name} is required", field_name)
            return ValidationResult.ok("", field_name)
        value = value.strip()
        if cls.DEVICE_NAME_PATTERN.match(value) is None:
            return ValidationResult.fail(f"{field_name} contains invalid characters or is too long", field_name)
        return ValidationResult.ok(value, field_name)

    @classmethod
    def validate_environment(cls, value: Optional[str], field_name: str = "env") -> ValidationResult:
        if _blank(value):
            return ValidationResult.ok("", field_name)
        value = value.strip()
        if value not in ENVIRONMENT_NAMES:
            return ValidationResult.fail(f"{field_name} should be either {' or '.join(ENVIRONMENT_NAMES)}", field_name)
        return ValidationResult.ok(value, field_name)

    @classmethod
    def validate_epoch_millis(cls, value: Union[str, int, None], field_name: str = "time_millis") -> ValidationResult:
        if _blank(value):
            return ValidationResult.fail(f"{field_name} is required", field_name)
        try:
            millis = int(value)
        except (ValueError, TypeError):
            return ValidationResult.fail(f"{field_name} must be an integer", field_name)
        if millis < 0:
            return ValidationResult.fail(f"{field_name} must be positive", field_name)
        return ValidationResult.ok(millis, field_name)


def parse_playlist_id(uri: str) -> str:
    """Extract the id from ``spotify:playlist:<id>``.

    Raises:
        ValidationError: For empty input, other URI kinds or extra segments
    """
    parts = (uri or "").split(":")
    if len(parts) != 3 or parts[0] != "spotify" or parts[1] != "playlist" or not parts[2]:
        raise ValidationError(f"Invalid playlist URI: '{uri}'", data={"field": "uri"})
    return parts[2]
