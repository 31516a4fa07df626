"""
shared/utils.py

Shared utility functions used across multiple modules.
"""

import logging
import re
from typing import Optional

from shared.errors import ValidationError

logger = logging.getLogger(__name__)

_NUMERIC_RE = re.compile(r"-?[0-9]+")


def parse_numeric_param(name: str, raw: Optional[str]) -> int:
    """
    Parse an optional numeric form field.

    Absent or empty (after stripping whitespace) resolves to 0; anything else
    that is not an optionally negative run of ASCII digits raises
    ValidationError naming the field.

    Args:
        name (str): Field name, used in the error message
        raw (Optional[str]): Raw value as received from the transport layer

    Returns:
        int: Parsed value, or 0 when the field was not supplied
    """
    if raw is None:
        return 0
    value = raw.strip()
    if not value:
        return 0
    if not _NUMERIC_RE.fullmatch(value):
        raise ValidationError(f"invalid {name}: {raw!r} is not a number")
    return int(value)


def truncate_message_for_logging(message: str, max_length: int = 100) -> str:
    """
    Truncate long messages for logging purposes.

    Args:
        message (str): Message to truncate
        max_length (int): Maximum length before truncation (default: 100)

    Returns:
        str: Truncated message with ellipsis if needed
    """
    if len(message) <= max_length:
        return message
    return message[:max_length] + "..."
