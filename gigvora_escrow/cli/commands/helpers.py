"""Shared helper functions for CLI commands."""

import json
import re
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


def validate_input(value: str, field_name: str, max_length: int = 1000) -> str:
    """Validate and sanitize CLI inputs."""
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters)")

    # Remove null bytes and control characters except newlines
    sanitized = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)

    return sanitized


def optional_input(value: Optional[str], field_name: str, max_length: int = 1000) -> Optional[str]:
    if value is None:
        return None
    return validate_input(value, field_name, max_length)


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=2, default=str))


def code_label(value: Any, default: str = "unknown") -> str:
    if value is None:
        return default
    return value.value if isinstance(value, Enum) else str(value)


def format_money(amount: Optional[Decimal], currency: Optional[str] = None) -> str:
    if amount is None:
        return "-"
    text = f"{amount:,.2f}"
    return f"{text} {currency}" if currency else text
