"""Shared validation helpers for service settings and tool arguments."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

# RFC 7230 token characters; WebSocket subprotocol names must be tokens.
_TOKEN_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a string list from an environment variable or config value.

    Accepts:
    - A list of strings (returned as-is)
    - A JSON array string: '["a","b"]'
    - A comma-separated string: 'a,b'

    Raises ValueError for malformed JSON or non-string items. Empty input is
    rejected unless allow_empty is True, in which case it yields [].
    """
    if isinstance(value, list):
        if not allow_empty and not value:
            raise ValueError("String list value must not be empty")
        return value

    stripped = value.strip()
    if not stripped:
        if allow_empty:
            return []
        raise ValueError("String list value must not be empty")

    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        if not allow_empty and not parsed:
            raise ValueError("String list value must not be empty")
        return parsed

    result = [item.strip() for item in stripped.split(",") if item.strip()]
    if not allow_empty and not result:
        raise ValueError("String list value must not be empty")
    return result


def validate_subprotocols(protocols: list[str]) -> list[str]:
    """Check that every subprotocol name is a valid token and appears once."""
    seen: set[str] = set()
    for name in protocols:
        if not _TOKEN_PATTERN.match(name):
            raise ValueError(f"Invalid subprotocol name: {name!r}")
        if name in seen:
            raise ValueError(f"Duplicate subprotocol name: {name!r}")
        seen.add(name)
    return protocols


_STRING_LIST_FIELDS = {"default_protocols"}


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env settings source that passes string-list fields as raw strings to validators.

    pydantic-settings tries to JSON-decode list-typed fields from env vars before
    validators run. This subclass bypasses that for string-list fields so
    parse_string_list handles both JSON and CSV formats.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in _STRING_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
