"""
Utility functions for Featherbone.

- Name conversion between feather names and resource paths
- Query string encoding for list filters
"""

import re
from typing import Any, Dict
from urllib.parse import urlencode


__all__ = [
    "to_spinal_case",
    "encode_filter",
]


def to_spinal_case(name: str) -> str:
    """
    Convert a feather name to a path segment.

        >>> to_spinal_case('RoleMembership')
        'role-membership'
    """
    name = re.sub(r'(?<=[a-z0-9])([A-Z])', r'-\1', name)
    return name.replace('_', '-').replace(' ', '-').lower()


def encode_filter(filter: Dict[str, Any]) -> str:
    """Encode a list filter as a query string (nested keys use brackets)"""
    pairs = []

    def walk(prefix: str, value: Any) -> None:
        if isinstance(value, dict):
            for key, item in value.items():
                walk(f'{prefix}[{key}]', item)
        elif isinstance(value, (list, tuple)):
            for i, item in enumerate(value):
                walk(f'{prefix}[{i}]', item)
        else:
            pairs.append((prefix, value))

    for key, value in (filter or {}).items():
        walk(key, value)

    return urlencode(pairs)
