"""Nested query-string parsing.

``price[gte]=100&price[lte]=500&tags[]=a`` parses to
``{"price": {"gte": "100", "lte": "500"}, "tags": ["a"]}``. A key repeated
without brackets accumulates into a list.
"""

import re
from typing import Any
from urllib.parse import parse_qsl, urlencode

_KEY_PATTERN = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_SEGMENT_PATTERN = re.compile(r"\[([^\[\]]*)\]")
MAX_DEPTH = 5


def split_key(key: str) -> list[str]:
    match = _KEY_PATTERN.match(key)
    if match is None:
        return [key]
    segments = _SEGMENT_PATTERN.findall(match.group(2))
    return [match.group(1), *segments[:MAX_DEPTH]]


def _append(existing: Any, value: Any) -> Any:
    if existing is None:
        return value
    if isinstance(existing, list):
        return [*existing, value]
    return [existing, value]


def _assign(target: dict[str, Any], path: list[str], value: str) -> None:
    head, *rest = path
    if not rest:
        target[head] = _append(target.get(head), value)
        return
    if rest == [""]:
        existing = target.get(head)
        target[head] = [value] if existing is None else _append(existing, value)
        return
    nested = target.get(head)
    if not isinstance(nested, dict):
        nested = {}
        target[head] = nested
    _assign(nested, rest, value)


def parse_query(query_string: str) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in parse_qsl(query_string, keep_blank_values=True):
        if not key:
            continue
        _assign(result, split_key(key), value)
    return result


def _flatten(prefix: str, value: Any) -> list[tuple[str, str]]:
    if isinstance(value, dict):
        pairs: list[tuple[str, str]] = []
        for key, nested in value.items():
            pairs.extend(_flatten(f"{prefix}[{key}]", nested))
        return pairs
    if isinstance(value, list):
        pairs = []
        for item in value:
            pairs.extend(_flatten(prefix, item))
        return pairs
    return [(prefix, "" if value is None else str(value))]


def encode_query(query: dict[str, Any]) -> str:
    pairs: list[tuple[str, str]] = []
    for key, value in query.items():
        pairs.extend(_flatten(key, value))
    return urlencode(pairs)
