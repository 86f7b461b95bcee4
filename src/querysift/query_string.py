"""Query-string helpers: bracket decoding and re-encoding of request params."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import parse_qsl, urlencode

_BRACKETS = re.compile(r"\[([^\[\]]*)\]")


def _key_path(raw_key: str) -> list[str]:
    """``a[b][]`` → ``["a", "b", ""]``."""
    head, _, rest = raw_key.partition("[")
    if not rest:
        return [raw_key]
    return [head, *_BRACKETS.findall("[" + rest)]


def _assign(target: dict[str, Any], path: list[str], value: str) -> None:
    node: Any = target
    for index, part in enumerate(path):
        last = index == len(path) - 1
        if part == "":
            if not isinstance(node, list):
                return
            if last:
                node.append(value)
                return
            node.append({})
            node = node[-1]
            continue
        if not isinstance(node, dict):
            return
        if last:
            existing = node.get(part)
            if existing is None:
                node[part] = value
            elif isinstance(existing, list):
                existing.append(value)
            elif isinstance(existing, str):
                node[part] = [existing, value]
            return
        child_is_list = path[index + 1] == ""
        child = node.get(part)
        if child is None or isinstance(child, str):
            child = [] if child_is_list else {}
            node[part] = child
        node = child


def decode_query_string(query: str) -> dict[str, Any]:
    """Decode a raw query string into the parameter mapping sifting expects.

    ``name[operator]=like&name[value]=jo`` becomes a nested mapping,
    ``tags[]=1&tags[]=2`` and repeated keys become lists. Blank values are
    kept, so presence flags such as ``only_meta`` survive decoding.
    """
    decoded: dict[str, Any] = {}
    for raw_key, value in parse_qsl(query.lstrip("?"), keep_blank_values=True):
        _assign(decoded, _key_path(raw_key), value)
    return decoded


class QueryStringBuilder:
    """Encode a parameter mapping back into a query string."""

    def build(self, params: dict[str, Any] | None = None) -> str:
        if not params:
            return ""
        return urlencode(list(self._pairs(params)))

    def _pairs(self, value: Any, prefix: str = "") -> Any:
        if isinstance(value, dict):
            for key, item in value.items():
                yield from self._pairs(item, f"{prefix}[{key}]" if prefix else str(key))
        elif isinstance(value, (list, tuple)):
            for item in value:
                yield from self._pairs(item, f"{prefix}[]")
        else:
            yield prefix, "" if value is None else str(value)

    def payload_size(self, params: dict[str, Any] | None = None) -> int:
        """Encoded size in bytes."""
        return len(self.build(params).encode("utf-8"))
