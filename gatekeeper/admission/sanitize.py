"""Deep sanitization of structured request data.

Best-effort deny filter for XSS and NoSQL operator injection. Every function
here is pure: inputs are never mutated, a new value is returned instead.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

logger = structlog.get_logger()

_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_JS_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)

# Order matters: "&" first so produced entities are not encoded again.
_ENTITY_MAP: tuple[tuple[str, str], ...] = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
    ("/", "&#x2F;"),
)

# Results this deep still re-encode with json.dumps under the default
# recursion limit.
MAX_DEPTH = 512

_CONTAINERS = (dict, list, tuple)


def sanitize_string(value: str) -> str:
    """Strip script spans, inline handlers and ``javascript:``, then entity-encode."""
    value = _SCRIPT_RE.sub("", value)
    value = _EVENT_HANDLER_RE.sub("", value)
    value = _JS_SCHEME_RE.sub("", value)
    for char, entity in _ENTITY_MAP:
        value = value.replace(char, entity)
    return value


def is_dangerous_key(key: str) -> bool:
    """Operator-prefixed, dotted, or markup-altered keys are dropped."""
    return key.startswith("$") or "." in key or sanitize_string(key) != key


class _Frame:
    """One container being rebuilt during the walk."""

    __slots__ = ("is_mapping", "is_tuple", "items", "out", "depth", "slot")

    def __init__(self, value: dict | list | tuple, depth: int, slot: Any) -> None:
        self.is_mapping = isinstance(value, dict)
        self.is_tuple = isinstance(value, tuple)
        self.items = iter(value.items()) if self.is_mapping else ((None, item) for item in value)
        self.out: dict | list = {} if self.is_mapping else []
        self.depth = depth
        self.slot = slot

    def put(self, slot: Any, item: Any) -> None:
        if self.is_mapping:
            self.out[slot] = item
        else:
            self.out.append(item)

    def finish(self) -> dict | list | tuple:
        return tuple(self.out) if self.is_tuple else self.out


def _sanitize_leaf(value: Any) -> Any:
    return sanitize_string(value) if isinstance(value, str) else value


def deep_sanitize(value: Any) -> Any:
    """Sanitize mappings, sequences and strings at any nesting depth.

    Mapping entries with dangerous keys are dropped. Sequence order and length
    are preserved. Anything that is not a str/dict/list/tuple is returned as-is.
    Values nested deeper than ``MAX_DEPTH`` are replaced with None.

    The walk uses an explicit stack, so input depth never touches the
    interpreter recursion limit.
    """
    if not isinstance(value, _CONTAINERS):
        return _sanitize_leaf(value)

    stack = [_Frame(value, 0, None)]
    while True:
        frame = stack[-1]
        entry = next(frame.items, None)
        if entry is None:
            stack.pop()
            done = frame.finish()
            if not stack:
                return done
            stack[-1].put(frame.slot, done)
            continue

        slot, item = entry
        if frame.is_mapping and isinstance(slot, str) and is_dangerous_key(slot):
            logger.warning("sanitizer_key_dropped", key=slot[:64])
            continue

        depth = frame.depth + 1
        if depth > MAX_DEPTH:
            logger.warning("sanitizer_depth_exceeded", max_depth=MAX_DEPTH)
            frame.put(slot, None)
        elif isinstance(item, _CONTAINERS):
            stack.append(_Frame(item, depth, slot))
        else:
            frame.put(slot, _sanitize_leaf(item))


def sanitize_pairs(pairs: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Sanitize a multi-valued key/value list (query strings, form bodies).

    Same key rule as ``deep_sanitize``; repeated keys are kept in order.
    """
    cleaned = []
    for key, item in pairs:
        if is_dangerous_key(key):
            logger.warning("sanitizer_key_dropped", key=key[:64])
            continue
        cleaned.append((key, sanitize_string(item)))
    return cleaned
