from __future__ import annotations
import copy
import json
import os
import time
from typing import Any, Iterable

# Crockford base32, as used by ULIDs
_B32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def new_ulid() -> str:
    """
    26-char lexicographically sortable id: 48-bit ms timestamp + 80 random bits.
    """
    value = (now_ms() << 80) | int.from_bytes(os.urandom(10), "big")
    out = []
    for _ in range(26):
        out.append(_B32[value & 0x1F])
        value >>= 5
    return "".join(reversed(out))


def next_integer_id(existing: Iterable[Any], floor: int = 0) -> int:
    """
    Next sequential id: one past the largest integer id seen so far.
    `floor` lets the caller keep ids monotonic after removals.
    """
    top = floor
    for v in existing:
        if isinstance(v, int) and not isinstance(v, bool) and v > top:
            top = v
    return top + 1


def deep_copy(value: Any) -> Any:
    return copy.deepcopy(value)


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def ensure_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
