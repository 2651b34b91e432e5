from __future__ import annotations
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import DEFAULT_KEYS, ReservedKeys
from .errors import InvalidOptionsError
from .paths import resolve
from .utils import canonical_json

_OPTION_NAMES = {"sort", "project", "skip", "take", "join"}
_JOIN_NAMES = {"collection", "from", "to", "as", "options"}


@dataclass
class JoinSpec:
    """
    Attach documents of `collection` whose `target` property equals one of
    the values under `source` on the joined document, as a list named `alias`.
    `target` defaults to the other collection's identifier key.
    """
    collection: Any
    source: str
    alias: str
    target: Optional[str] = None
    options: "QueryOptions" = field(default_factory=lambda: QueryOptions())

    @classmethod
    def coerce(cls, value: Any) -> "JoinSpec":
        if isinstance(value, JoinSpec):
            return value
        if not isinstance(value, dict):
            raise InvalidOptionsError(f"join spec must be a mapping, got {type(value).__name__}")
        unknown = set(value) - _JOIN_NAMES
        if unknown:
            raise InvalidOptionsError(f"unknown join spec keys: {sorted(unknown)}")
        for req in ("collection", "from", "as"):
            if value.get(req) is None:
                raise InvalidOptionsError(f"join spec is missing {req!r}")
        return cls(
            collection=value["collection"],
            source=value["from"],
            alias=value["as"],
            target=value.get("to"),
            options=QueryOptions.coerce(value.get("options")),
        )


@dataclass
class QueryOptions:
    sort: Dict[str, int] = field(default_factory=dict)
    project: Dict[str, int] = field(default_factory=dict)
    skip: int = 0
    take: Optional[int] = None
    join: List[JoinSpec] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.sort = _normalize_sort(self.sort)
        if not isinstance(self.project, dict):
            raise InvalidOptionsError("project must be a mapping of property -> 0/1")
        for k, v in self.project.items():
            if v not in (0, 1):
                raise InvalidOptionsError(f"project flag for {k!r} must be 0 or 1, got {v!r}")
        if isinstance(self.skip, bool) or not isinstance(self.skip, int) or self.skip < 0:
            raise InvalidOptionsError(f"skip must be a non-negative integer, got {self.skip!r}")
        if self.take is not None and (isinstance(self.take, bool) or not isinstance(self.take, int) or self.take < 0):
            raise InvalidOptionsError(f"take must be a non-negative integer, got {self.take!r}")
        self.join = [JoinSpec.coerce(j) for j in (self.join or [])]

    @classmethod
    def coerce(cls, value: Any) -> "QueryOptions":
        if value is None:
            return cls()
        if isinstance(value, QueryOptions):
            return value
        if not isinstance(value, dict):
            raise InvalidOptionsError(f"options must be a mapping, got {type(value).__name__}")
        unknown = set(value) - _OPTION_NAMES
        if unknown:
            raise InvalidOptionsError(f"unknown options: {sorted(unknown)}")
        return cls(
            sort=value.get("sort") or {},
            project=value.get("project") or {},
            skip=value.get("skip", 0),
            take=value.get("take"),
            join=value.get("join") or [],
        )


def _direction(key: str, d: Any) -> int:
    if isinstance(d, str):
        low = d.lower()
        if low in ("asc", "ascending"):
            return 1
        if low in ("desc", "descending"):
            return -1
        raise InvalidOptionsError(f"bad sort direction for {key!r}: {d!r}")
    if isinstance(d, (int, float)):
        return 1 if d > 0 else -1
    raise InvalidOptionsError(f"bad sort direction for {key!r}: {d!r}")


def _normalize_sort(spec: Any) -> Dict[str, int]:
    # Also accepts [("age", "desc"), ...]
    if isinstance(spec, dict):
        pairs: Sequence[Tuple[str, Any]] = list(spec.items())
    elif isinstance(spec, (list, tuple)):
        pairs = [tuple(p) for p in spec]
        if any(len(p) != 2 for p in pairs):
            raise InvalidOptionsError("sort list entries must be (property, direction) pairs")
    else:
        raise InvalidOptionsError("sort must be a mapping of property -> direction")
    return {k: _direction(k, d) for k, d in pairs}


def _rank(v: Any) -> int:
    if v is None:
        return 0
    if isinstance(v, bool):
        return 1
    if isinstance(v, (int, float)):
        return 2
    if isinstance(v, str):
        return 3
    return 4


def compare_values(a: Any, b: Any) -> int:
    ra, rb = _rank(a), _rank(b)
    if ra != rb:
        return -1 if ra < rb else 1
    if ra == 4:
        a, b = canonical_json(a), canonical_json(b)
    elif ra == 0:
        return 0
    return (a > b) - (a < b)


def sort_documents(docs: List[Dict[str, Any]], sort: Dict[str, int]) -> List[Dict[str, Any]]:
    """
    Multi-key stable sort. Keys are found anywhere in the document; a
    document missing a key goes after those that have it, whatever the
    direction.
    """
    if not sort:
        return list(docs)

    def cmp(x: Dict[str, Any], y: Dict[str, Any]) -> int:
        for key, direction in sort.items():
            fx, vx = resolve(x, key)
            fy, vy = resolve(y, key)
            if not fx and not fy:
                continue
            if not fx:
                return 1
            if not fy:
                return -1
            c = compare_values(vx, vy) * direction
            if c:
                return c
        return 0

    return sorted(docs, key=cmp_to_key(cmp))


def window(docs: List[Dict[str, Any]], skip: int = 0, take: Optional[int] = None) -> List[Dict[str, Any]]:
    if take is None:
        return docs[skip:]
    return docs[skip:skip + take]


def project(doc: Dict[str, Any], spec: Dict[str, int], keys: ReservedKeys = DEFAULT_KEYS) -> Dict[str, Any]:
    """
    All flags 1: keep only the listed properties plus the identifier (unless
    the identifier is listed with 0). Any 0 flag: keep everything except
    the 0-flagged properties. The identifier only decides the mode when it is
    the sole property listed.
    """
    if not spec:
        return doc
    id_key = keys.id_key
    flags = {k: v for k, v in spec.items() if k != id_key}
    only_listed = all(flags.values()) if flags else bool(spec.get(id_key))
    if only_listed:
        out: Dict[str, Any] = {}
        if spec.get(id_key, 1) and id_key in doc:
            out[id_key] = doc[id_key]
        for k, v in doc.items():
            if k in flags:
                out[k] = v
        return out
    return {k: v for k, v in doc.items() if not (k in spec and not spec[k])}


def shape(docs: List[Dict[str, Any]], options: Any = None,
          keys: ReservedKeys = DEFAULT_KEYS) -> List[Dict[str, Any]]:
    """sort -> skip/take -> project. Projection runs last so hidden fields can still sort."""
    opts = QueryOptions.coerce(options)
    out = sort_documents(docs, opts.sort)
    out = window(out, opts.skip, opts.take)
    return [project(d, opts.project, keys) for d in out]
