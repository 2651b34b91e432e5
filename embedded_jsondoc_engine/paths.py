from __future__ import annotations
from typing import Any, Dict, Optional, Tuple

Path = Tuple[str, ...]


def locate(doc: Any, name: str) -> Optional[Path]:
    """
    Find a property called `name` anywhere in `doc`.

    Pre-order depth-first walk in property order: a key that matches is a
    hit before its later siblings are looked at, and a nested mapping is
    searched fully before the next sibling. Returns the path to the first hit
    or None when no such property exists. A property whose value is None is
    still found.
    """
    if not isinstance(doc, dict):
        return None
    for k, v in doc.items():
        if k == name:
            return (k,)
        if isinstance(v, dict):
            sub = locate(v, name)
            if sub is not None:
                return (k,) + sub
    return None


def get_path(doc: Any, path: Path, default: Any = None) -> Any:
    cur = doc
    for key in path:
        if not isinstance(cur, dict) or key not in cur:
            return default
        cur = cur[key]
    return cur


def set_path(doc: Dict[str, Any], path: Path, value: Any) -> None:
    cur = doc
    for key in path[:-1]:
        if not isinstance(cur.get(key), dict):
            cur[key] = {}
        cur = cur[key]
    cur[path[-1]] = value


def delete_path(doc: Dict[str, Any], path: Path) -> bool:
    parent = get_path(doc, path[:-1]) if len(path) > 1 else doc
    if not isinstance(parent, dict) or path[-1] not in parent:
        return False
    del parent[path[-1]]
    return True


def resolve(doc: Any, name: str) -> Tuple[bool, Any]:
    """(found, value) for a flexible lookup of `name`."""
    path = locate(doc, name)
    if path is None:
        return False, None
    return True, get_path(doc, path)
