from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InvalidModifierError, UnknownOperatorError
from .paths import locate, get_path, set_path, delete_path
from .query import match_anchor
from .utils import deep_copy, ensure_list


class ModifierOperator(str, Enum):
    INC = "$inc"
    DEC = "$dec"
    SET = "$set"
    UNSET = "$unset"
    MERGE = "$merge"
    PUSH = "$push"
    UNSHIFT = "$unshift"

    @classmethod
    def from_key(cls, key: str) -> "ModifierOperator":
        try:
            return cls(key)
        except ValueError:
            raise UnknownOperatorError(key, "modifier") from None


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_modifiers(modifiers: Any) -> None:
    """Check operator keys and payload shapes before any document is touched."""
    if not isinstance(modifiers, dict):
        raise InvalidModifierError(f"modifier set must be a mapping, got {type(modifiers).__name__}")
    for key, payload in modifiers.items():
        op = ModifierOperator.from_key(key)
        if op in (ModifierOperator.INC, ModifierOperator.DEC):
            if not isinstance(payload, dict):
                raise InvalidModifierError(f"{op.value} expects a mapping of property -> number")
            for name, delta in payload.items():
                if not _is_number(delta):
                    raise InvalidModifierError(f"{op.value}: delta for {name!r} is not a number: {delta!r}")
        elif op is ModifierOperator.MERGE:
            for item in ensure_list(payload):
                if not isinstance(item, dict):
                    raise InvalidModifierError("$merge expects a mapping or a list of mappings")
        elif op is ModifierOperator.UNSET:
            names = list(payload) if isinstance(payload, dict) else ensure_list(payload)
            if not all(isinstance(n, str) for n in names):
                raise InvalidModifierError("$unset expects property names")
        elif not isinstance(payload, dict):
            raise InvalidModifierError(f"{op.value} expects a mapping, got {type(payload).__name__}")


def apply_modifiers(doc: Dict[str, Any], modifiers: Dict[str, Any],
                    query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Return a modified copy of `doc`. Operators run in the modifier set's key
    order, each one seeing the previous one's result. `query` is the query
    that selected the document; $merge anchors on it.
    """
    validate_modifiers(modifiers)
    out = deep_copy(doc)
    for key, payload in modifiers.items():
        op = ModifierOperator.from_key(key)
        if op is ModifierOperator.INC:
            _increment(out, payload, 1)
        elif op is ModifierOperator.DEC:
            _increment(out, payload, -1)
        elif op is ModifierOperator.SET:
            for name, value in payload.items():
                _assign(out, name, deep_copy(value))
        elif op is ModifierOperator.UNSET:
            for name in (payload if isinstance(payload, dict) else ensure_list(payload)):
                path = locate(out, name)
                if path is not None:
                    delete_path(out, path)
        elif op is ModifierOperator.MERGE:
            _merge(out, ensure_list(payload), query or {})
        elif op is ModifierOperator.PUSH:
            _extend(out, payload, front=False)
        elif op is ModifierOperator.UNSHIFT:
            _extend(out, payload, front=True)
        else:
            raise AssertionError(f"unhandled modifier {op!r}")
    return out


def _assign(doc: Dict[str, Any], name: str, value: Any) -> None:
    # Existing property wherever it lives; otherwise a new top-level one
    path = locate(doc, name)
    if path is None:
        doc[name] = value
    else:
        set_path(doc, path, value)


def _increment(doc: Dict[str, Any], payload: Dict[str, Any], sign: int) -> None:
    for name, delta in payload.items():
        path = locate(doc, name)
        if path is None:
            doc[name] = sign * delta
            continue
        cur = get_path(doc, path)
        if not _is_number(cur):
            raise InvalidModifierError(f"cannot increment non-numeric property {name!r} ({cur!r})")
        set_path(doc, path, cur + sign * delta)


def _extend(doc: Dict[str, Any], payload: Dict[str, Any], front: bool) -> None:
    for name, value in payload.items():
        if isinstance(value, dict) and set(value) == {"$each"}:
            items = deep_copy(ensure_list(value["$each"]))
        else:
            items = [deep_copy(value)]
        path = locate(doc, name)
        if path is None:
            doc[name] = items
            continue
        cur = get_path(doc, path)
        if not isinstance(cur, list):
            raise InvalidModifierError(f"cannot push onto non-list property {name!r}")
        if front:
            cur[0:0] = items
        else:
            cur.extend(items)


def _merge(doc: Dict[str, Any], payloads: List[Dict[str, Any]], query: Dict[str, Any]) -> None:
    anchor = match_anchor(doc, query)
    target = get_path(doc, anchor) if anchor else doc
    if not isinstance(target, dict):
        target = doc
    for p in payloads:
        deep_merge(target, p)


def deep_merge(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    """Mappings merge recursively; scalars and lists overwrite."""
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            deep_merge(dst[k], v)
        else:
            dst[k] = deep_copy(v)
    return dst
