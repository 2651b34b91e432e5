from __future__ import annotations
from typing import Any, Dict, List, Sequence

from .config import DEFAULT_KEYS, ReservedKeys
from .query import deep_equal
from .shaping import JoinSpec, shape
from .utils import deep_copy, ensure_list


def join(docs: List[Dict[str, Any]], specs: Sequence[Any]) -> List[Dict[str, Any]]:
    """
    Attach related documents from other collections to each of `docs`.

    For every spec the value under `source` is taken as a list of foreign
    keys (a scalar counts as a one-element list) and the target collection
    is scanned for documents whose `target` property equals one of them.
    The matches are joined and shaped again with the spec's own options
    and stored under `alias`; no match gives an empty list.

    Input documents are modified in place and returned in the same order.
    """
    for raw in specs:
        spec = JoinSpec.coerce(raw)
        for doc in docs:
            doc[spec.alias] = _related(doc, spec)
    return docs


def _related(doc: Dict[str, Any], spec: JoinSpec) -> List[Dict[str, Any]]:
    target_coll = spec.collection
    target_keys: ReservedKeys = getattr(target_coll, "keys", DEFAULT_KEYS)
    to = spec.target or target_keys.id_key
    if spec.source not in doc:
        return []
    fks = ensure_list(doc[spec.source])
    if not fks:
        return []
    found = []
    for other in target_coll.scan():
        if to not in other:
            continue
        if any(deep_equal(other[to], fk) for fk in fks):
            found.append(deep_copy(other))
    if spec.options.join:
        found = join(found, spec.options.join)
    return shape(found, spec.options, target_keys)
