from __future__ import annotations
import re
from enum import Enum
from typing import Any, Dict, Optional

from .errors import InvalidQueryError, UnknownOperatorError
from .paths import Path, locate, get_path


class QueryOperator(str, Enum):
    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"
    EQ = "$eq"
    NE = "$ne"
    IN = "$in"
    NIN = "$nin"
    INCLUDES = "$includes"
    LENGTH = "$length"
    RE = "$re"
    EXISTS = "$exists"
    FN = "$fn"

    @classmethod
    def from_key(cls, key: str) -> "QueryOperator":
        try:
            return cls(key)
        except ValueError:
            raise UnknownOperatorError(key, "query") from None


class Logical(str, Enum):
    AND = "$and"
    OR = "$or"
    NOT = "$not"

    @classmethod
    def from_key(cls, key: str) -> "Logical":
        try:
            return cls(key)
        except ValueError:
            raise UnknownOperatorError(key, "query") from None


def is_operator_mapping(cond: Any) -> bool:
    """
    True for {"$gt": 1, ...}. A mapping mixing "$" keys with plain
    property names is rejected.
    """
    if not isinstance(cond, dict) or not cond:
        return False
    flags = [isinstance(k, str) and k.startswith("$") for k in cond]
    if all(flags):
        return True
    if any(flags):
        raise InvalidQueryError(f"cannot mix operators and properties in {sorted(map(str, cond))}")
    return False


def deep_equal(a: Any, b: Any) -> bool:
    # bool is an int subclass; keep True != 1
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, dict):
        if not isinstance(b, dict) or a.keys() != b.keys():
            return False
        return all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)):
        if not isinstance(b, (list, tuple)) or len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    return a == b


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _orderable(a: Any, b: Any) -> bool:
    return (_is_number(a) and _is_number(b)) or (isinstance(a, str) and isinstance(b, str))


def _eval_op(op: QueryOperator, found: bool, val: Any, arg: Any) -> bool:
    if op is QueryOperator.EXISTS:
        return found == bool(arg)
    if not found:
        return False
    if op is QueryOperator.EQ:
        return deep_equal(val, arg)
    if op is QueryOperator.NE:
        return not deep_equal(val, arg)
    if op is QueryOperator.GT:
        return _orderable(val, arg) and val > arg
    if op is QueryOperator.GTE:
        return _orderable(val, arg) and val >= arg
    if op is QueryOperator.LT:
        return _orderable(val, arg) and val < arg
    if op is QueryOperator.LTE:
        return _orderable(val, arg) and val <= arg
    if op is QueryOperator.IN:
        return any(deep_equal(val, a) for a in _list_arg(op, arg))
    if op is QueryOperator.NIN:
        return not any(deep_equal(val, a) for a in _list_arg(op, arg))
    if op is QueryOperator.INCLUDES:
        if isinstance(val, list):
            return any(deep_equal(x, arg) for x in val)
        if isinstance(val, str) and isinstance(arg, str):
            return arg in val
        return False
    if op is QueryOperator.LENGTH:
        return isinstance(val, (str, list, dict)) and len(val) == arg
    if op is QueryOperator.RE:
        return isinstance(val, str) and _compile(arg).search(val) is not None
    if op is QueryOperator.FN:
        if not callable(arg):
            raise InvalidQueryError("$fn expects a callable")
        return bool(arg(val))
    raise AssertionError(f"unhandled query operator {op!r}")


def _list_arg(op: QueryOperator, arg: Any) -> list:
    if not isinstance(arg, (list, tuple)):
        raise InvalidQueryError(f"{op.value} expects a list, got {type(arg).__name__}")
    return list(arg)


def _compile(arg: Any) -> "re.Pattern[str]":
    if isinstance(arg, re.Pattern):
        return arg
    if not isinstance(arg, str):
        raise InvalidQueryError(f"$re expects a pattern string, got {type(arg).__name__}")
    try:
        return re.compile(arg)
    except re.error as e:
        raise InvalidQueryError(f"$re: bad pattern {arg!r}: {e}") from e


def _sub_queries(op: Logical, clauses: Any) -> list:
    if not isinstance(clauses, (list, tuple)):
        raise InvalidQueryError(f"{op.value} requires a list of queries")
    return list(clauses)


def matches(doc: Any, query: Dict[str, Any]) -> bool:
    """
    Evaluate `query` against one document. Sibling keys are ANDed; bare
    property names are looked up anywhere in the document (see paths.locate).
    """
    if not isinstance(query, dict):
        raise InvalidQueryError(f"query must be a mapping, got {type(query).__name__}")
    for key, cond in query.items():
        if isinstance(key, str) and key.startswith("$"):
            if not _eval_logical(doc, Logical.from_key(key), cond):
                return False
            continue
        path = locate(doc, key)
        found = path is not None
        val = get_path(doc, path) if found else None
        if is_operator_mapping(cond):
            for op_key, arg in cond.items():
                if not _eval_op(QueryOperator.from_key(op_key), found, val, arg):
                    return False
        elif not found:
            return False
        elif isinstance(cond, dict):
            if not isinstance(val, dict) or not matches(val, cond):
                return False
        elif not deep_equal(val, cond):
            return False
    return True


def _eval_logical(doc: Any, op: Logical, clauses: Any) -> bool:
    if op is Logical.AND:
        return all(matches(doc, q) for q in _sub_queries(op, clauses))
    if op is Logical.OR:
        return any(matches(doc, q) for q in _sub_queries(op, clauses))
    if op is Logical.NOT:
        if not isinstance(clauses, dict):
            raise InvalidQueryError("$not requires a single query mapping")
        return not matches(doc, clauses)
    raise AssertionError(f"unhandled logical operator {op!r}")


def validate_query(query: Any) -> None:
    """
    Walk the whole query once and raise on anything malformed, so errors
    surface before documents are scanned (and even when there are none).
    """
    if not isinstance(query, dict):
        raise InvalidQueryError(f"query must be a mapping, got {type(query).__name__}")
    for key, cond in query.items():
        if isinstance(key, str) and key.startswith("$"):
            op = Logical.from_key(key)
            if op is Logical.NOT:
                validate_query(cond)
            else:
                for q in _sub_queries(op, cond):
                    validate_query(q)
        elif is_operator_mapping(cond):
            for op_key, arg in cond.items():
                qop = QueryOperator.from_key(op_key)
                if qop in (QueryOperator.IN, QueryOperator.NIN):
                    _list_arg(qop, arg)
                elif qop is QueryOperator.RE:
                    _compile(arg)
                elif qop is QueryOperator.FN and not callable(arg):
                    raise InvalidQueryError("$fn expects a callable")
        elif isinstance(cond, dict):
            validate_query(cond)


def match_anchor(doc: Any, query: Dict[str, Any]) -> Optional[Path]:
    """
    Path of the mapping the query "addressed": the container of the first
    query property that resolves in `doc`. Nested query fragments descend
    structurally; only the first resolvable branch of $and/$or is used.
    Returns None when nothing in the query resolves.
    """
    for key, cond in query.items():
        if isinstance(key, str) and key.startswith("$"):
            if key in (Logical.AND.value, Logical.OR.value) and isinstance(cond, (list, tuple)):
                for q in cond:
                    if isinstance(q, dict):
                        sub = match_anchor(doc, q)
                        if sub is not None:
                            return sub
            continue
        path = locate(doc, key)
        if path is None:
            continue
        if isinstance(cond, dict) and not is_operator_mapping(cond):
            inner = get_path(doc, path)
            sub = match_anchor(inner, cond) if isinstance(inner, dict) else None
            return path + sub if sub is not None else path
        return path[:-1]
    return None
