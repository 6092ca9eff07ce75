"""Mongo-style filter matching, sorting, projection and updates over plain dicts."""

from __future__ import annotations

import copy
import json
import re
from typing import Any

from docgate.core.errors import InvalidQueryError, InvalidUpdateError

_MISSING = object()

COMPARATORS = {
    "$eq", "$ne", "$gt", "$gte", "$lt", "$lte",
    "$in", "$nin", "$exists", "$regex", "$options", "$size",
    "$all", "$elemMatch", "$not",
}
LOGICAL = {"$and", "$or", "$nor"}


def deep_get(doc: dict[str, Any], dotted_key: str, default: Any = _MISSING) -> Any:
    cur: Any = doc
    for part in dotted_key.split("."):
        if isinstance(cur, dict) and part in cur:
            cur = cur[part]
        elif isinstance(cur, list) and part.isdigit() and int(part) < len(cur):
            cur = cur[int(part)]
        else:
            return default
    return cur


def deep_set(doc: dict[str, Any], dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    cur = doc
    for part in parts[:-1]:
        if part not in cur or not isinstance(cur[part], dict):
            cur[part] = {}
        cur = cur[part]
    cur[parts[-1]] = value


def deep_unset(doc: dict[str, Any], dotted_key: str) -> None:
    parts = dotted_key.split(".")
    cur = doc
    for part in parts[:-1]:
        if part not in cur or not isinstance(cur[part], dict):
            return
        cur = cur[part]
    cur.pop(parts[-1], None)


# =========================
# Filters
# =========================


def validate_query(query: Any) -> None:
    """Reject malformed filters whether or not any document would reach them."""
    if not isinstance(query, dict):
        raise InvalidQueryError("Query must be an object")
    for key, cond in query.items():
        if key in LOGICAL:
            if not isinstance(cond, list):
                raise InvalidQueryError(f"{key} requires a list of clauses")
            for clause in cond:
                validate_query(clause)
        elif key.startswith("$"):
            raise InvalidQueryError(f"Unsupported top-level operator: {key}")
        elif _is_operator_doc(cond):
            _validate_operators(cond)


def _validate_operators(cond: dict[str, Any]) -> None:
    for op, arg in cond.items():
        if op not in COMPARATORS:
            raise InvalidQueryError(f"Unsupported operator: {op}")
        if op in ("$in", "$nin", "$all") and not isinstance(arg, list):
            raise InvalidQueryError(f"{op} requires a list")
        if op == "$regex":
            _parse_regex(arg)
        elif op == "$not" and _is_operator_doc(arg):
            _validate_operators(arg)
        elif op == "$elemMatch" and isinstance(arg, dict):
            if _is_operator_doc(arg):
                _validate_operators(arg)
            else:
                validate_query(arg)


def match_query(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    if not isinstance(query, dict):
        raise InvalidQueryError("Query must be an object")
    for key, cond in query.items():
        if key in LOGICAL:
            if not _eval_logical(doc, key, cond):
                return False
        elif key.startswith("$"):
            raise InvalidQueryError(f"Unsupported top-level operator: {key}")
        elif not _eval_field(doc, key, cond):
            return False
    return True


def _eval_logical(doc: dict[str, Any], op: str, clauses: Any) -> bool:
    if not isinstance(clauses, list):
        raise InvalidQueryError(f"{op} requires a list of clauses")
    results = [match_query(doc, clause) for clause in clauses]
    if op == "$and":
        return all(results)
    if op == "$or":
        return any(results)
    return not any(results)


def _is_operator_doc(cond: Any) -> bool:
    return isinstance(cond, dict) and bool(cond) and all(k.startswith("$") for k in cond)


def _eval_field(doc: dict[str, Any], dotted_key: str, cond: Any) -> bool:
    value = deep_get(doc, dotted_key)
    if _is_operator_doc(cond):
        for op, arg in cond.items():
            if op not in COMPARATORS:
                raise InvalidQueryError(f"Unsupported operator: {op}")
            if op == "$options":
                continue
            if op == "$regex" and "$options" in cond:
                arg = {"pattern": arg, "options": cond["$options"]}
            if not _eval_op(value, op, arg):
                return False
        return True
    return _equals(value, cond)


def _equals(value: Any, cond: Any) -> bool:
    if value is _MISSING:
        return cond is None
    if isinstance(value, list) and not isinstance(cond, list):
        return cond in value
    return value == cond


def _comparable(value: Any, arg: Any) -> bool:
    if value is _MISSING or value is None or arg is None:
        return False
    if isinstance(value, bool) or isinstance(arg, bool):
        return isinstance(value, bool) and isinstance(arg, bool)
    if isinstance(value, (int, float)) and isinstance(arg, (int, float)):
        return True
    return type(value) is type(arg)


def _eval_op(value: Any, op: str, arg: Any) -> bool:
    if op == "$eq":
        return _equals(value, arg)
    if op == "$ne":
        return not _equals(value, arg)
    if op in ("$gt", "$gte", "$lt", "$lte"):
        candidates = value if isinstance(value, list) else [value]
        for v in candidates:
            if not _comparable(v, arg):
                continue
            if op == "$gt" and v > arg:
                return True
            if op == "$gte" and v >= arg:
                return True
            if op == "$lt" and v < arg:
                return True
            if op == "$lte" and v <= arg:
                return True
        return False
    if op == "$in":
        if not isinstance(arg, list):
            raise InvalidQueryError("$in requires a list")
        return any(_equals(value, a) for a in arg)
    if op == "$nin":
        if not isinstance(arg, list):
            raise InvalidQueryError("$nin requires a list")
        return not any(_equals(value, a) for a in arg)
    if op == "$exists":
        return (value is not _MISSING) == bool(arg)
    if op == "$regex":
        if not isinstance(value, str):
            return False
        pattern, flags = _parse_regex(arg)
        return re.search(pattern, value, flags) is not None
    if op == "$size":
        return isinstance(value, list) and len(value) == arg
    if op == "$all":
        return isinstance(value, list) and all(item in value for item in arg)
    if op == "$elemMatch":
        if not isinstance(value, list):
            return False
        return any(
            match_query(elem, arg) if isinstance(elem, dict) and not _is_operator_doc(arg)
            else _eval_field({"v": elem}, "v", arg)
            for elem in value
        )
    if op == "$not":
        return not _eval_field({"v": value} if value is not _MISSING else {}, "v", arg)
    return False


def _parse_regex(arg: Any) -> tuple[str, int]:
    if isinstance(arg, str):
        return arg, 0
    if isinstance(arg, dict):
        flags = 0
        options = arg.get("options", "")
        if "i" in options:
            flags |= re.IGNORECASE
        if "m" in options:
            flags |= re.MULTILINE
        if "s" in options:
            flags |= re.DOTALL
        return arg.get("pattern", ""), flags
    raise InvalidQueryError("$regex must be a string or {pattern, options}")


# =========================
# Sorting
# =========================


def _type_rank(value: Any) -> tuple[int, Any]:
    # Mongo comparison order: null < numbers < strings < objects < arrays < booleans
    if value is _MISSING or value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (5, value)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, dict):
        return (3, json.dumps(value, sort_keys=True, default=str))
    if isinstance(value, list):
        return (4, json.dumps(value, sort_keys=True, default=str))
    return (6, str(value))


def sort_documents(docs: list[dict[str, Any]], spec: dict[str, int] | None) -> list[dict[str, Any]]:
    """Stable multi-key sort; ties keep insertion order."""
    if not spec:
        return docs
    for key, direction in reversed(list(spec.items())):
        if direction not in (1, -1):
            raise InvalidQueryError(f"Sort direction for {key!r} must be 1 or -1")
        docs.sort(key=lambda d: _type_rank(deep_get(d, key)), reverse=direction < 0)
    return docs


# =========================
# Projection
# =========================


def project_document(doc: dict[str, Any], projection: dict[str, int] | None) -> dict[str, Any]:
    if not projection:
        return doc
    fields = {k: bool(v) for k, v in projection.items() if k != "_id"}
    keep_id = bool(projection.get("_id", 1))
    include = {k for k, v in fields.items() if v}
    exclude = {k for k, v in fields.items() if not v}
    if include and exclude:
        raise InvalidQueryError("Projection cannot mix inclusion and exclusion")

    if include:
        out: dict[str, Any] = {}
        if keep_id and "_id" in doc:
            out["_id"] = doc["_id"]
        for key in include:
            value = deep_get(doc, key)
            if value is not _MISSING:
                deep_set(out, key, value)
        return out

    out = copy.deepcopy(doc)
    for key in exclude:
        deep_unset(out, key)
    if not keep_id:
        out.pop("_id", None)
    return out


# =========================
# Updates
# =========================

UPDATE_OPERATORS = {"$set", "$unset", "$inc"}


def normalize_update(update: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Plain field maps become ``$set``; operator documents are validated."""
    if not any(k.startswith("$") for k in update):
        return {"$set": dict(update)}
    for key in update:
        if key not in UPDATE_OPERATORS:
            raise InvalidUpdateError(f"Unsupported update operator: {key}")
    return update


def apply_update(doc: dict[str, Any], update: dict[str, dict[str, Any]]) -> dict[str, Any]:
    for op, spec in update.items():
        for key, value in spec.items():
            if key == "_id":
                continue
            if op == "$set":
                deep_set(doc, key, value)
            elif op == "$unset":
                deep_unset(doc, key)
            elif op == "$inc":
                current = deep_get(doc, key, 0)
                if not isinstance(current, (int, float)) or isinstance(current, bool):
                    raise InvalidUpdateError(f"Cannot $inc non-numeric field {key!r}")
                deep_set(doc, key, current + value)
    return doc
