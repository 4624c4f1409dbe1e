"""
Minimal MongoDB query semantics for the in-memory Data API: equality and a few comparison
operators in filters, inclusion/exclusion projections, $set/$unset/$inc updates, and a handful
of aggregation stages. Enough for local development, not a database.
"""
import copy
from typing import Any

_COMPARISONS = {
    "$eq": lambda a, b: a == b,
    "$ne": lambda a, b: a != b,
    "$gt": lambda a, b: a is not None and a > b,
    "$gte": lambda a, b: a is not None and a >= b,
    "$lt": lambda a, b: a is not None and a < b,
    "$lte": lambda a, b: a is not None and a <= b,
    "$in": lambda a, b: a in b,
    "$nin": lambda a, b: a not in b,
}


class QueryError(ValueError):
    pass


def _get(doc: dict, path: str) -> Any:
    cur: Any = doc
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return None
        cur = cur[part]
    return cur


def matches(doc: dict, filter: dict | None) -> bool:
    if not filter:
        return True
    if not isinstance(filter, dict):
        raise QueryError("filter must be a document")
    for key, cond in filter.items():
        value = _get(doc, key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, operand in cond.items():
                fn = _COMPARISONS.get(op)
                if fn is None:
                    raise QueryError(f"unsupported query operator {op}")
                try:
                    if not fn(value, operand):
                        return False
                except TypeError:
                    return False
        elif value != cond:
            return False
    return True


def project(doc: dict, projection: dict | None) -> dict:
    if not projection:
        return copy.deepcopy(doc)
    include = {k for k, v in projection.items() if v and k != "_id"}
    exclude = {k for k, v in projection.items() if not v}
    if include:
        out = {k: copy.deepcopy(doc[k]) for k in include if k in doc}
        if "_id" not in exclude and "_id" in doc:
            out["_id"] = doc["_id"]
        return out
    return {k: copy.deepcopy(v) for k, v in doc.items() if k not in exclude}


def sort_documents(docs: list[dict], sort: dict | None) -> list[dict]:
    if not sort:
        return list(docs)
    out = list(docs)
    # Stable sorts applied from the least significant key
    for key, direction in reversed(list(sort.items())):
        present = [d for d in out if _get(d, key) is not None]
        missing = [d for d in out if _get(d, key) is None]
        present.sort(key=lambda d: _get(d, key), reverse=direction == -1)
        out = missing + present if direction != -1 else present + missing
    return out


def apply_update(doc: dict, update: dict) -> bool:
    """Apply update operators in place. Returns True if the document changed."""
    if not update or not all(k.startswith("$") for k in update):
        raise QueryError("update must contain only update operators ($set, $unset, $inc)")
    before = copy.deepcopy(doc)
    for op, fields in update.items():
        if not isinstance(fields, dict):
            raise QueryError(f"{op} requires a document")
        if op == "$set":
            doc.update(copy.deepcopy(fields))
        elif op == "$unset":
            for k in fields:
                doc.pop(k, None)
        elif op == "$inc":
            for k, v in fields.items():
                doc[k] = (doc.get(k) or 0) + v
        else:
            raise QueryError(f"unsupported update operator {op}")
    return doc != before


def run_pipeline(docs: list[dict], pipeline: list[dict]) -> list[dict]:
    out = [copy.deepcopy(d) for d in docs]
    for stage in pipeline:
        if not isinstance(stage, dict) or len(stage) != 1:
            raise QueryError("each pipeline stage must be a single-key document")
        (name, arg), = stage.items()
        if name == "$match":
            out = [d for d in out if matches(d, arg)]
        elif name == "$limit":
            out = out[: int(arg)]
        elif name == "$skip":
            out = out[int(arg):]
        elif name == "$sort":
            out = sort_documents(out, arg)
        elif name == "$project":
            out = [project(d, arg) for d in out]
        elif name == "$count":
            out = [{str(arg): len(out)}]
        else:
            raise QueryError(f"unsupported pipeline stage {name}")
    return out
