"""
Data API actions (POST /app/<app id>/endpoint/data/<version>/action/<action>) on in-memory collections.
Bearer access token required; an expired or invalid token gets 401 InvalidSession like the hosted API.
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Request

from atlas_dev_server.config import APP_ID
from atlas_dev_server.query import QueryError, apply_update, matches, project, run_pipeline, sort_documents
from atlas_dev_server.state import STATE, new_object_id
from atlas_dev_server.tokens import AppServicesError, bearer_token, decode_access_token

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_FIND_LIMIT = 50000


def _bad_request(message: str) -> AppServicesError:
    return AppServicesError(400, message, "InvalidParameter")


def _collection(body: dict[str, Any]) -> list[dict[str, Any]]:
    for field in ("dataSource", "database", "collection"):
        if not isinstance(body.get(field), str) or not body[field]:
            raise _bad_request(f"{field} is required")
    return STATE.collection(body["dataSource"], body["database"], body["collection"])


def _require_dict(body: dict[str, Any], field: str) -> dict:
    value = body.get(field)
    if not isinstance(value, dict):
        raise _bad_request(f"{field} must be a document")
    return value


def _insert(docs: list[dict], document: dict) -> Any:
    doc = dict(document)
    doc.setdefault("_id", new_object_id())
    docs.append(doc)
    return doc["_id"]


def _update(docs: list[dict], body: dict[str, Any], many: bool) -> dict[str, Any]:
    filter = _require_dict(body, "filter")
    update = _require_dict(body, "update")
    matched = [d for d in docs if matches(d, filter)]
    if not many:
        matched = matched[:1]
    modified = sum(1 for d in matched if apply_update(d, update))
    result: dict[str, Any] = {"matchedCount": len(matched), "modifiedCount": modified}
    if not matched and body.get("upsert"):
        doc = {k: v for k, v in filter.items() if not isinstance(v, dict)}
        apply_update(doc, update)
        result["upsertedId"] = _insert(docs, doc)
    return result


def _replace(docs: list[dict], body: dict[str, Any]) -> dict[str, Any]:
    filter = _require_dict(body, "filter")
    replacement = _require_dict(body, "replacement")
    if any(k.startswith("$") for k in replacement):
        raise _bad_request("replacement must not contain update operators")
    for i, d in enumerate(docs):
        if matches(d, filter):
            new_doc = dict(replacement)
            new_doc["_id"] = d["_id"]
            docs[i] = new_doc
            return {"matchedCount": 1, "modifiedCount": int(new_doc != d)}
    result: dict[str, Any] = {"matchedCount": 0, "modifiedCount": 0}
    if body.get("upsert"):
        result["upsertedId"] = _insert(docs, replacement)
    return result


def _delete(docs: list[dict], body: dict[str, Any], many: bool) -> dict[str, Any]:
    filter = _require_dict(body, "filter")
    doomed = [d for d in docs if matches(d, filter)]
    if not many:
        doomed = doomed[:1]
    for d in doomed:
        docs.remove(d)
    return {"deletedCount": len(doomed)}


def _find(docs: list[dict], body: dict[str, Any]) -> dict[str, Any]:
    limit = body.get("limit")
    if limit is not None and (not isinstance(limit, int) or not 0 < limit <= MAX_FIND_LIMIT):
        raise _bad_request(f"limit must be between 1 and {MAX_FIND_LIMIT}")
    skip = body.get("skip")
    if skip is not None and (not isinstance(skip, int) or skip < 0):
        raise _bad_request("skip must be a non-negative integer")
    found = sort_documents([d for d in docs if matches(d, body.get("filter"))], body.get("sort"))
    found = found[skip or 0:]
    if limit is not None:
        found = found[:limit]
    return {"documents": [project(d, body.get("projection")) for d in found]}


def run_action(action: str, body: dict[str, Any]) -> dict[str, Any]:
    docs = _collection(body)
    if action == "findOne":
        for d in docs:
            if matches(d, body.get("filter")):
                return {"document": project(d, body.get("projection"))}
        return {"document": None}
    if action == "find":
        return _find(docs, body)
    if action == "insertOne":
        return {"insertedId": _insert(docs, _require_dict(body, "document"))}
    if action == "insertMany":
        documents = body.get("documents")
        if not isinstance(documents, list) or not all(isinstance(d, dict) for d in documents):
            raise _bad_request("documents must be an array of documents")
        return {"insertedIds": [_insert(docs, d) for d in documents]}
    if action in ("updateOne", "updateMany"):
        return _update(docs, body, many=action == "updateMany")
    if action == "replaceOne":
        return _replace(docs, body)
    if action in ("deleteOne", "deleteMany"):
        return _delete(docs, body, many=action == "deleteMany")
    if action == "aggregate":
        pipeline = body.get("pipeline")
        if not isinstance(pipeline, list):
            raise _bad_request("pipeline must be an array")
        return {"documents": run_pipeline(docs, pipeline)}
    raise AppServicesError(404, f"unknown action {action}", "ActionNotFound")


@router.post("/app/{app_id}/endpoint/data/{version}/action/{action}")
def data_action(
    app_id: str,
    version: str,
    action: str,
    request: Request,
    body: dict[str, Any] | None = Body(default=None),
):
    if app_id != APP_ID:
        raise AppServicesError(404, f"cannot find app using Client App ID '{app_id}'", "AppNotFound")
    if version != "v1":
        raise AppServicesError(404, f"unsupported Data API version {version}", "ActionNotFound")
    STATE.count("data")
    claims = decode_access_token(bearer_token(request))
    try:
        result = run_action(action, dict(body or {}))
    except QueryError as e:
        raise _bad_request(str(e))
    logger.debug("data action=%s user_id=%s", action, claims["sub"])
    return result
