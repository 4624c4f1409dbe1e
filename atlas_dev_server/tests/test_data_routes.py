"""
Tests for the in-memory Data API: auth on every action, the CRUD actions, and query semantics.
"""
import pytest

from atlas_dev_server import tokens
from atlas_dev_server.config import APP_ID
from atlas_dev_server.query import QueryError, apply_update, matches, run_pipeline, sort_documents
from atlas_dev_server.state import STATE

NS = {"dataSource": "mongodb-atlas", "database": "shop", "collection": "orders"}


@pytest.fixture
def auth(user):
    return {"Authorization": f"Bearer {tokens.issue_access_token(user.id, 'dev-1')}"}


def _action(client, auth, action: str, **payload):
    return client.post(f"/app/{APP_ID}/endpoint/data/v1/action/{action}", json={**NS, **payload}, headers=auth)


def test_requires_access_token(client):
    r = client.post(f"/app/{APP_ID}/endpoint/data/v1/action/find", json=NS)
    assert r.status_code == 401
    assert r.json()["error_code"] == "InvalidSession"


def test_expired_access_token_rejected(client, user):
    expired = tokens.issue_access_token(user.id, "dev-1", expires_in=-10)
    r = _action(client, {"Authorization": f"Bearer {expired}"}, "find")
    assert r.status_code == 401
    assert STATE.counters["data"] == 1


def test_unknown_app_and_version(client, auth):
    assert client.post("/app/other/endpoint/data/v1/action/find", json=NS, headers=auth).status_code == 404
    assert client.post(f"/app/{APP_ID}/endpoint/data/v9/action/find", json=NS, headers=auth).status_code == 404


def test_unknown_action(client, auth):
    r = _action(client, auth, "dropDatabase")
    assert r.status_code == 404
    assert r.json()["error_code"] == "ActionNotFound"


def test_missing_namespace(client, auth):
    r = client.post(f"/app/{APP_ID}/endpoint/data/v1/action/find", json={"database": "shop"}, headers=auth)
    assert r.status_code == 400
    assert r.json()["error_code"] == "InvalidParameter"


def test_insert_and_find(client, auth):
    inserted = _action(client, auth, "insertOne", document={"item": "pen", "qty": 3}).json()
    assert len(inserted["insertedId"]) == 24
    many = _action(client, auth, "insertMany", documents=[{"item": "ink", "qty": 10}, {"item": "pad", "qty": 1}])
    assert len(many.json()["insertedIds"]) == 2

    doc = _action(client, auth, "findOne", filter={"item": "pen"}).json()["document"]
    assert doc["_id"] == inserted["insertedId"]
    assert _action(client, auth, "findOne", filter={"item": "none"}).json() == {"document": None}

    found = _action(
        client, auth, "find", filter={"qty": {"$gte": 2}}, sort={"qty": -1}, projection={"item": 1, "_id": 0}
    ).json()
    assert found == {"documents": [{"item": "ink"}, {"item": "pen"}]}

    page = _action(client, auth, "find", sort={"qty": 1}, skip=1, limit=1).json()["documents"]
    assert [d["item"] for d in page] == ["pen"]


def test_find_limit_validated(client, auth):
    assert _action(client, auth, "find", limit=0).status_code == 400


@pytest.mark.parametrize("skip", [-1, "2", 1.5])
def test_find_skip_validated(client, auth, skip):
    _action(client, auth, "insertMany", documents=[{"n": i} for i in range(3)])
    r = _action(client, auth, "find", skip=skip)
    assert r.status_code == 400
    assert r.json()["error_code"] == "InvalidParameter"


def test_update_replace_delete(client, auth):
    _action(client, auth, "insertMany", documents=[{"k": 1, "n": 0}, {"k": 1, "n": 0}, {"k": 2, "n": 0}])

    r = _action(client, auth, "updateOne", filter={"k": 1}, update={"$inc": {"n": 5}}).json()
    assert r == {"matchedCount": 1, "modifiedCount": 1}
    r = _action(client, auth, "updateMany", filter={"k": 1}, update={"$set": {"tag": "x"}}).json()
    assert r == {"matchedCount": 2, "modifiedCount": 2}

    r = _action(client, auth, "replaceOne", filter={"k": 2}, replacement={"k": 2, "replaced": True}).json()
    assert r == {"matchedCount": 1, "modifiedCount": 1}

    r = _action(client, auth, "deleteOne", filter={"k": 1}).json()
    assert r == {"deletedCount": 1}
    r = _action(client, auth, "deleteMany", filter={}).json()
    assert r == {"deletedCount": 2}


def test_upsert(client, auth):
    r = _action(client, auth, "updateOne", filter={"sku": "a"}, update={"$set": {"qty": 1}}, upsert=True).json()
    assert r["matchedCount"] == 0
    assert r["upsertedId"]
    doc = _action(client, auth, "findOne", filter={"_id": r["upsertedId"]}).json()["document"]
    assert doc["sku"] == "a" and doc["qty"] == 1


def test_replacement_with_operators_rejected(client, auth):
    r = _action(client, auth, "replaceOne", filter={}, replacement={"$set": {"a": 1}})
    assert r.status_code == 400


def test_invalid_filter_is_bad_request(client, auth):
    _action(client, auth, "insertOne", document={"qty": 1})
    r = _action(client, auth, "find", filter={"qty": {"$where": "1"}})
    assert r.status_code == 400
    assert "unsupported query operator" in r.json()["error"]


def test_aggregate(client, auth):
    _action(client, auth, "insertMany", documents=[{"n": i} for i in range(5)])
    r = _action(client, auth, "aggregate", pipeline=[{"$match": {"n": {"$gt": 1}}}, {"$count": "total"}])
    assert r.json() == {"documents": [{"total": 3}]}


def test_collections_are_isolated(client, auth):
    _action(client, auth, "insertOne", document={"a": 1})
    other = {**NS, "collection": "other"}
    r = client.post(f"/app/{APP_ID}/endpoint/data/v1/action/find", json=other, headers=auth)
    assert r.json() == {"documents": []}


def test_query_helpers():
    assert matches({"a": {"b": 2}}, {"a.b": 2})
    assert not matches({"a": 1}, {"a": {"$in": [2, 3]}})
    assert matches({"a": 1}, {"a": {"$nin": [2, 3]}})
    with pytest.raises(QueryError):
        matches({}, ["not", "a", "filter"])
    doc = {"a": 1, "b": 2}
    assert apply_update(doc, {"$unset": {"b": ""}, "$inc": {"a": 1}})
    assert doc == {"a": 2}
    assert [d.get("n") for d in sort_documents([{"n": 2}, {"n": 1}, {}], {"n": 1})] == [None, 1, 2]
    assert run_pipeline([{"n": 1}, {"n": 2}], [{"$sort": {"n": -1}}, {"$limit": 1}]) == [{"n": 2}]
