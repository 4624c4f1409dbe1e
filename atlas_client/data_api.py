"""
MongoDB Data API operations: request descriptors for each action, their typed results,
and MongoCollection, a handle that routes actions through an App's authorized pipeline.

Base URL: https://[<region>.<cloud>.]data.mongodb-api.com/app/<app id>/endpoint/data/<version>
Each action is POST <base>/action/<name> with {"dataSource", "database", "collection", ...}.
"""
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from atlas_client.config import DATA_API_REGION, DATA_API_VERSION
from atlas_client.errors import MalformedResponse
from atlas_client.transport import HttpRequest

if TYPE_CHECKING:
    from atlas_client.app import App

ACTIONS = (
    "findOne",
    "find",
    "insertOne",
    "insertMany",
    "updateOne",
    "updateMany",
    "replaceOne",
    "deleteOne",
    "deleteMany",
    "aggregate",
)

# Data API cap on documents returned by one find
MAX_FIND_LIMIT = 50000


def data_api_url(app_id: str, region: str | None = DATA_API_REGION, version: str = DATA_API_VERSION) -> str:
    """Base URL for the app's Data API; region is None when the app is deployed globally."""
    host = f"{region}.data.mongodb-api.com" if region else "data.mongodb-api.com"
    return f"https://{host}/app/{app_id}/endpoint/data/{version}"


@dataclass(frozen=True)
class Namespace:
    data_source: str
    database: str
    collection: str

    def to_body(self) -> dict[str, str]:
        return {"dataSource": self.data_source, "database": self.database, "collection": self.collection}


@dataclass(frozen=True)
class DataApiOperation:
    """One Data API action. payload is passed through as-is; the backend validates it."""

    action: str
    namespace: Namespace
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.action not in ACTIONS:
            raise ValueError(f"Unknown Data API action: {self.action}")

    def body(self) -> dict[str, Any]:
        body = self.namespace.to_body()
        body.update({k: v for k, v in self.payload.items() if v is not None})
        return body

    def to_request(self, base_url: str) -> HttpRequest:
        return HttpRequest(method="POST", url=f"{base_url.rstrip('/')}/action/{self.action}", json=self.body())


def find_one(ns: Namespace, filter: dict | None = None, projection: dict | None = None) -> DataApiOperation:
    return DataApiOperation("findOne", ns, {"filter": filter, "projection": projection})


def find(
    ns: Namespace,
    filter: dict | None = None,
    projection: dict | None = None,
    sort: dict | None = None,
    limit: int | None = None,
    skip: int | None = None,
) -> DataApiOperation:
    if limit is not None and not 0 < limit <= MAX_FIND_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_FIND_LIMIT}")
    if skip is not None and skip < 0:
        raise ValueError("skip must not be negative")
    return DataApiOperation(
        "find",
        ns,
        {"filter": filter, "projection": projection, "sort": sort, "limit": limit, "skip": skip},
    )


def insert_one(ns: Namespace, document: dict) -> DataApiOperation:
    return DataApiOperation("insertOne", ns, {"document": document})


def insert_many(ns: Namespace, documents: list[dict]) -> DataApiOperation:
    return DataApiOperation("insertMany", ns, {"documents": list(documents)})


def update_one(ns: Namespace, filter: dict, update: dict, upsert: bool | None = None) -> DataApiOperation:
    return DataApiOperation("updateOne", ns, {"filter": filter, "update": update, "upsert": upsert})


def update_many(ns: Namespace, filter: dict, update: dict, upsert: bool | None = None) -> DataApiOperation:
    return DataApiOperation("updateMany", ns, {"filter": filter, "update": update, "upsert": upsert})


def replace_one(ns: Namespace, filter: dict, replacement: dict, upsert: bool | None = None) -> DataApiOperation:
    return DataApiOperation("replaceOne", ns, {"filter": filter, "replacement": replacement, "upsert": upsert})


def delete_one(ns: Namespace, filter: dict) -> DataApiOperation:
    return DataApiOperation("deleteOne", ns, {"filter": filter})


def delete_many(ns: Namespace, filter: dict) -> DataApiOperation:
    return DataApiOperation("deleteMany", ns, {"filter": filter})


def aggregate(ns: Namespace, pipeline: list[dict]) -> DataApiOperation:
    return DataApiOperation("aggregate", ns, {"pipeline": list(pipeline)})


# --- results ---


def _body(raw: Any) -> dict:
    if not isinstance(raw, dict):
        raise MalformedResponse("Data API response is not a JSON object", body=raw)
    return raw


@dataclass
class FindResult:
    document: dict | None = None
    documents: list[dict] | None = None

    @classmethod
    def from_body(cls, raw: Any) -> "FindResult":
        body = _body(raw)
        return cls(document=body.get("document"), documents=body.get("documents"))


@dataclass
class InsertResult:
    inserted_id: Any = None
    inserted_ids: list | None = None

    @classmethod
    def from_body(cls, raw: Any) -> "InsertResult":
        body = _body(raw)
        return cls(inserted_id=body.get("insertedId"), inserted_ids=body.get("insertedIds"))


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int
    upserted_id: Any = None

    @classmethod
    def from_body(cls, raw: Any) -> "UpdateResult":
        body = _body(raw)
        try:
            return cls(
                matched_count=int(body["matchedCount"]),
                modified_count=int(body["modifiedCount"]),
                upserted_id=body.get("upsertedId"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Failed to parse update result: {e}", body=raw) from e


@dataclass
class DeleteResult:
    deleted_count: int

    @classmethod
    def from_body(cls, raw: Any) -> "DeleteResult":
        body = _body(raw)
        try:
            return cls(deleted_count=int(body["deletedCount"]))
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Failed to parse delete result: {e}", body=raw) from e


@dataclass
class AggregateResult:
    documents: list[dict]

    @classmethod
    def from_body(cls, raw: Any) -> "AggregateResult":
        body = _body(raw)
        documents = body.get("documents")
        if not isinstance(documents, list):
            raise MalformedResponse("Aggregate response missing documents", body=raw)
        return cls(documents=documents)


class MongoCollection:
    """Collection handle bound to an App. Every method goes through App.call (auth, refresh, retry)."""

    def __init__(self, app: "App", namespace: Namespace):
        self.app = app
        self.namespace = namespace

    async def find_one(self, filter: dict | None = None, projection: dict | None = None) -> dict | None:
        result = FindResult.from_body(await self.app.call(find_one(self.namespace, filter, projection)))
        return result.document

    async def find(
        self,
        filter: dict | None = None,
        projection: dict | None = None,
        sort: dict | None = None,
        limit: int | None = None,
        skip: int | None = None,
    ) -> list[dict]:
        op = find(self.namespace, filter, projection, sort, limit, skip)
        result = FindResult.from_body(await self.app.call(op))
        return result.documents or []

    async def insert_one(self, document: dict) -> InsertResult:
        return InsertResult.from_body(await self.app.call(insert_one(self.namespace, document)))

    async def insert_many(self, documents: list[dict]) -> InsertResult:
        return InsertResult.from_body(await self.app.call(insert_many(self.namespace, documents)))

    async def update_one(self, filter: dict, update: dict, upsert: bool | None = None) -> UpdateResult:
        return UpdateResult.from_body(await self.app.call(update_one(self.namespace, filter, update, upsert)))

    async def update_many(self, filter: dict, update: dict, upsert: bool | None = None) -> UpdateResult:
        return UpdateResult.from_body(await self.app.call(update_many(self.namespace, filter, update, upsert)))

    async def replace_one(self, filter: dict, replacement: dict, upsert: bool | None = None) -> UpdateResult:
        return UpdateResult.from_body(await self.app.call(replace_one(self.namespace, filter, replacement, upsert)))

    async def delete_one(self, filter: dict) -> DeleteResult:
        return DeleteResult.from_body(await self.app.call(delete_one(self.namespace, filter)))

    async def delete_many(self, filter: dict) -> DeleteResult:
        return DeleteResult.from_body(await self.app.call(delete_many(self.namespace, filter)))

    async def aggregate(self, pipeline: list[dict]) -> list[dict]:
        return AggregateResult.from_body(await self.app.call(aggregate(self.namespace, pipeline))).documents
