"""Generic per-collection CRUD engine over a key-value adapter.

Each collection is one JSON array persisted under ``db_<name>``. Every mutation
is a read-modify-write of that whole array, performed while holding the
adapter's lock for the key so overlapping writers in one process never drop
each other's changes.
"""

import json
import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type

import pydantic

from .errors import StorageError, ValidationError
from .kv import KeyValue
from .models import Consultation, Entity, Exercise, Expert, Playlist, utcnow_iso
from .seeds import EXERCISES, EXPERTS

logger = logging.getLogger(__name__)

ID_ALPHABET = string.digits + string.ascii_lowercase
ID_LENGTH = 12
IMMUTABLE_FIELDS = ("id", "created_date")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def generate_id(length: int = ID_LENGTH) -> str:
    """Returns a random identifier drawn from ``[0-9a-z]``."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def collection_key(name: str) -> str:
    return f"db_{name}"


def parse_timestamp(value: Any) -> datetime:
    """Parses an ISO-8601 timestamp, mapping missing or bad values to the epoch."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return _EPOCH
    else:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _created(doc: Mapping[str, Any]) -> datetime:
    return parse_timestamp(doc.get("created_date") or doc.get("created_at"))


def _number(field_name: str) -> Callable[[Mapping[str, Any]], float]:
    def key(doc: Mapping[str, Any]) -> float:
        value = doc.get(field_name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.0
        return float(value)

    return key


SORT_KEYS: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
    "created_date": _created,
    "average_rating": _number("average_rating"),
}


def sort_documents(docs: List[Dict[str, Any]], order_by: Optional[str]) -> List[Dict[str, Any]]:
    """Stable sort by a known key. ``-`` prefix means descending; unknown keys are a no-op."""
    if not order_by:
        return docs
    descending = order_by.startswith("-")
    key = SORT_KEYS.get(order_by.lstrip("-"))
    if key is None:
        logger.debug("Ignoring unknown order_by %r", order_by)
        return docs
    return sorted(docs, key=key, reverse=descending)


class Records:
    """A JSON array of documents persisted under a single key."""

    def __init__(self, kv: KeyValue, key: str):
        self.kv = kv
        self.key = key

    @property
    def lock(self):
        return self.kv.lock(self.key)

    async def read(self) -> Optional[List[Dict[str, Any]]]:
        """Returns the stored documents, or None if the key was never written."""
        raw = await self.kv.get(self.key)
        if raw is None:
            return None
        try:
            docs = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt data under {self.key!r}: {exc}") from exc
        if not isinstance(docs, list):
            raise StorageError(f"Expected a JSON array under {self.key!r}")
        records = [doc for doc in docs if isinstance(doc, dict)]
        if len(records) != len(docs):
            logger.warning(
                "Dropping %d non-object entries under %s", len(docs) - len(records), self.key
            )
        return records

    async def write(self, docs: Sequence[Dict[str, Any]]):
        await self.kv.set(self.key, json.dumps(list(docs), ensure_ascii=False))


@dataclass
class CollectionSchema:
    """How one collection validates, seeds and deduplicates its records."""

    name: str
    model: Type[Entity] = Entity
    seeds: Sequence[Dict[str, Any]] = field(default_factory=tuple)
    unique_key: Optional[str] = None


DEFAULT_SCHEMAS: Dict[str, CollectionSchema] = {
    "Exercise": CollectionSchema("Exercise", Exercise, seeds=EXERCISES),
    "Expert": CollectionSchema("Expert", Expert, seeds=EXPERTS, unique_key="email"),
    "Consultation": CollectionSchema("Consultation", Consultation),
    "Playlist": CollectionSchema("Playlist", Playlist),
}


class Collection:
    """CRUD operations on one named collection."""

    def __init__(self, kv: KeyValue, schema: CollectionSchema):
        self.schema = schema
        self.records = Records(kv, collection_key(schema.name))

    @property
    def name(self) -> str:
        return self.schema.name

    def _validate(self, doc: Dict[str, Any]) -> Entity:
        try:
            return self.schema.model.model_validate(doc)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid {self.name} record: {exc}") from exc

    def _load(self, docs: List[Dict[str, Any]]) -> List[Entity]:
        entities = []
        for doc in docs:
            if not doc.get("id"):
                logger.warning("Skipping %s record without an id", self.name)
                continue
            try:
                entities.append(self.schema.model.model_validate(doc))
            except pydantic.ValidationError as exc:
                raise StorageError(f"Stored {self.name} record is invalid: {exc}") from exc
        return entities

    async def _read_or_seed(self) -> List[Dict[str, Any]]:
        docs = await self.records.read()
        if docs is None:
            docs = [dict(seed) for seed in self.schema.seeds]
            if docs:
                await self.records.write(docs)
                logger.info("Seeded %s with %d default records", self.name, len(docs))
        return docs

    async def list(self, order_by: Optional[str] = None) -> List[Entity]:
        async with self.records.lock:
            docs = await self._read_or_seed()
        return self._load(sort_documents(docs, order_by))

    async def get(self, entity_id: str) -> Optional[Entity]:
        for entity in await self.list():
            if entity.id == entity_id:
                return entity
        return None

    async def create(self, data: Mapping[str, Any]) -> Entity:
        """Appends a new record, or merges into the record sharing its unique key.

        The returned record has been persisted.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"{self.name} payload must be an object")
        async with self.records.lock:
            docs = await self._read_or_seed()
            unique_key = self.schema.unique_key
            unique_value = data.get(unique_key) if unique_key else None
            if unique_value:
                for idx, doc in enumerate(docs):
                    if doc.get(unique_key) == unique_value:
                        patch = {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}
                        entity = self._validate({**doc, **patch})
                        docs[idx] = entity.to_document()
                        await self.records.write(docs)
                        logger.info(
                            "Merged %s into existing record %s by %s",
                            self.name,
                            entity.id,
                            unique_key,
                        )
                        return entity

            taken = {doc.get("id") for doc in docs}
            new_id = generate_id()
            while new_id in taken:
                new_id = generate_id()
            entity = self._validate({**data, "id": new_id, "created_date": utcnow_iso()})
            docs.append(entity.to_document())
            await self.records.write(docs)
            return entity

    async def update(self, entity_id: str, data: Mapping[str, Any]) -> Optional[Entity]:
        """Shallow-merges ``data`` into the record; returns None if it does not exist."""
        if not isinstance(data, Mapping):
            raise ValidationError(f"{self.name} patch must be an object")
        async with self.records.lock:
            docs = await self._read_or_seed()
            for idx, doc in enumerate(docs):
                if doc.get("id") == entity_id:
                    break
            else:
                return None
            patch = {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}
            entity = self._validate({**doc, **patch})
            docs[idx] = entity.to_document()
            await self.records.write(docs)
            return entity


class EntityStore:
    """Hands out ``Collection`` objects that share one adapter and its locks."""

    def __init__(
        self,
        kv: KeyValue,
        schemas: Optional[Mapping[str, CollectionSchema]] = None,
    ):
        self.kv = kv
        self.schemas = dict(DEFAULT_SCHEMAS if schemas is None else schemas)

    def is_registered(self, name: str) -> bool:
        return name in self.schemas

    def collection(self, name: str) -> Collection:
        schema = self.schemas.get(name) or CollectionSchema(name)
        return Collection(self.kv, schema)
