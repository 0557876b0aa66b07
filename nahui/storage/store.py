"""Webhook event persistence with a MongoDB backend."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

from bson.errors import BSONError
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.errors import PyMongoError

from nahui.config import MongoConfig
from nahui.utils.logging import get_logger
from nahui.webhooks.models import RecordResult, WebhookEvent

log = get_logger(__name__)

ClientFactory = Callable[..., Any]

_INDEXES: list[tuple[str, list[tuple[str, int]]]] = [
    ("timestamp_desc", [("timestamp", DESCENDING)]),
    ("user_id_asc", [("userInfo.id", ASCENDING)]),
]


class StoreState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class EventStore:
    """Owns the Mongo connection and the webhook request collection.

    The connection is attempted once, at ``start()``. If that fails the store
    stays degraded for the life of the process and ``record()`` becomes a
    no-op that reports failure.
    """

    def __init__(
        self, config: MongoConfig, client_factory: ClientFactory | None = None
    ) -> None:
        self._config = config
        self._client_factory = client_factory or AsyncMongoClient
        self._client: Any = None
        self._collection: Any = None
        self._state = StoreState.UNCONFIGURED

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is StoreState.CONNECTED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if not self._config.url:
            log.info("store_unconfigured", msg="No MONGO_URL provided, running without database persistence")
            return

        self._state = StoreState.CONNECTING
        log.info("store_connecting")
        try:
            self._client = self._client_factory(self._config.url, **self._client_options())
            await self._client.admin.command("ping")
            db = self._client.get_default_database(default=self._config.default_database)
            self._collection = await self._ensure_collection(db)
        except PyMongoError as exc:
            log.error("store_connect_failed", error=str(exc), msg="Continuing without database persistence")
            await self._close_client()
            self._collection = None
            self._state = StoreState.DEGRADED
            return

        self._state = StoreState.CONNECTED
        log.info(
            "store_connected",
            database=db.name,
            collection=self._config.collection_name,
        )

    async def stop(self) -> None:
        if self._client is not None:
            await self._close_client()
            log.info("store_closed")
        self._collection = None
        self._state = StoreState.UNCONFIGURED

    def _client_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "serverSelectionTimeoutMS": self._config.server_selection_timeout_ms,
            "tz_aware": True,
        }
        if self._config.username:
            options["username"] = self._config.username
            options["password"] = self._config.password
        return options

    async def _ensure_collection(self, db: Any) -> Any:
        name = self._config.collection_name
        existing = await db.list_collection_names(filter={"name": name})
        if name in existing:
            return db[name]

        collection = await db.create_collection(name)
        for index_name, keys in _INDEXES:
            await collection.create_index(keys, name=index_name)
        log.info("store_collection_created", collection=name, indexes=[n for n, _ in _INDEXES])
        return collection

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.close()
        except PyMongoError as exc:
            log.warning("store_close_failed", error=str(exc))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record(self, event: WebhookEvent) -> RecordResult:
        """Insert one event. Failures are returned, never raised."""
        if not self.is_connected:
            return RecordResult(success=False, error="store not connected")

        # BSON encoding happens client-side: oversized documents and ints
        # beyond 64 bits fail outside the PyMongoError hierarchy
        try:
            result = await self._collection.insert_one(event.to_document())
        except (PyMongoError, BSONError, OverflowError) as exc:
            return RecordResult(success=False, error=str(exc))

        event.id = str(result.inserted_id)
        return RecordResult(success=True, id=event.id)
