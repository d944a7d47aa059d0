# services/payment_store.py
import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Protocol

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud.firestore_v1.base_query import FieldFilter

from pusarapay.core.errors import StorageError

logger = logging.getLogger("pusarapay.store")

# Match key that addresses the store-assigned document id rather than a field.
ID_KEY = "id"


class PaymentStore(Protocol):
    """Key-value record store holding PaymentOrder records.

    Records are plain dicts; the ones returned by ``find_by_key`` carry the
    store-assigned identifier under ``"id"``. Every method raises
    ``StorageError`` when the store cannot be reached.
    """

    async def insert(self, record: Dict[str, Any]) -> str:
        ...

    async def update_by_key(self, key: str, value: Any, patch: Dict[str, Any]) -> int:
        """Apply ``patch`` to every record whose ``key`` equals ``value``.

        Returns the number of records updated.
        """
        ...

    async def find_by_key(self, key: str, value: Any) -> List[Dict[str, Any]]:
        ...


def most_recent(records: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """The record with the newest ``created_at``, or None."""
    if not records:
        return None
    oldest = datetime.min.replace(tzinfo=timezone.utc)

    def created(record):
        value = record.get("created_at")
        if not isinstance(value, datetime):
            return oldest
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    return max(records, key=created)


class FirestorePaymentStore:
    """PaymentStore backed by one Firestore collection.

    The Firestore SDK is blocking, so each call runs in the default executor.
    """

    def __init__(self, client_factory: Callable[[], Any], collection: str = "payments"):
        self._client_factory = client_factory
        self._collection_name = collection

    def _client(self):
        try:
            return self._client_factory()
        except (GoogleAuthError, RuntimeError, ValueError, OSError) as e:
            raise StorageError(f"Firestore unavailable: {e}") from e

    def _collection(self):
        return self._client().collection(self._collection_name)

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, *args, **kwargs))
        except (GoogleAPIError, GoogleAuthError) as e:
            logger.error(f"Firestore call failed on '{self._collection_name}': {e}")
            raise StorageError(f"Firestore call failed: {e}") from e

    # ----------------------------
    # blocking helpers (executor side)
    # ----------------------------
    def _insert_sync(self, record):
        _, doc_ref = self._collection().add(record)
        return doc_ref.id

    def _find_sync(self, key, value):
        collection = self._collection()
        if key == ID_KEY:
            snapshot = collection.document(value).get()
            snapshots = [snapshot] if snapshot.exists else []
        else:
            snapshots = list(collection.where(filter=FieldFilter(key, "==", value)).stream())
        return [{**snap.to_dict(), ID_KEY: snap.id} for snap in snapshots]

    def _update_sync(self, key, value, patch):
        client = self._client()
        collection = client.collection(self._collection_name)
        if key == ID_KEY:
            try:
                collection.document(value).update(patch)
            except NotFound:
                return 0
            return 1

        snapshots = list(collection.where(filter=FieldFilter(key, "==", value)).stream())
        if not snapshots:
            return 0

        batch = client.batch()
        for snap in snapshots:
            batch.update(snap.reference, patch)
        batch.commit()
        return len(snapshots)

    # ----------------------------
    # PaymentStore
    # ----------------------------
    async def insert(self, record: Dict[str, Any]) -> str:
        return await self._run(self._insert_sync, record)

    async def update_by_key(self, key: str, value: Any, patch: Dict[str, Any]) -> int:
        return await self._run(self._update_sync, key, value, patch)

    async def find_by_key(self, key: str, value: Any) -> List[Dict[str, Any]]:
        return await self._run(self._find_sync, key, value)
