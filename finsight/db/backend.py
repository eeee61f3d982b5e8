from functools import lru_cache
import logging

from finsight.core.config import settings
from finsight.db.store import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_store() -> KeyValueStore:
    """Return the process-wide store selected by STORE_BACKEND."""
    backend = settings.STORE_BACKEND.lower()
    if backend == "dynamo":
        from finsight.db.dynamo import DynamoKeyValueStore

        logger.info(f"Using DynamoDB store: table={settings.DYNAMO_TABLE}, region={settings.DYNAMO_REGION}")
        return DynamoKeyValueStore()
    if backend != "memory":
        raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")
    logger.info("Using in-memory store (data is lost on restart)")
    return InMemoryKeyValueStore()
