"""
Storage clients.

- kv_store: key-value records (SQL or local JSON files)
- object_store: uploaded document bytes (MinIO or local files)
"""

from vaisu.storage.kv_store import (
    KeyValueStore,
    LocalKeyValueStore,
    SqlKeyValueStore,
    close_kv_store,
    get_kv_store,
    init_kv_store,
)
from vaisu.storage.object_store import (
    LocalObjectStore,
    MinIOObjectStore,
    ObjectStore,
    UploadResult,
    build_document_key,
    get_content_type,
    get_object_store,
)

__all__ = [
    "KeyValueStore",
    "LocalKeyValueStore",
    "SqlKeyValueStore",
    "close_kv_store",
    "get_kv_store",
    "init_kv_store",
    "LocalObjectStore",
    "MinIOObjectStore",
    "ObjectStore",
    "UploadResult",
    "build_document_key",
    "get_content_type",
    "get_object_store",
]
