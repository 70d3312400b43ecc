"""
In-memory document store

Collections of field-keyed documents with:
- point reads and writes, merge writes, atomic numeric increment
- filtered and ordered queries
- batched writes and all-or-nothing transactions
- live query subscriptions
"""

from .store import (
    DocumentNotFound,
    DocumentSnapshot,
    InMemoryDocumentStore,
    Query,
    Subscription,
    WriteBatch,
    collection_path,
)

__all__ = [
    "DocumentNotFound",
    "DocumentSnapshot",
    "InMemoryDocumentStore",
    "Query",
    "Subscription",
    "WriteBatch",
    "collection_path",
]
