import copy
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Set
from uuid import uuid4

import structlog

from core.errors import NotFound, RemoteWriteFailure, InvalidRequest


log = structlog.get_logger(__name__)

OPERATORS = ("==", "!=", "in", "array_contains")


class DocumentNotFound(NotFound):
    pass


def collection_path(*parts: str) -> str:
    return "/".join(parts)


@dataclass
class DocumentSnapshot:
    id: str
    data: dict = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def matches(self, data: dict) -> bool:
        actual = data.get(self.field)
        if self.op == "==":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        if self.op == "array_contains":
            return actual is not None and self.value in actual
        return False


class Query:
    """An immutable description of a collection read.

    Each builder method returns a new query so a base query can be shared.
    """

    def __init__(
        self,
        store: "InMemoryDocumentStore",
        path: str,
        filters: tuple = (),
        order: Optional[tuple[str, bool]] = None,
        max_results: Optional[int] = None,
    ):
        self.store = store
        self.path = path
        self.filters = filters
        self.order = order
        self.max_results = max_results

    def _copy(self, **changes) -> "Query":
        values = {
            "filters": self.filters,
            "order": self.order,
            "max_results": self.max_results,
        }
        values.update(changes)
        return Query(self.store, self.path, **values)

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        if op not in OPERATORS:
            raise InvalidRequest(f"Unsupported query operator {op!r}")
        if op == "in":
            value = list(value)
        return self._copy(filters=self.filters + (Filter(field_name, op, value),))

    def order_by(self, field_name: str, descending: bool = False) -> "Query":
        return self._copy(order=(field_name, descending))

    def limit(self, count: int) -> "Query":
        return self._copy(max_results=count)

    def matches(self, data: dict) -> bool:
        return all(f.matches(data) for f in self.filters)

    def get(self) -> list[DocumentSnapshot]:
        return self.store._run_query(self)

    def subscribe(self, transform: Optional[Callable[[list[DocumentSnapshot]], Any]] = None) -> "Subscription":
        return self.store._subscribe(self, transform)


class Subscription:
    """A live query.

    The first result set is computed on subscribe and a new one after each
    committed write to the query's collection. Only the newest unread result
    set is kept; listeners registered with ``on_snapshot`` see every one.
    """

    def __init__(self, store: "InMemoryDocumentStore", query: Query, transform=None):
        self._store = store
        self.query = query
        self._transform = transform or (lambda snapshots: snapshots)
        self._pending: deque = deque(maxlen=1)
        self._listeners: list[Callable[[Any], None]] = []
        self.closed = False

    def _deliver(self) -> None:
        if self.closed:
            return
        value = self._transform(self.query.get())
        self._pending.append(value)
        for listener in list(self._listeners):
            listener(value)

    def on_snapshot(self, listener: Callable[[Any], None]) -> None:
        self._listeners.append(listener)

    def latest(self) -> Any:
        value = None
        while self._pending:
            value = self._pending.popleft()
        return value

    def __iter__(self) -> Iterator[Any]:
        while self._pending:
            yield self._pending.popleft()

    def close(self) -> None:
        self.closed = True
        self._pending.clear()
        self._listeners.clear()
        self._store._unsubscribe(self)


class WriteBatch:
    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self._ops: list[tuple] = []

    def set(self, path: str, doc_id: str, data: dict, merge: bool = False) -> "WriteBatch":
        self._ops.append(("set", path, doc_id, data, merge))
        return self

    def update(self, path: str, doc_id: str, fields: dict) -> "WriteBatch":
        self._ops.append(("update", path, doc_id, fields))
        return self

    def delete(self, path: str, doc_id: str) -> "WriteBatch":
        self._ops.append(("delete", path, doc_id))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> int:
        with self._store.transaction():
            for op in self._ops:
                kind, args = op[0], op[1:]
                getattr(self._store, kind)(*args)
        committed = len(self._ops)
        self._ops = []
        return committed


class InMemoryDocumentStore:
    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = threading.RLock()
        self._subscriptions: list[Subscription] = []
        self._txn_depth = 0
        self._touched: set[str] = set()

    def collection(self, path: str) -> Query:
        return Query(self, path)

    def add(self, path: str, data: dict) -> str:
        doc_id = uuid4().hex
        self.set(path, doc_id, data)
        return doc_id

    def set(self, path: str, doc_id: str, data: dict, merge: bool = False) -> None:
        with self._lock:
            docs = self._collections.setdefault(path, {})
            if merge and doc_id in docs:
                docs[doc_id].update(copy.deepcopy(data))
            else:
                docs[doc_id] = copy.deepcopy(data)
            self._touch(path)

    def get(self, path: str, doc_id: str) -> Optional[DocumentSnapshot]:
        with self._lock:
            data = self._collections.get(path, {}).get(doc_id)
            if data is None:
                return None
            return DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))

    def exists(self, path: str, doc_id: str) -> bool:
        with self._lock:
            return doc_id in self._collections.get(path, {})

    def update(self, path: str, doc_id: str, fields: dict) -> None:
        with self._lock:
            docs = self._collections.get(path, {})
            if doc_id not in docs:
                raise DocumentNotFound(f"No document to update: {path}/{doc_id}")
            docs[doc_id].update(copy.deepcopy(fields))
            self._touch(path)

    def delete(self, path: str, doc_id: str) -> None:
        with self._lock:
            docs = self._collections.get(path, {})
            if docs.pop(doc_id, None) is not None:
                self._touch(path)

    def increment(self, path: str, doc_id: str, field_name: str, amount: int) -> int:
        """Atomically add ``amount`` to a numeric field, creating the document if needed."""
        with self._lock:
            docs = self._collections.setdefault(path, {})
            doc = docs.setdefault(doc_id, {})
            current = doc.get(field_name, 0)
            if isinstance(current, bool) or not isinstance(current, (int, float)):
                raise RemoteWriteFailure(
                    f"Cannot increment non-numeric field {field_name!r} of {path}/{doc_id}"
                )
            doc[field_name] = current + amount
            self._touch(path)
            return doc[field_name]

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    @contextmanager
    def transaction(self):
        """Run a block of reads and writes atomically.

        Writes are visible inside the block immediately. If the block raises,
        every document is restored and the exception propagates. A nested
        transaction joins the outer one.
        """
        with self._lock:
            if self._txn_depth:
                self._txn_depth += 1
                try:
                    yield self
                finally:
                    self._txn_depth -= 1
                return

            backup = copy.deepcopy(self._collections)
            self._txn_depth = 1
            try:
                yield self
            except BaseException:
                self._collections = backup
                self._touched.clear()
                log.warning("transaction_rolled_back")
                raise
            finally:
                self._txn_depth = 0

            touched, self._touched = self._touched, set()
            self._notify(touched)

    def _touch(self, path: str) -> None:
        if self._txn_depth:
            self._touched.add(path)
        else:
            self._notify({path})

    def _notify(self, paths: Set[str]) -> None:
        for sub in list(self._subscriptions):
            if sub.query.path in paths:
                sub._deliver()

    def _run_query(self, query: Query) -> list[DocumentSnapshot]:
        with self._lock:
            docs = self._collections.get(query.path, {})
            results = [
                DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))
                for doc_id, data in docs.items()
                if query.matches(data)
            ]
        if query.order:
            name, descending = query.order
            present = [s for s in results if s.data.get(name) is not None]
            missing = [s for s in results if s.data.get(name) is None]
            present.sort(key=lambda s: s.data[name], reverse=descending)
            results = present + missing
        if query.max_results is not None:
            results = results[:query.max_results]
        return results

    def _subscribe(self, query: Query, transform) -> Subscription:
        sub = Subscription(self, query, transform)
        with self._lock:
            self._subscriptions.append(sub)
            sub._deliver()
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)
