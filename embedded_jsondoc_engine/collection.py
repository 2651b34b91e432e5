from __future__ import annotations
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

from .config import DEFAULT_KEYS, ReservedKeys
from .errors import DuplicateIdError, InvalidDocumentError
from .join import join
from .logging_config import get_logger
from .modifiers import apply_modifiers, validate_modifiers
from .progress import Progress, ProgressCallback
from .query import is_operator_mapping, matches, validate_query
from .shaping import QueryOptions, shape
from .storage import FileStorage
from .utils import deep_copy, new_ulid, next_integer_id, now_ms

log = get_logger(__name__)

Document = Dict[str, Any]


class Collection:
    """
    A named set of documents kept in memory and mirrored to
    <storage_path>/<name>.json.

    With autosync on, every insert/update/remove/upsert rewrites the file
    before returning; otherwise call sync() to persist.
    """
    def __init__(
        self,
        storage_path: str,
        name: str,
        *,
        autosync: bool = True,
        integer_ids: bool = False,
        keys: ReservedKeys = DEFAULT_KEYS,
        on_progress: Optional[ProgressCallback] = None,
        indent: Optional[int] = 2,
        strict: bool = False,
    ) -> None:
        self.name = name
        self.autosync = autosync
        self.integer_ids = integer_ids
        self.keys = keys
        self._fs = FileStorage(storage_path, name, indent=indent, strict=strict)
        self._progress = Progress(on_progress)
        self._docs: Dict[Any, Document] = {}
        # Highest integer id handed out so far; ids are not reused after remove()
        self._last_int_id = 0
        self._open()

    def _open(self) -> None:
        self._progress.start("open", self._fs.path)
        raw = self._fs.load()
        id_key = self.keys.id_key
        docs: Dict[Any, Document] = {}
        for key, doc in raw.items():
            if not isinstance(doc, dict):
                log.warning("collection.skip_non_document", collection=self.name, key=key)
                continue
            # JSON object keys are always strings; the document keeps the real id
            rid = doc.get(id_key, key)
            doc[id_key] = rid
            docs[rid] = doc
        self._docs = docs
        self._last_int_id = next_integer_id(docs) - 1
        log.debug("collection.loaded", collection=self.name, count=len(docs))
        self._progress.done("open", f"{len(docs)} documents")

    @property
    def path(self) -> str:
        return self._fs.path

    def __len__(self) -> int:
        return len(self._docs)

    def __iter__(self) -> Iterator[Document]:
        for doc in self._docs.values():
            yield deep_copy(doc)

    def scan(self) -> Iterable[Document]:
        """Stored documents in insertion order, not copied. Callers must not modify them."""
        return self._docs.values()

    # ----- Insert -----

    def insert(self, docs: Document | List[Document]) -> List[Document]:
        """
        Store one document or a list of them. Each gets an identifier (a
        caller-supplied unused one is kept) and both timestamps. Returns
        copies of what was stored.
        """
        items = docs if isinstance(docs, list) else [docs]
        self._progress.start("insert")
        prepared = self._prepare_inserts(items)
        for doc in prepared:
            self._docs[doc[self.keys.id_key]] = doc
        self._autosync()
        log.debug("collection.insert", collection=self.name, count=len(prepared))
        self._progress.done("insert", f"{len(prepared)} inserted")
        return [deep_copy(d) for d in prepared]

    def _prepare_inserts(self, items: List[Any]) -> List[Document]:
        id_key = self.keys.id_key
        # Ids are compared by their JSON object key: 1 and "1" collide on disk
        used = {str(k) for k in self._docs}
        supplied: Set[Any] = set()
        for item in items:
            if not isinstance(item, dict):
                raise InvalidDocumentError(f"documents must be mappings, got {type(item).__name__}")
            rid = item.get(id_key)
            if rid is None:
                continue
            if isinstance(rid, bool) or not isinstance(rid, (int, str)):
                raise InvalidDocumentError(f"{id_key} must be an int or a string, got {rid!r}")
            if str(rid) in used:
                raise DuplicateIdError(f"duplicate {id_key}: {rid!r}")
            used.add(str(rid))
            supplied.add(rid)

        # Validation done; nothing below can fail
        if self.integer_ids:
            self._last_int_id = next_integer_id(supplied, self._last_int_id) - 1
        now = now_ms()
        out = []
        for item in items:
            doc = deep_copy(item)
            if doc.get(id_key) is None:
                doc[id_key] = self._new_id(used)
                used.add(str(doc[id_key]))
            doc[self.keys.created_at_key] = now
            doc[self.keys.updated_at_key] = now
            out.append(doc)
        return out

    def _new_id(self, used: Set[str]) -> Any:
        if self.integer_ids:
            self._last_int_id += 1
            while str(self._last_int_id) in used:
                self._last_int_id += 1
            return self._last_int_id
        while True:
            rid = new_ulid()
            if rid not in used:
                return rid

    # ----- Find -----

    def find(self, query: Optional[Dict[str, Any]] = None, options: Any = None) -> List[Document]:
        """
        Full scan: filter by `query`, attach joins, then sort, skip/take
        and project according to `options`.
        """
        query = {} if query is None else query
        validate_query(query)
        opts = QueryOptions.coerce(options)
        found = [deep_copy(d) for d in self._docs.values() if matches(d, query)]
        return self._finish(found, opts)

    def get(self, rid: Any) -> Optional[Document]:
        doc = self._docs.get(rid)
        return deep_copy(doc) if doc is not None else None

    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        query = {} if query is None else query
        validate_query(query)
        return sum(1 for d in self._docs.values() if matches(d, query))

    def _finish(self, docs: List[Document], opts: QueryOptions) -> List[Document]:
        if opts.join:
            docs = join(docs, opts.join)
        return shape(docs, opts, self.keys)

    # ----- Update -----

    def update(self, query: Optional[Dict[str, Any]], modifiers: Dict[str, Any],
               options: Any = None) -> List[Document]:
        """
        Apply `modifiers` to every matching document and return the updated
        documents. Nothing is changed if any document fails to update.
        """
        query = {} if query is None else query
        validate_query(query)
        validate_modifiers(modifiers)
        opts = QueryOptions.coerce(options)

        self._progress.start("update")
        pending = []
        for rid, doc in self._docs.items():
            if matches(doc, query):
                pending.append((rid, self._modified(doc, modifiers, query)))

        now = now_ms()
        for rid, new_doc in pending:
            new_doc[self.keys.updated_at_key] = now
            self._docs[rid] = new_doc
        if pending:
            self._autosync()
        log.debug("collection.update", collection=self.name, count=len(pending))
        self._progress.done("update", f"{len(pending)} updated")
        return self._finish([deep_copy(d) for _, d in pending], opts)

    def _modified(self, doc: Document, modifiers: Dict[str, Any], query: Dict[str, Any]) -> Document:
        new_doc = apply_modifiers(doc, modifiers, query)
        # Identity and creation time survive any modifier
        for key in (self.keys.id_key, self.keys.created_at_key):
            if key in doc:
                new_doc[key] = doc[key]
        return new_doc

    def upsert(self, query: Optional[Dict[str, Any]], modifiers: Dict[str, Any],
               options: Any = None) -> List[Document]:
        """
        update(); when nothing matches, insert a document made of the query's
        plain property values with `modifiers` applied to it.
        """
        query = {} if query is None else query
        validate_query(query)
        validate_modifiers(modifiers)
        opts = QueryOptions.coerce(options)
        if any(matches(d, query) for d in self._docs.values()):
            return self.update(query, modifiers, opts)
        base = {
            k: deep_copy(v) for k, v in query.items()
            if not k.startswith("$") and not is_operator_mapping(v)
        }
        inserted = self.insert(apply_modifiers(base, modifiers, query))
        return self._finish(inserted, opts)

    # ----- Remove -----

    def remove(self, query: Optional[Dict[str, Any]], options: Any = None) -> List[Document]:
        """Delete every matching document; returns the removed documents."""
        query = {} if query is None else query
        validate_query(query)
        opts = QueryOptions.coerce(options)

        self._progress.start("remove")
        doomed = [rid for rid, doc in self._docs.items() if matches(doc, query)]
        removed = [self._docs.pop(rid) for rid in doomed]
        if removed:
            self._autosync()
        log.debug("collection.remove", collection=self.name, count=len(removed))
        self._progress.done("remove", f"{len(removed)} removed")
        return self._finish(removed, opts)

    def drop(self) -> None:
        """Remove every document and write the empty collection right away."""
        self._docs = {}
        self._last_int_id = 0
        self.sync()
        log.debug("collection.drop", collection=self.name)

    # ----- Persistence -----

    def sync(self) -> None:
        self._progress.start("sync")
        self._fs.persist(self._docs)
        log.debug("collection.persisted", collection=self.name, path=self._fs.path, count=len(self._docs))
        self._progress.done("sync")

    def _autosync(self) -> None:
        if self.autosync:
            self.sync()
