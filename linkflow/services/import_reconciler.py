from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ContextManager, Iterator

from linkflow.services.bookmark_parser import BookmarkNode, FolderNode, LinkNode
from linkflow.services.errors import (
    BookmarkImportError,
    ImportPersistenceError,
    ImportValidationError,
)

_EXHAUSTED = object()


@dataclass(frozen=True)
class ImportResult:
    created_count: int = 0
    skipped_count: int = 0
    collections_created: int = 0

    def __add__(self, other: ImportResult) -> ImportResult:
        return ImportResult(
            created_count=self.created_count + other.created_count,
            skipped_count=self.skipped_count + other.skipped_count,
            collections_created=self.collections_created + other.collections_created,
        )

    def as_dict(self) -> dict:
        return {
            "created_count": self.created_count,
            "skipped_count": self.skipped_count,
            "collections_created": self.collections_created,
        }


class ImportStore(ABC):
    """Storage operations the reconciler needs, all scoped by owner.

    Writes made inside ``atomic()`` must become visible to later lookups in
    the same block and must all be discarded if the block raises.
    """

    @abstractmethod
    def atomic(self) -> ContextManager[ImportStore]:
        pass

    @abstractmethod
    def find_bookmark_id(self, user_id: int, url: str) -> int | None:
        pass

    @abstractmethod
    def create_bookmark(
        self, user_id: int, title: str, url: str, collection_id: int | None
    ) -> int:
        pass

    @abstractmethod
    def find_collection_id(self, user_id: int, name: str) -> int | None:
        pass

    @abstractmethod
    def create_collection(self, user_id: int, name: str) -> int:
        pass


def _reconcile_link(
    store: ImportStore, user_id: int, node: LinkNode, collection_id: int | None
) -> ImportResult:
    if not node.url:
        return ImportResult(skipped_count=1)
    if store.find_bookmark_id(user_id, node.url) is not None:
        return ImportResult(skipped_count=1)
    store.create_bookmark(user_id, node.title, node.url, collection_id)
    return ImportResult(created_count=1)


def _resolve_collection(
    store: ImportStore, user_id: int, name: str, cache: dict[str, int]
) -> tuple[int, bool]:
    cached = cache.get(name)
    if cached is not None:
        return cached, False

    collection_id = store.find_collection_id(user_id, name)
    created = collection_id is None
    if collection_id is None:
        collection_id = store.create_collection(user_id, name)
    cache[name] = collection_id
    return collection_id, created


def reconcile_nodes(
    store: ImportStore,
    user_id: int,
    nodes: list[BookmarkNode],
    collection_id: int | None = None,
    cache: dict[str, int] | None = None,
) -> ImportResult:
    """Persist ``nodes`` in document order and return what changed.

    A folder maps to the collection with the same name, and its links land
    in that collection. Nested folders do not build a hierarchy: each one
    resolves its own collection by name, so the innermost folder wins.
    """
    if cache is None:
        cache = {}

    result = ImportResult()
    # one iterator per open folder, paired with that folder's collection
    pending: list[tuple[Iterator[BookmarkNode], int | None]] = [
        (iter(nodes), collection_id)
    ]
    while pending:
        level, current_collection_id = pending[-1]
        node = next(level, _EXHAUSTED)
        if node is _EXHAUSTED:
            pending.pop()
        elif isinstance(node, LinkNode):
            result += _reconcile_link(store, user_id, node, current_collection_id)
        elif isinstance(node, FolderNode):
            folder_collection_id, created = _resolve_collection(
                store, user_id, node.title, cache
            )
            if created:
                result += ImportResult(collections_created=1)
            pending.append((iter(node.children), folder_collection_id))
        else:
            raise TypeError(f"unsupported bookmark node: {node!r}")
    return result


def reconcile_import(
    store: ImportStore, user_id: int, nodes: list[BookmarkNode]
) -> ImportResult:
    """Run a whole import inside one transaction.

    Raises ``ImportValidationError`` for an empty forest and
    ``ImportPersistenceError`` for anything that fails during the walk; in
    the latter case nothing from this import is kept.
    """
    if not nodes:
        raise ImportValidationError("No bookmarks provided")

    try:
        with store.atomic():
            return reconcile_nodes(store, user_id, nodes)
    except BookmarkImportError:
        raise
    except Exception as exc:
        raise ImportPersistenceError() from exc
