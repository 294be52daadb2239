from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from linkflow.extensions import db
from linkflow.models import Bookmark, Collection
from linkflow.services.import_reconciler import ImportStore


class SqlAlchemyImportStore(ImportStore):
    """ImportStore backed by the Flask-SQLAlchemy session.

    Rows are flushed as they are created so that later lookups in the same
    transaction see them; ``atomic`` commits once at the end.
    """

    @contextmanager
    def atomic(self) -> Iterator[SqlAlchemyImportStore]:
        try:
            yield self
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def find_bookmark_id(self, user_id: int, url: str) -> int | None:
        row = Bookmark.query.filter_by(user_id=user_id, url=url).first()
        return row.id if row else None

    def create_bookmark(
        self, user_id: int, title: str, url: str, collection_id: int | None
    ) -> int:
        bookmark = Bookmark(
            user_id=user_id,
            collection_id=collection_id,
            url=url,
            title=title,
        )
        db.session.add(bookmark)
        db.session.flush()
        return bookmark.id

    def find_collection_id(self, user_id: int, name: str) -> int | None:
        row = Collection.query.filter_by(user_id=user_id, name=name).first()
        return row.id if row else None

    def create_collection(self, user_id: int, name: str) -> int:
        collection = Collection(user_id=user_id, name=name)
        db.session.add(collection)
        db.session.flush()
        return collection.id
