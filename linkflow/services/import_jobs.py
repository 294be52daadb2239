from __future__ import annotations

import threading

from flask import current_app

from linkflow.extensions import db
from linkflow.models import ImportJob
from linkflow.services.bookmark_parser import BookmarkNode, count_links
from linkflow.services.errors import (
    BookmarkImportError,
    ImportTooLargeError,
    ImportValidationError,
)
from linkflow.services.import_reconciler import (
    ImportResult,
    ImportStore,
    reconcile_import,
)
from linkflow.services.notifications import notify_import_completed
from linkflow.services.stores import SqlAlchemyImportStore

_LOCKS_GUARD = threading.Lock()
_USER_LOCKS: dict[int, threading.Lock] = {}


def _user_import_lock(user_id: int) -> threading.Lock:
    with _LOCKS_GUARD:
        lock = _USER_LOCKS.get(user_id)
        if lock is None:
            lock = threading.Lock()
            _USER_LOCKS[user_id] = lock
        return lock


def read_import_upload(upload, max_bytes: int, allowed_extensions) -> str:
    filename = (getattr(upload, "filename", None) or "").strip()
    if not filename:
        raise ImportValidationError("Please choose an HTML export file.")
    if not filename.lower().endswith(tuple(allowed_extensions)):
        raise ImportValidationError("Only HTML bookmark exports are supported.")

    raw = upload.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise ImportTooLargeError(
            f"Bookmark file exceeds the {max_bytes // 1024} KB upload limit."
        )
    return raw.decode("utf-8", errors="ignore")


def run_import_job(
    user,
    nodes: list[BookmarkNode],
    source: str = "payload",
    browser: str | None = None,
    store: ImportStore | None = None,
) -> tuple[ImportJob, ImportResult]:
    """Reconcile ``nodes`` for ``user`` and record the attempt as an ImportJob.

    The job row is committed before the import transaction opens, so a
    failed import still leaves a ``failed`` job behind. Imports for the same
    user run one at a time within this process.
    """
    if not nodes:
        raise ImportValidationError("No bookmarks provided")

    user_id = user.id
    job = ImportJob(
        user_id=user_id,
        source=source,
        browser=browser,
        status="running",
        total_nodes=count_links(nodes),
    )
    db.session.add(job)
    db.session.commit()
    job_id = job.id

    current_app.logger.info(
        "Import %s started for user %s (%d links, source=%s)",
        job_id,
        user_id,
        job.total_nodes,
        source,
    )

    store = store or SqlAlchemyImportStore()
    try:
        with _user_import_lock(user_id):
            result = reconcile_import(store, user_id, nodes)
    except BookmarkImportError as exc:
        current_app.logger.exception("Import %s failed for user %s", job_id, user_id)
        job = _finish_job(job_id, "failed", error_message=str(exc))
        raise

    job = _finish_job(job_id, "done", result=result)
    current_app.logger.info(
        "Import %s done: %d created, %d skipped, %d collections created",
        job_id,
        result.created_count,
        result.skipped_count,
        result.collections_created,
    )
    notify_import_completed(user, result)
    return job, result


def _finish_job(
    job_id: int,
    status: str,
    result: ImportResult | None = None,
    error_message: str | None = None,
) -> ImportJob:
    job = ImportJob.query.filter_by(id=job_id).first()
    job.status = status
    if result is not None:
        job.total_created = result.created_count
        job.total_skipped = result.skipped_count
        job.collections_created = result.collections_created
    job.error_message = error_message
    db.session.commit()
    return job
