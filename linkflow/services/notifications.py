from __future__ import annotations

from abc import ABC, abstractmethod

from flask import Flask, current_app

from linkflow.services.import_reconciler import ImportResult


class ImportNotifier(ABC):
    @abstractmethod
    def import_completed(self, user, result: ImportResult) -> None:
        pass


class LogImportNotifier(ImportNotifier):
    def import_completed(self, user, result: ImportResult) -> None:
        current_app.logger.info(
            "Import notification for %s: %d bookmarks added, %d skipped",
            user.email or user.username,
            result.created_count,
            result.skipped_count,
        )


def init_notifier(app: Flask, notifier: ImportNotifier | None = None) -> None:
    if not app.config.get("IMPORT_NOTIFICATIONS_ENABLED", True):
        app.extensions["import_notifier"] = None
        return
    app.extensions["import_notifier"] = notifier or LogImportNotifier()


def notify_import_completed(user, result: ImportResult) -> None:
    notifier = current_app.extensions.get("import_notifier")
    if notifier is None:
        return
    try:
        notifier.import_completed(user, result)
    except Exception:
        # the import is already committed at this point
        current_app.logger.exception("Import notification failed for user %s", user.id)
