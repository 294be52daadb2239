class BookmarkImportError(Exception):
    status_code = 500


class ImportValidationError(BookmarkImportError):
    status_code = 400


class ImportTooLargeError(ImportValidationError):
    status_code = 413


class ImportPersistenceError(BookmarkImportError):
    def __init__(self, message: str = "import failed"):
        super().__init__(message)
