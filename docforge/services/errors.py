"""Error taxonomy for the batch document pipeline.

Every error carries a stable machine-readable ``kind`` and a human-readable
message. The application maps them to HTTP responses in ``docforge.main``.
"""


class DocforgeError(Exception):
    """Base class for pipeline errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "detail": self.message}


class MalformedFileError(DocforgeError):
    """Raised when an upload is not a readable spreadsheet."""

    kind = "malformed_file"
    status_code = 400


class SchemaMismatchError(DocforgeError):
    """Spreadsheet columns disagree with the template's fields.

    Only used to label row-level warnings; uploads are never aborted for it.
    """

    kind = "schema_mismatch"
    status_code = 422


class NotFoundError(DocforgeError):
    """Raised for an unknown template, session, candidate or document."""

    kind = "not_found"
    status_code = 404


class InvalidTransitionError(DocforgeError):
    """Raised for an illegal session or candidate status change."""

    kind = "invalid_transition"
    status_code = 409


class ConcurrentUpdateError(DocforgeError):
    """Raised when a compare-and-set keeps losing to concurrent writers."""

    kind = "concurrent_update"
    status_code = 409


class TemplateInUseError(DocforgeError):
    """Raised when deleting a template that still owns documents without cascade."""

    kind = "template_in_use"
    status_code = 409


class RenderError(DocforgeError):
    """Raised when placeholder substitution fails, e.g. malformed template content."""

    kind = "render_error"
    status_code = 422


class PersistenceError(DocforgeError):
    """Raised when a storage write or read fails."""

    kind = "persistence_error"
    status_code = 500


class ExportFailedError(PersistenceError):
    """Raised when an export cannot be produced."""

    kind = "export_failed"
    status_code = 500
