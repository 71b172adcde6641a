"""Domain errors raised by the document signing services.

Each error carries the HTTP status the API layer answers with and a stable
``code`` so clients can tell "already completed" apart from "not found".
"""


class DocumentError(Exception):
    status_code = 400
    code = "document_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(DocumentError):
    status_code = 404
    code = "not_found"


class InvalidInput(DocumentError):
    status_code = 400
    code = "invalid_input"


class InvalidTransition(DocumentError):
    status_code = 409
    code = "invalid_transition"


class AlreadySent(InvalidTransition):
    code = "already_sent"


class NotYetSent(InvalidTransition):
    code = "not_yet_sent"


class AlreadyInTerminalState(InvalidTransition):
    code = "already_completed"


class NotYetSigned(DocumentError):
    status_code = 400
    code = "not_yet_signed"


class ConcurrentModification(DocumentError):
    status_code = 409
    code = "concurrent_modification"


class FatalRenderFailure(DocumentError):
    status_code = 500
    code = "render_failed"


class PartialRenderFailure(DocumentError):
    """One annotation could not be drawn. Collected in the render result, never raised."""
    code = "annotation_skipped"

    def __init__(self, annotation_id, reason: str):
        super().__init__(f"Annotation {annotation_id} not drawn: {reason}")
        self.annotation_id = annotation_id
        self.reason = reason
