"""Exception hierarchy for the verification pipeline and review workflow."""


class VerifierError(Exception):
    """Base exception for all verifier errors."""


class UnsupportedMediaType(VerifierError):
    """Raised when a document is not a JPEG, PNG or PDF.

    Checked before any preprocessing or OCR is attempted.
    """


class PreprocessingError(VerifierError):
    """Raised when an uploaded document cannot be decoded or normalized."""


class ExtractionTimeout(VerifierError):
    """Raised when OCR recognition exceeds its time budget."""


class ExtractionError(VerifierError):
    """Raised when the OCR engine fails for any reason other than a timeout."""


class RequestNotFoundError(VerifierError):
    """Raised when an email request id is unknown."""


class InvalidRequestStateError(VerifierError):
    """Raised when a review action is not allowed in the request's current state."""


class DocumentNotFoundError(VerifierError):
    """Raised when a stored document reference cannot be resolved to a file."""
