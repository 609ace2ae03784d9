class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class SessionNotFoundError(DomainError):
    """Exception raised when a pipeline session id is unknown."""

    pass


class UnsupportedDocumentError(DomainError):
    """Exception raised when a run is started with a non-.docx file."""

    pass


class PipelineBusyError(DomainError):
    """Exception raised when a run is started while another is in progress."""

    pass


class OutputNotReadyError(DomainError):
    """Exception raised when the rendered document is requested before Done."""

    pass
