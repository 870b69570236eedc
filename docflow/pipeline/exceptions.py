class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""


class DocumentNotFoundError(PipelineError):
    """Raised when a document record does not exist in the store."""


class InfrastructureError(PipelineError):
    """Raised on transient store or broker failures. Always retryable."""


class StoreUnavailableError(InfrastructureError):
    """Raised when the document store cannot be reached or a query fails."""


class MalformedEventError(PipelineError):
    """Raised when an event payload carries no usable document id."""
