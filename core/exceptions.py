"""
Pipeline Error Taxonomy.

Adapters translate transport, database and filesystem failures into these
types so orchestration code can decide per category whether an item is
retried, falls back, or is dropped from the current batch.
"""


class PipelineError(Exception):
    """Base class for all live ingestion errors."""


class ListingError(PipelineError):
    """A folder or page listing call against the remote store failed."""


class TransientFetchError(PipelineError):
    """Remote item bytes could not be fetched. The item stays un-ledgered."""


class InferenceError(PipelineError):
    """The inference service failed or returned an unusable response."""


class InferenceTimeout(InferenceError):
    """The inference service did not answer within its timeout."""


class PersistenceError(PipelineError):
    """A blob upload or database write failed."""
