"""Custom exception hierarchy for the datachat engine."""


class DataChatError(Exception):
    """Base exception for all datachat errors."""


class ConfigurationError(DataChatError):
    """Error in system configuration."""


class SQLValidationError(DataChatError):
    """Generated SQL was rejected by the read-only safety gate."""


class UpstreamUnavailable(DataChatError):
    """An external dependency failed or timed out."""


class EmbeddingError(UpstreamUnavailable):
    """Error generating embeddings."""


class VectorStoreError(UpstreamUnavailable):
    """Error searching or writing a vector collection."""


class GenerationError(UpstreamUnavailable):
    """Error during model generation."""


class DatabaseUnavailable(UpstreamUnavailable):
    """The relational database could not be reached."""


class PlanParseError(DataChatError):
    """The model returned a plan that could not be parsed."""


class ExecutionError(DataChatError):
    """Error while executing a validated query."""


class DatabaseQueryError(ExecutionError):
    """The database rejected a statement."""


class StreamCancelled(DataChatError):
    """The consumer cancelled an in-flight answer stream."""
