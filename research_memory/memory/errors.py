"""Error taxonomy for the memory subsystem.

Hot-path operations (store, search) catch these and degrade; explicit
management operations (enumerate, delete, stats) let them propagate.
"""


class MemoryEngineError(Exception):
    """Base class for all memory subsystem errors."""


class NotInitialized(MemoryEngineError):
    """The engine never completed setup (missing config or unreachable store)."""


class StoreUnavailable(MemoryEngineError):
    """The vector store failed during a specific call."""


class EmbeddingUnavailable(MemoryEngineError):
    """The embedding function could not produce a vector."""


class InvalidArgument(MemoryEngineError, ValueError):
    """A required argument (usually ``user_id``) is missing or malformed."""
