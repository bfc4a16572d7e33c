"""Cache error hierarchy."""


class CacheError(Exception):
    """Base class for all cache engine errors."""


class ConfigurationError(CacheError):
    """Invalid cache configuration (unknown strategy, bad size or TTL)."""


class DurableStorageError(CacheError):
    """A durable-surface operation failed (storage unavailable, quota, I/O)."""


class SerializationError(DurableStorageError):
    """An entry could not be serialized to, or decoded from, the durable surface."""
