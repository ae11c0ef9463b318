"""Error types raised by the signal pipeline."""


class ProviderError(Exception):
    """A single source client failed, timed out or returned a bad payload."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class NormalizationError(ValueError):
    """A raw provider item could not be turned into a Signal."""


class PersistenceError(Exception):
    """A read or write against the persistence store failed."""
