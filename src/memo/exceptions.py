"""Errors raised by the memo package."""


class MemoError(Exception):
    """Base class for memo errors."""


class CyclicComputationError(MemoError, RuntimeError):
    """A computation asked the cache for the key it is currently computing."""

    def __init__(self, key) -> None:
        self.key = key
        super().__init__(f"cyclic computation for key {key!r}")


class ConfigError(MemoError, ValueError):
    """Configuration failed schema validation."""
