"""Filecache exceptions."""


class FileCacheError(Exception):
    """Base exception for filecache."""

    pass


class ConfigError(FileCacheError):
    """Configuration error."""

    pass


class DriverNotFoundError(FileCacheError):
    """No driver is registered under the requested name."""

    pass


class NotConnectedError(FileCacheError):
    """Operation invoked before open() or after close()."""

    def __init__(self, message: str = "Invalid cache connection") -> None:
        super().__init__(message)


class StoreOpenError(FileCacheError):
    """The store file could not be opened or created."""

    pass


class StoreCloseError(FileCacheError):
    """The store could not be flushed or closed."""

    pass


class EmptyValueError(FileCacheError):
    """Attempted to write a value whose encoded form is empty."""

    def __init__(self, message: str = "Empty cache data") -> None:
        super().__init__(message)


class TransactionError(FileCacheError):
    """A read or write transaction failed."""

    pass


class DecodeError(FileCacheError):
    """A stored value could not be decoded."""

    pass


class SequenceOverflowError(FileCacheError, OverflowError):
    """A sequence step would leave the signed 64-bit range."""

    pass
