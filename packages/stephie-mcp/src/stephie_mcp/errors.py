"""Exception types raised inside the metadata cache and sync trigger."""

from __future__ import annotations


class StephieError(Exception):
    """Base class for all errors raised by this package."""


class RemoteQueryError(StephieError):
    """The registry query failed or returned nothing usable."""


class PersistenceError(StephieError):
    """Reading or writing the on-disk snapshot failed."""


class Unauthorized(StephieError):
    """A sync trigger request carried a missing or wrong bearer secret."""
