"""Failure taxonomy for the import pipeline.

Every failure the pipeline can report derives from SpoofError so the
command layer can convert it into a user-facing notice at one boundary.
"""

from __future__ import annotations


class SpoofError(Exception):
    """Base class for all import pipeline failures."""


class FileTypeError(SpoofError):
    """The selected file is not of the expected type (e.g. not XML)."""


class ParseError(SpoofError):
    """The input is malformed and could not be parsed."""


class EmptyResultError(SpoofError):
    """The input parsed cleanly but yielded no usable records."""


class IoError(SpoofError):
    """Reading the input failed."""


class StoreError(IoError):
    """A key/value store backend failed to read or write."""


class NetworkError(SpoofError):
    """Fetching a remote profile failed."""


class DigestError(SpoofError):
    """Computing or persisting the profile digest failed."""
