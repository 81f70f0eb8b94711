"""
Custom exception hierarchy for the photo ingest engine.

Classification outcomes (hash conflicts, duplicates, directory collisions)
are not errors and have no exception type; they are always resolved by
moving the file somewhere.
"""


class PhotoIngestError(Exception):
    """Base exception for all photo ingest errors."""
    pass


class NotMediaError(PhotoIngestError):
    """Raised when a file is not one of the recognized media types.

    This is a routing signal: the file goes to the unclassifiable bucket.
    """
    pass


class MetadataDecodeError(PhotoIngestError):
    """Raised by a metadata decoder when it cannot read a file."""
    pass


class FileHashError(PhotoIngestError, OSError):
    """Raised when file hashing fails."""
    pass


class FileCompareError(PhotoIngestError, OSError):
    """Raised when two files cannot be compared byte by byte."""
    pass


class FileOperationError(PhotoIngestError, OSError):
    """Raised when moving or writing a file fails."""
    pass


class CatalogError(PhotoIngestError):
    """Raised when catalog operations fail."""
    pass


class CorruptCatalogError(CatalogError):
    """Raised when the persisted catalog cannot be decoded."""
    pass


class DuplicateRegistrationError(CatalogError):
    """Raised when registering a hash that is already in the catalog."""
    pass
