"""Archive error taxonomy for Strongbox"""


class ArchiveError(Exception):
    """Base class for all archive lifecycle failures"""


class ArchiveNotFound(ArchiveError, FileNotFoundError):
    """The archive does not exist at its canonical path"""


class PathTraversalError(ArchiveError, ValueError):
    """An entry resolves outside of its trusted root directory"""


class ArchiveIOError(ArchiveError, OSError):
    """A filesystem read, write, list or delete failed"""


class CompressionError(ArchiveError):
    """Writing or reading the compressed archive failed"""
