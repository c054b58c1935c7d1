# deploytar/errors.py
"""
Error taxonomy shared by every service and transport.

Each error carries a ``category`` so transports can pick a status code
without looking at the message. The builtin bases keep plain
``except PermissionError`` / ``except ValueError`` call sites working.
"""

INPUT_INVALID = "input_invalid"
FORBIDDEN = "forbidden"
NOT_FOUND = "not_found"
INVALID_TYPE = "invalid_type"
BAD_FORMAT = "bad_format"
INTERNAL = "internal"


class FileServiceError(Exception):
    category: str = INTERNAL


class InputInvalidError(FileServiceError, ValueError):
    category = INPUT_INVALID


class ForbiddenPathError(FileServiceError, PermissionError):
    category = FORBIDDEN


class PrefixNotFoundError(FileServiceError, FileNotFoundError):
    category = NOT_FOUND


class DirectoryNotFoundError(FileServiceError, FileNotFoundError):
    category = NOT_FOUND


class PrefixNotDirectoryError(FileServiceError, NotADirectoryError):
    category = INVALID_TYPE


class NotADirectoryTargetError(FileServiceError, NotADirectoryError):
    category = INVALID_TYPE


class BadArchiveError(FileServiceError, ValueError):
    category = BAD_FORMAT


class InvalidGzipError(BadArchiveError):
    """Gzip header or stream could not be decoded."""


class StorageIOError(FileServiceError, OSError):
    category = INTERNAL
