"""
Exceptions raised by the statement import pipeline.

Anything derived from StatementImportError aborts the whole import and is
reported to the caller as a 400 with a zero-progress summary. RowParseError
is caught by the parsers themselves and only excludes one row or block.
"""


class StatementImportError(Exception):
    """Fatal error: the import stops before any row is processed."""


class InvalidRequestError(StatementImportError):
    """A required parameter is missing or a parameter value is invalid."""


class AuthorizationError(StatementImportError):
    pass


class FileLoadError(StatementImportError):
    """The file payload could not be decoded, fetched or read."""


class UnsupportedFormatError(StatementImportError):
    pass


class StatementParseError(StatementImportError):
    """The document as a whole could not be parsed."""


class HeaderNotFoundError(StatementParseError):
    pass


class RowParseError(ValueError):
    """A single row or transaction block could not be normalized."""
